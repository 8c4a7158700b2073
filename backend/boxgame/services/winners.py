import random
from typing import List, Optional, Sequence

from boxgame.models import Participant


def draw(candidates: Sequence, k: int, rng: Optional[random.Random] = None) -> list:
    """Pick up to ``k`` items uniformly at random without replacement."""
    rng = rng or random.SystemRandom()
    count = min(max(k, 0), len(candidates))
    if count == 0:
        return []
    return rng.sample(list(candidates), count)


def eligible_participants(correct_box) -> List[Participant]:
    return (
        Participant.query.filter_by(box_choice=correct_box, is_winner=False)
        .order_by(Participant.identity)
        .all()
    )


def select_winners(
    correct_box,
    prize_codes: Sequence[str],
    prize_location: str,
    rng: Optional[random.Random] = None,
) -> List[Participant]:
    """Declare up to len(prize_codes) winners among eligible participants.

    The i-th drawn participant gets prize_codes[i]. Rows are mutated in the
    caller's session; committing is left to the caller so the whole reveal
    succeeds or fails together.
    """
    drawn = draw(eligible_participants(correct_box), len(prize_codes), rng)
    for code, participant in zip(prize_codes, drawn):
        participant.outcome_correct = True
        participant.is_winner = True
        participant.prize_location = prize_location
        participant.prize_code = code
        participant.touch()
    return drawn
