"""Reveal a round: outcomes, winner draw and the payloads sent to clients."""
from dataclasses import dataclass, field
from typing import Dict, List

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from boxgame import db
from boxgame.errors import InvalidGuess, StoreUnavailable
from boxgame.models import Participant, utcnow
from boxgame.services import participants
from boxgame.services.winners import select_winners


@dataclass
class RevealOutcome:
    correct_box: int
    winners: List[Participant] = field(default_factory=list)
    results: Dict[str, dict] = field(default_factory=dict)
    total_correct: int = 0

    def results_payload(self) -> dict:
        return {'results': self.results, 'correctBox': self.correct_box}

    def winners_payload(self) -> dict:
        return {
            'winners': [
                {
                    'email': w.contact_email,
                    'phone': w.contact_phone,
                    'timestamp': w.submitted_at.isoformat() if w.submitted_at else None,
                    'prizeCode': w.prize_code,
                    'prizeLocation': w.prize_location,
                }
                for w in self.winners
            ],
            'totalCorrect': self.total_correct,
        }


def parse_box(raw) -> int:
    try:
        box = int(raw)
    except (TypeError, ValueError):
        raise InvalidGuess('correctBox must be a number')
    if isinstance(raw, bool) or box not in current_app.config['BOX_CHOICES']:
        raise InvalidGuess(f'correctBox must be one of {current_app.config["BOX_CHOICES"]}')
    return box


def reveal(session, correct_box, rng=None) -> RevealOutcome:
    """Mark outcomes, draw winners and persist the phase in one transaction.

    Raises AlreadyRevealed if this cycle was already revealed, and
    StoreUnavailable (with nothing written) if the store fails.
    """
    config = current_app.config
    codes = list(config['PRIZE_CODES'])[: int(config['MAX_WINNERS'])]
    # Guesses wait until the outcome rows are committed
    with participants.write_lock:
        session.begin_reveal(correct_box)
        drawn = _commit_reveal(session, correct_box, codes, config['PRIZE_LOCATION'], rng)
        session.complete_reveal()

    outcome = RevealOutcome(correct_box=correct_box, winners=drawn)
    for p in participants.list_all_for_broadcast():
        outcome.results[p.email_key] = p.to_result()
        if p.outcome_correct:
            outcome.total_correct += 1
    current_app.logger.info(
        f"[reveal] correct_box={correct_box} correct={outcome.total_correct} winners={len(drawn)}"
    )
    return outcome


def _commit_reveal(session, correct_box, codes, prize_location, rng):
    try:
        participants.mark_outcomes(correct_box)
        drawn = select_winners(correct_box, codes, prize_location, rng=rng)
        state = participants.load_game_state()
        state.phase = 'revealed'
        state.correct_box = correct_box
        state.revealed_at = utcnow()
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        session.abort_reveal()
        current_app.logger.error(f"[reveal-fail] correct_box={correct_box} rolled back: {exc}")
        raise StoreUnavailable('Reveal failed, nothing was changed')
    except Exception:
        db.session.rollback()
        session.abort_reveal()
        raise
    return drawn


def reset(session) -> int:
    deleted = participants.full_reset()
    session.reset()
    return deleted


def record_launch(session) -> None:
    try:
        state = participants.load_game_state()
        state.launched_at = utcnow()
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[launch] could not persist launch time: {exc}")
    session.mark_launched()
