import random

import pytest
from sqlalchemy.exc import OperationalError

from boxgame import db
from boxgame.errors import AlreadyRevealed, InvalidGuess, StoreUnavailable
from boxgame.models import Participant
from boxgame.services import game_session, participants
from boxgame.services import reveal as reveal_service
from boxgame.services.winners import draw, select_winners

POOL = [f'PRIZE-{i:02d}' for i in range(1, 11)]


def _seed_scenario():
    participants.submit_guess('u1', 'one@x.com', None, 1)
    participants.submit_guess('u2', 'two@x.com', None, 2)
    participants.submit_guess('u3', 'three@x.com', None, 1)


def test_draw_is_without_replacement():
    items = list(range(20))
    picked = draw(items, 10, random.Random(7))
    assert len(picked) == 10
    assert len(set(picked)) == 10
    assert set(picked) <= set(items)


def test_draw_handles_small_and_empty_pools():
    assert sorted(draw(['a', 'b'], 10, random.Random(1))) == ['a', 'b']
    assert draw([], 10) == []
    assert draw(['a'], 0) == []


def test_draw_reaches_every_candidate():
    rng = random.Random(42)
    seen = set()
    for _ in range(200):
        seen.update(draw(list(range(6)), 2, rng))
    assert seen == set(range(6))


def test_reveal_scenario(flask_app):
    _seed_scenario()
    outcome = reveal_service.reveal(game_session(), 1)
    db.session.expire_all()

    u1 = db.session.get(Participant, 'u1')
    u2 = db.session.get(Participant, 'u2')
    u3 = db.session.get(Participant, 'u3')
    assert {w.identity for w in outcome.winners} == {'u1', 'u3'}
    assert u1.is_winner and u3.is_winner
    assert u1.outcome_correct and u3.outcome_correct
    assert u1.prize_code != u3.prize_code
    assert {u1.prize_code, u3.prize_code} <= set(POOL)
    assert u1.prize_location == 'Section 101, Gate B'
    assert u2.is_winner is False
    assert u2.outcome_correct is False
    assert u2.prize_code is None

    assert outcome.total_correct == 2
    assert outcome.results['two@x.com']['won'] is False
    assert outcome.results['one@x.com']['isWinner'] is True
    assert outcome.results['one@x.com']['prizeCode'] == u1.prize_code
    assert participants.load_game_state().phase == 'revealed'


def test_winner_count_is_capped_by_pool(flask_app):
    for n in range(15):
        participants.submit_guess(f'u{n}', f'fan{n}@x.com', None, 2)
    participants.submit_guess('loser', 'loser@x.com', None, 3)

    outcome = reveal_service.reveal(game_session(), 2)
    db.session.expire_all()

    winners = Participant.query.filter_by(is_winner=True).all()
    assert len(winners) == 10
    assert len(outcome.winners) == 10
    codes = [w.prize_code for w in winners]
    assert len(set(codes)) == 10
    assert set(codes) == set(POOL)
    for row in Participant.query.all():
        assert row.outcome_correct == (row.box_choice == 2)
        if row.is_winner:
            assert row.outcome_correct


def test_no_eligible_participants_means_no_winners(flask_app):
    participants.submit_guess('u1', 'one@x.com', None, 1)
    outcome = reveal_service.reveal(game_session(), 3)
    assert outcome.winners == []
    assert outcome.total_correct == 0
    assert Participant.query.filter_by(is_winner=True).count() == 0


def test_select_winners_skips_existing_winners(flask_app):
    _seed_scenario()
    first = select_winners(1, POOL[:1], 'Gate A', rng=random.Random(3))
    db.session.commit()
    second = select_winners(1, POOL[1:], 'Gate A', rng=random.Random(3))
    db.session.commit()

    assert len(first) == 1 and len(second) == 1
    assert first[0].identity != second[0].identity
    assert second[0].prize_code == 'PRIZE-02'


def test_second_reveal_is_rejected_without_redrawing(flask_app):
    _seed_scenario()
    reveal_service.reveal(game_session(), 1)
    db.session.expire_all()
    before = {p.identity: p.prize_code for p in Participant.query.all()}

    with pytest.raises(AlreadyRevealed):
        reveal_service.reveal(game_session(), 2)

    db.session.expire_all()
    after = {p.identity: p.prize_code for p in Participant.query.all()}
    assert before == after
    assert game_session().correct_box == 1


def test_parse_box_rejects_unknown_box(flask_app):
    with pytest.raises(InvalidGuess):
        reveal_service.parse_box(7)
    assert reveal_service.parse_box('3') == 3


def test_reset_after_reveal_starts_fresh(flask_app):
    _seed_scenario()
    reveal_service.reveal(game_session(), 1)
    assert reveal_service.reset(game_session()) == 3

    assert Participant.query.count() == 0
    assert game_session().can_submit()
    participants.submit_guess('u1', 'one@x.com', None, 1)
    assert participants.compute_stats().total == 1
    assert participants.load_game_state().phase == 'collecting'


def test_store_failure_mid_reveal_rolls_everything_back(flask_app, monkeypatch):
    _seed_scenario()

    def broken_state():
        raise OperationalError('SELECT game_state', {}, Exception('database is locked'))

    monkeypatch.setattr(participants, 'load_game_state', broken_state)
    with pytest.raises(StoreUnavailable):
        reveal_service.reveal(game_session(), 1)
    monkeypatch.undo()

    db.session.expire_all()
    assert Participant.query.filter_by(is_winner=True).count() == 0
    assert all(p.outcome_correct is None for p in Participant.query.all())
    assert all(p.prize_code is None for p in Participant.query.all())
    assert game_session().can_submit()
    assert game_session().correct_box is None
    assert participants.load_game_state().phase == 'collecting'

    outcome = reveal_service.reveal(game_session(), 1)
    assert {w.identity for w in outcome.winners} == {'u1', 'u3'}


def test_results_are_keyed_by_folded_email(flask_app):
    participants.submit_guess('u1', 'Fan.One@X.com', None, 2)
    outcome = reveal_service.reveal(game_session(), 2)

    assert list(outcome.results) == ['fan.one@x.com']
    assert outcome.results['fan.one@x.com']['isWinner'] is True
    assert outcome.winners_payload()['winners'][0]['email'] == 'Fan.One@X.com'
