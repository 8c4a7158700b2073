import threading
from collections import namedtuple
from email.utils import parseaddr

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from boxgame import db
from boxgame.errors import DuplicateEmail, GameClosed, InvalidGuess, StoreUnavailable
from boxgame.models import GameState, Participant, normalize_email, utcnow

Stats = namedtuple('Stats', ['total', 'per_box'])

# Serialises guess writes with the duplicate-email check and with reveal
write_lock = threading.Lock()


def ensure_schema() -> None:
    """Create tables and indexes if missing. Safe to call on every startup."""
    db.create_all()
    if db.session.get(GameState, 1) is None:
        db.session.add(GameState(id=1, phase='collecting'))
        db.session.commit()


def load_game_state() -> GameState:
    state = db.session.get(GameState, 1)
    if state is None:
        state = GameState(id=1, phase='collecting')
        db.session.add(state)
        db.session.flush()
    return state


def _persisted_phase():
    state = db.session.get(GameState, 1, populate_existing=True)
    return state.phase if state is not None else 'collecting'


def _validate(identity, email, box_choice):
    if not identity:
        raise InvalidGuess('Missing participant identity')
    email = (email or '').strip()
    _, addr = parseaddr(email)
    if not email or addr != email or '@' not in email or email.startswith('@') or email.endswith('@'):
        raise InvalidGuess('A valid email is required')
    try:
        box = int(box_choice)
    except (TypeError, ValueError):
        raise InvalidGuess('Box choice must be a number')
    if isinstance(box_choice, bool) or box not in current_app.config['BOX_CHOICES']:
        raise InvalidGuess(f'Box choice must be one of {current_app.config["BOX_CHOICES"]}')
    return email, box


def submit_guess(identity, email, phone, box_choice) -> Participant:
    """Insert or overwrite the guess held by ``identity``.

    Rejects with DuplicateEmail when a different identity already holds the
    same case-folded email, and with GameClosed once the round has been
    revealed. Either everything commits or nothing does.
    """
    email, box = _validate(identity, email, box_choice)
    key = normalize_email(email)
    phone = (phone or '').strip() or None

    with write_lock:
        try:
            if _persisted_phase() != 'collecting':
                raise GameClosed()
            clash = Participant.query.filter(
                Participant.email_key == key,
                Participant.identity != identity,
            ).first()
            if clash is not None:
                raise DuplicateEmail()

            participant = db.session.get(Participant, identity)
            if participant is None:
                participant = Participant(identity=identity, created_at=utcnow(), revision=0)
                db.session.add(participant)
            participant.contact_email = email
            participant.email_key = key
            participant.contact_phone = phone
            participant.box_choice = box
            participant.submitted_at = utcnow()
            participant.touch()
            db.session.commit()
        except (DuplicateEmail, GameClosed):
            db.session.rollback()
            raise
        except IntegrityError as exc:
            db.session.rollback()
            current_app.logger.info(f"[guess-conflict] identity={identity} integrity error: {exc.orig}")
            raise DuplicateEmail()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error(f"[guess-fail] identity={identity} store error: {exc}")
            raise StoreUnavailable()

    current_app.logger.info(f"[guess] identity={identity} box={box}")
    return participant


def compute_stats() -> Stats:
    rows = (
        db.session.query(Participant.box_choice, db.func.count(Participant.identity))
        .group_by(Participant.box_choice)
        .all()
    )
    per_box = {box: 0 for box in current_app.config['BOX_CHOICES']}
    for box, count in rows:
        per_box[box] = count
    return Stats(total=sum(per_box.values()), per_box=per_box)


def stats_payload(stats: Stats = None) -> dict:
    stats = stats or compute_stats()
    payload = {
        'totalParticipants': stats.total,
        'boxCounts': {str(box): count for box, count in stats.per_box.items()},
    }
    for box, count in stats.per_box.items():
        payload[f'box{box}Count'] = count
    return payload


def mark_outcomes(correct_box) -> int:
    """Set outcome_correct on every row and flag all rows for re-sync.

    Runs inside the caller's transaction; does not commit.
    """
    return Participant.query.update(
        {
            Participant.outcome_correct: Participant.box_choice == correct_box,
            Participant.sync_pending: True,
            Participant.revision: Participant.revision + 1,
        },
        synchronize_session='fetch',
    )


def list_all_for_broadcast():
    return Participant.query.order_by(Participant.created_at, Participant.identity).all()


def winners():
    return (
        Participant.query.filter_by(is_winner=True)
        .order_by(Participant.prize_code)
        .all()
    )


def recent_participants(limit=50):
    return (
        Participant.query.order_by(Participant.submitted_at.desc(), Participant.identity)
        .limit(limit)
        .all()
    )


def sync_backlog() -> int:
    return Participant.query.filter_by(sync_pending=True).count()


def full_reset() -> int:
    """Delete every participant and put the persisted phase back to collecting."""
    with write_lock:
        deleted = _purge()
    current_app.logger.info(f"[reset] deleted={deleted}")
    return deleted


def _purge() -> int:
    try:
        deleted = Participant.query.delete()
        state = load_game_state()
        state.phase = 'collecting'
        state.correct_box = None
        state.revealed_at = None
        state.launched_at = None
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[reset-fail] store error: {exc}")
        raise StoreUnavailable()
    return deleted
