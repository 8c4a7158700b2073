import functools

from flask import current_app, request
from flask_socketio import emit, join_room
from sqlalchemy.exc import SQLAlchemyError

from boxgame import db, socketio
from boxgame.auth import user_from_token
from boxgame.errors import AlreadyRevealed, GameClosed, GameError
from boxgame.services import game_session, participants
from boxgame.services import reveal as reveal_service
from boxgame.services.session import Role


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _stats_payload():
    try:
        return participants.stats_payload()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[stats-fail] could not compute stats: {exc}")
        return None


def _emit_stats() -> None:
    payload = _stats_payload()
    if payload is None:
        return
    socketio.emit('statsUpdate', payload, to=Role.CONTROLLER.room)


def _controller_only(handler):
    """Drop the event silently unless the connection registered as controller."""
    @functools.wraps(handler)
    def wrapper(data=None):
        sid = _get_sid()
        if not game_session().is_controller(sid):
            current_app.logger.debug(f"[ignored] {handler.__name__} from non-controller sid={sid}")
            return
        return handler(data)
    return wrapper


def handle_connect(auth=None):
    current_app.logger.info(f"[connect] sid={_get_sid()}")


def handle_disconnect(*args):
    # Participant rows stay: disconnecting is not withdrawing
    conn = game_session().disconnect(_get_sid())
    current_app.logger.info(f"[disconnect] sid={_get_sid()} role={conn.role.value if conn else None}")


def handle_register(data):
    data = data or {}
    role = Role.parse(data.get('type') or data.get('role'))
    if role is None:
        emit('registered', {'success': False, 'error': 'Unknown client type'})
        return
    if (
        role is Role.CONTROLLER
        and current_app.config.get('CONTROLLER_REQUIRE_TOKEN')
        and user_from_token(data.get('token')) is None
    ):
        emit('registered', {'success': False, 'error': 'Controller login required'})
        return
    if not game_session().register(_get_sid(), role):
        emit('registered', {'success': False, 'error': 'Connection already registered with another role'})
        return
    join_room(role.room)
    current_app.logger.info(f"[register] sid={_get_sid()} role={role.value}")
    emit('registered', {'success': True, 'type': role.value})
    if role is Role.CONTROLLER:
        payload = _stats_payload()
        if payload is not None:
            emit('statsUpdate', payload)


def handle_submit_guess(data):
    data = data or {}
    session = game_session()
    identity = str(data.get('identity') or _get_sid())
    try:
        if not session.can_submit():
            raise GameClosed()
        participant = participants.submit_guess(
            identity,
            data.get('email'),
            data.get('phone'),
            data.get('boxChoice'),
        )
    except GameError as exc:
        current_app.logger.info(f"[guess-rejected] identity={identity} code={exc.code}")
        emit('guessConfirmed', exc.to_event())
        return
    session.remember_email(_get_sid(), participant.contact_email)
    emit('guessConfirmed', {'success': True, 'boxChoice': participant.box_choice})
    _emit_stats()


@_controller_only
def handle_reveal_winner(data):
    data = data or {}
    session = game_session()
    try:
        correct_box = reveal_service.parse_box(data.get('correctBox'))
        outcome = reveal_service.reveal(session, correct_box)
    except AlreadyRevealed as exc:
        payload = exc.to_event()
        payload['correctBox'] = session.correct_box
        emit('revealRejected', payload)
        return
    except GameError as exc:
        emit('revealRejected', exc.to_event())
        return

    socketio.emit('showWinner', {'correctBox': correct_box}, to=Role.VIDEOBOARD.room)
    # Everyone gets the full map and picks out their own email
    socketio.emit('results', outcome.results_payload())
    socketio.emit('winnersList', outcome.winners_payload(), to=Role.CONTROLLER.room)


@_controller_only
def handle_launch_game(data=None):
    reveal_service.record_launch(game_session())
    current_app.logger.info("[launch]")
    socketio.emit('launchGame', {}, to=Role.VIDEOBOARD.room)


@_controller_only
def handle_reset_game(data=None):
    try:
        reveal_service.reset(game_session())
    except GameError as exc:
        emit('resetRejected', exc.to_event())
        return
    socketio.emit('gameReset', {})
    _emit_stats()


HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'register': handle_register,
    'submitGuess': handle_submit_guess,
    'revealWinner': handle_reveal_winner,
    'launchGame': handle_launch_game,
    'resetGame': handle_reset_game,
}


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register Socket.IO event handlers on the game namespace."""
    for event, handler in HANDLERS.items():
        socketio.on_event(event, handler, namespace=namespace)
