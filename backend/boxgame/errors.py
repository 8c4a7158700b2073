"""Game error taxonomy and the JSON error payload used by HTTP routes."""
from typing import Any

from flask import jsonify


class GameError(Exception):
    code = 'game_error'
    message = 'Game error'

    def __init__(self, message: str = None, code: str = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        if code:
            self.code = code

    def to_event(self) -> dict:
        return {'success': False, 'error': self.message, 'code': self.code}


class InvalidGuess(GameError):
    code = 'invalid_guess'
    message = 'Invalid guess'


class DuplicateEmail(GameError):
    code = 'duplicate_email'
    message = 'This email has already been used to enter'


class GameClosed(GameError):
    code = 'game_closed'
    message = 'Guessing is closed for this round'


class AlreadyRevealed(GameError):
    code = 'already_revealed'
    message = 'The winning box has already been revealed'


class StoreUnavailable(GameError):
    code = 'store_unavailable'
    message = 'Failed to save, please try again'


class SinkError(GameError):
    code = 'sink_error'
    message = 'Backup sheet error'


class SinkUnavailable(SinkError):
    code = 'sink_unavailable'
    message = 'Backup sheet unavailable'


class SinkWriteFailure(SinkError):
    code = 'sink_write_failure'
    message = 'Backup sheet write failed'


def build_error_payload(*, code: str, message: str, details: Any = None) -> dict:
    return {
        'code': code,
        'message': message,
        'error': message,
        'details': details if details is not None else {},
    }


def error_response(*, status: int, code: str, message: str, details: Any = None):
    return jsonify(build_error_payload(code=code, message=message, details=details)), int(status)
