"""Static controller credentials and opaque login tokens.

This only keeps casual users off the controller screens; it is not a
security boundary.
"""
import hmac

from flask import current_app
from flask_login import UserMixin
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from boxgame import bcrypt

_TOKEN_SALT = 'boxgame-controller'


class ControllerUser(UserMixin):
    def __init__(self, username):
        self.id = username

    def to_dict(self):
        return {'username': self.id, 'role': 'controller'}


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=_TOKEN_SALT)


def check_credentials(username, password):
    expected_user = current_app.config['CONTROLLER_USERNAME']
    if not username or not password:
        return False
    if not hmac.compare_digest(str(username), str(expected_user)):
        return False
    return bcrypt.check_password_hash(current_app.extensions['controller_password_hash'], password)


def issue_token(username):
    return _serializer().dumps({'u': username})


def user_from_token(token):
    if not token:
        return None
    try:
        data = _serializer().loads(token, max_age=current_app.config['AUTH_TOKEN_MAX_AGE_SEC'])
    except (SignatureExpired, BadSignature):
        return None
    username = data.get('u') if isinstance(data, dict) else None
    if username != current_app.config['CONTROLLER_USERNAME']:
        return None
    return ControllerUser(username)
