from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from boxgame.auth import ControllerUser, check_credentials, issue_token
from boxgame.errors import error_response
from boxgame.services import backup_replicator, game_session, participants

main = Blueprint('main', __name__)


@main.route('/')
def index():
    stats = participants.compute_stats()
    body = {
        'status': 'running',
        'participants': stats.total,
        'syncBacklog': participants.sync_backlog(),
        'sync': backup_replicator().status(),
    }
    body.update(participants.stats_payload(stats))
    body.update(game_session().to_dict())
    return jsonify(body)


@main.route('/login', methods=['POST', 'OPTIONS'])
def login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = request.get_json(silent=True) or {}
    if not check_credentials(data.get('username'), data.get('password')):
        return error_response(status=401, code='invalid_credentials', message='Invalid credentials')
    user = ControllerUser(data['username'])
    login_user(user)
    return jsonify({'success': True, 'user': user.to_dict(), 'token': issue_token(user.id)})


@main.route('/check_login', methods=['GET'])
@login_required
def check_login():
    return jsonify({'success': True, 'user': current_user.to_dict()})


@main.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})
