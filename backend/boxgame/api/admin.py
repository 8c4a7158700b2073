from flask import Blueprint, jsonify, request
from flask_login import login_required

from boxgame.errors import GameError, error_response
from boxgame.services import backup_replicator, participants

admin = Blueprint('admin', __name__)

MAX_LIST_LIMIT = 500


@admin.route('/participants', methods=['GET'])
@login_required
def recent_participants():
    try:
        limit = int(request.args.get('limit', 50))
    except ValueError:
        return error_response(status=400, code='bad_limit', message='limit must be an integer')
    limit = max(1, min(limit, MAX_LIST_LIMIT))
    rows = participants.recent_participants(limit)
    return jsonify({'participants': [p.to_dict() for p in rows], 'count': len(rows)})


@admin.route('/winners', methods=['GET'])
@login_required
def winners():
    return jsonify({'winners': [p.to_dict() for p in participants.winners()]})


@admin.route('/sync', methods=['POST'])
@login_required
def request_sync():
    data = request.get_json(silent=True) or {}
    replicator = backup_replicator()
    try:
        backlog = replicator.request_sync(full=bool(data.get('full')))
    except GameError as exc:
        return error_response(status=503, code=exc.code, message=exc.message)
    return jsonify({
        'success': True,
        'enabled': replicator.enabled,
        'syncBacklog': backlog,
        'message': 'Sync flagged; it will run on the next timer tick',
    }), 202
