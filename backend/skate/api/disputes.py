from flask import Blueprint, jsonify, request

from skate.errors import INVALID_REQUEST
from skate.services.matches.service import get_service


disputes = Blueprint('disputes', __name__)


@disputes.route('', methods=['POST'])
def file_dispute():
    data = request.get_json(silent=True) or {}
    match_id = data.get('match_id')
    filer_id = data.get('filer_id')
    move_id = data.get('move_id')
    if not all([match_id, filer_id, move_id]):
        return jsonify({'error': 'match_id, filer_id and move_id are required', 'reason': INVALID_REQUEST}), 400
    try:
        move_id = int(move_id)
    except (TypeError, ValueError):
        return jsonify({'error': 'move_id must be an integer', 'reason': INVALID_REQUEST}), 400

    outcome = get_service().file_dispute(match_id, filer_id, move_id)
    return jsonify({
        'message': outcome.message,
        'dispute': outcome.dispute.to_dict(),
        'match': outcome.match.to_dict(include_moves=True),
    }), 201


@disputes.route('/<int:dispute_id>/resolve', methods=['POST'])
def resolve_dispute(dispute_id):
    data = request.get_json(silent=True) or {}
    resolver_id = data.get('resolver_id')
    verdict = data.get('verdict')
    if not all([resolver_id, verdict]):
        return jsonify({'error': 'resolver_id and verdict are required', 'reason': INVALID_REQUEST}), 400

    outcome = get_service().resolve_dispute(dispute_id, resolver_id, verdict)
    return jsonify({
        'message': outcome.message,
        'dispute': outcome.dispute.to_dict(),
        'match': outcome.match.to_dict(include_moves=True),
    })
