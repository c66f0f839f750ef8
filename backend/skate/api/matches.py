from flask import Blueprint, jsonify, request, current_app

from skate.errors import SkateError, ValidationError, Rejection, INVALID_REQUEST
from skate.services.matches.service import get_service


matches = Blueprint('matches', __name__)


@matches.app_errorhandler(SkateError)
def handle_skate_error(err: SkateError):
    if err.status_code >= 500:
        current_app.logger.warning(f"[request-failed] path={request.path} reason={err.reason}")
    return jsonify(err.to_dict()), err.status_code


def _optional_int(data, key):
    value = data.get(key)
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(Rejection(INVALID_REQUEST, f'{key} must be an integer'))


@matches.route('/matches', methods=['POST'])
def create_match():
    data = request.get_json(silent=True) or {}
    match = get_service().challenge(data.get('challenger_id'), data.get('opponent_id'))
    return jsonify({
        'message': 'Challenge sent!',
        'match': match.to_dict(include_moves=True),
    }), 201


@matches.route('/actions', methods=['POST'])
def submit_action():
    data = request.get_json(silent=True) or {}
    match_id = data.get('match_id')
    action_type = data.get('action_type')
    if not all([match_id, action_type]):
        return jsonify({'error': 'match_id and action_type are required', 'reason': INVALID_REQUEST}), 400
    payload = data.get('payload') or {}
    if not isinstance(payload, dict):
        return jsonify({'error': 'payload must be an object', 'reason': INVALID_REQUEST}), 400

    outcome = get_service().submit_client_action(
        match_id,
        data.get('actor_id'),
        action_type,
        payload,
        expected_version=_optional_int(data, 'expected_version'),
        idempotency_key=data.get('idempotency_key'),
    )
    return jsonify({
        'message': outcome.message,
        'duplicate': outcome.duplicate,
        'match': outcome.match.to_dict(include_moves=True),
    })


@matches.route('/matches/mine', methods=['GET'])
def my_matches():
    player_id = request.args.get('player_id')
    if not player_id:
        return jsonify({'error': 'player_id is required', 'reason': INVALID_REQUEST}), 400
    found = get_service().matches_for(player_id)
    return jsonify([m.to_dict() for m in found])


@matches.route('/matches/<string:match_id>', methods=['GET'])
def get_match(match_id):
    match = get_service().get_match(match_id)
    return jsonify(match.to_dict(include_moves=True))
