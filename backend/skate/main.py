from flask import Blueprint, jsonify

from skate.services.matches.service import get_service

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the S.K.A.T.E. match server!'})

@main.route('/api/players/<string:player_id>')
def player_profile(player_id):
    service = get_service()
    profile = service.profile(player_id).to_dict()
    played = service.matches_for(player_id)
    profile['matches_played'] = len(played)
    profile['matches_won'] = sum(1 for m in played if m.winner_id == player_id)
    return jsonify(profile)
