from flask import Blueprint, jsonify

from app import get_engine
from app.services.games.values import SessionCode


games = Blueprint('games', __name__)


@games.route('/active', methods=['GET'])
def get_active_games():
    """
    Returns the games currently held by this server.
    """
    active = [
        {
            'game_code': s.code,
            'phase': s.phase.value,
            'player_count': len(s.members),
        }
        for s in get_engine().active_sessions()
    ]
    return jsonify(active), 200


@games.route('/<string:game_code>/state', methods=['GET'])
def get_game_state(game_code):
    """
    Returns the public state of a game. The code is case-insensitive.
    """
    code = SessionCode.create(game_code)
    if code.is_failure:
        return jsonify({'error': code.error.message}), 400

    with get_engine().locked(code.value) as session:
        if session is None:
            return jsonify({'error': 'Game not found'}), 404
        payload = session.to_dict()
    return jsonify(payload), 200
