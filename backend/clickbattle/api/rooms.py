from flask import Blueprint, current_app, jsonify

rooms = Blueprint('rooms', __name__)


def _arena():
    return current_app.extensions['arena']


@rooms.route('', methods=['GET'])
def list_rooms():
    """Rooms still waiting for an opponent, oldest first."""
    return jsonify(_arena().rooms_list())


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room(room_id):
    snapshot = _arena().room_snapshot(room_id)
    if snapshot is None:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify(snapshot)
