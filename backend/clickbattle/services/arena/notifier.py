from flask_socketio import SocketIO


def _pack(args):
    # python-socketio sends a tuple as separate positional arguments
    if not args:
        return ()
    if len(args) == 1:
        return (args[0],)
    return (tuple(args),)


class SocketIONotifier:
    """Pushes arena events out through Flask-SocketIO.

    Each room id doubles as the Socket.IO room name its occupants join,
    so ``to_room`` reaches exactly the two seated connections.
    """

    def __init__(self, socketio: SocketIO, namespace: str) -> None:
        self.socketio = socketio
        self.namespace = namespace

    def to_connection(self, connection_id, event, *args):
        self.socketio.emit(event, *_pack(args), to=connection_id, namespace=self.namespace)

    def to_room(self, room_id, event, *args):
        self.socketio.emit(event, *_pack(args), to=room_id, namespace=self.namespace)

    def broadcast(self, event, *args):
        self.socketio.emit(event, *_pack(args), namespace=self.namespace)

    def enter(self, connection_id, room_id):
        self.socketio.server.enter_room(connection_id, room_id, namespace=self.namespace)

    def exit(self, connection_id, room_id):
        self.socketio.server.leave_room(connection_id, room_id, namespace=self.namespace)

    def close(self, room_id):
        self.socketio.server.close_room(room_id, namespace=self.namespace)
