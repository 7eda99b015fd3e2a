def room_channel(code):
    return f"room:{code}"


class SocketIOBroadcaster:
    """Fire-and-forget sends over Flask-SocketIO.

    ``to_room`` reaches every connection subscribed to the room's channel;
    ``to_connection`` reaches a single sid.
    """

    def __init__(self, socketio, namespace='/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def to_room(self, code, event, payload=None):
        self.socketio.emit(event, payload or {}, to=room_channel(code), namespace=self.namespace)

    def to_connection(self, connection_id, event, payload=None):
        self.socketio.emit(event, payload or {}, to=connection_id, namespace=self.namespace)

    def subscribe(self, connection_id, code):
        self.socketio.server.enter_room(connection_id, room_channel(code), namespace=self.namespace)

    def unsubscribe(self, connection_id, code):
        self.socketio.server.leave_room(connection_id, room_channel(code), namespace=self.namespace)

    def close_channel(self, code):
        self.socketio.close_room(room_channel(code), namespace=self.namespace)
