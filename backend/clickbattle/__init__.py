import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    logging.getLogger(__name__).setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One arena per app; it owns every live room
    from clickbattle.services.arena import Arena, ArenaSettings, RoomTimers
    from clickbattle.services.arena.escrow import build_escrow_gateway
    from clickbattle.services.arena.notifier import SocketIONotifier

    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/click-battle')
    timers = RoomTimers(
        spawn=socketio.start_background_task,
        sleep=socketio.sleep,
        tick_interval=float(flask_app.config.get('TICK_INTERVAL_SEC', 1.0)),
    )
    flask_app.extensions['arena'] = Arena(
        notifier=SocketIONotifier(socketio, namespace),
        escrow=build_escrow_gateway(flask_app.config),
        timers=timers,
        spawn=socketio.start_background_task,
        settings=ArenaSettings.from_config(flask_app.config),
    )

    from clickbattle.main import main
    flask_app.register_blueprint(main)

    from clickbattle.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    # Register Socket.IO event handlers
    from clickbattle.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace)

    return flask_app
