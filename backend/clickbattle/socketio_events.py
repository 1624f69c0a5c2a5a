import functools
import logging

from flask import current_app, request

from clickbattle import socketio
from clickbattle.services.arena import ArenaError

logger = logging.getLogger(__name__)


def _arena():
    return current_app.extensions['arena']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _reports_errors(handler):
    """Send arena errors back to the caller as an ``error`` event."""
    @functools.wraps(handler)
    def wrapper(*args):
        try:
            return handler(*args)
        except ArenaError as exc:
            logger.info(f"[event-rejected] sid={_get_sid()} handler={handler.__name__} {exc}")
            _arena().notifier.to_connection(_get_sid(), 'error', str(exc))
    return wrapper


def handle_connect(auth=None):
    logger.debug(f"[connect] sid={_get_sid()}")
    _arena().connect(_get_sid())


def handle_disconnect(*args):
    logger.debug(f"[disconnect] sid={_get_sid()}")
    _arena().disconnect(_get_sid())


def handle_get_rooms(*args):
    _arena().send_rooms_list(_get_sid())


@_reports_errors
def handle_create_room(name=None, display_name=None, wallet_ref=None, stake=None, *args):
    _arena().create_room(_get_sid(), name, display_name, wallet_ref=wallet_ref, stake=stake)


@_reports_errors
def handle_join_room(room_id=None, display_name=None, wallet_ref=None, *args):
    _arena().join_room(_get_sid(), room_id, display_name, wallet_ref=wallet_ref)


@_reports_errors
def handle_confirm_bet(escrow_proof=None, *args):
    _arena().confirm_bet(_get_sid(), escrow_proof)


@_reports_errors
def handle_player_ready(*args):
    _arena().toggle_ready(_get_sid())


@_reports_errors
def handle_player_click(*args):
    _arena().click(_get_sid())


@_reports_errors
def handle_claim_winnings(*args):
    _arena().claim_winnings(_get_sid())


@_reports_errors
def handle_leave_room(*args):
    _arena().leave(_get_sid())


def register_socketio_handlers(namespace: str = '/click-battle') -> None:
    """Register the click battle protocol on ``namespace``."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('rooms:get', handle_get_rooms, namespace=namespace)
    socketio.on_event('room:create', handle_create_room, namespace=namespace)
    socketio.on_event('room:join', handle_join_room, namespace=namespace)
    socketio.on_event('room:confirm-bet', handle_confirm_bet, namespace=namespace)
    socketio.on_event('room:claim-winnings', handle_claim_winnings, namespace=namespace)
    socketio.on_event('room:leave', handle_leave_room, namespace=namespace)
    socketio.on_event('player:ready', handle_player_ready, namespace=namespace)
    socketio.on_event('player:click', handle_player_click, namespace=namespace)
