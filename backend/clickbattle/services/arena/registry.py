import logging
import threading
from typing import Dict, List, Optional, Tuple

from clickbattle.models import Player, Room, RoomStatus, Session, SLOT_A, generate_room_id
from . import machine
from .errors import RoomUnavailable

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Owns every live Room and every connection's Session.

    The registry mutex only guards the maps themselves and is never held
    across a timer wait or an external call. Methods that touch a room's
    seats (``join_room``, ``leave``) expect the caller to hold that room's
    lock from ``room_lock``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rooms: Dict[str, Room] = {}
        self._room_locks: Dict[str, threading.RLock] = {}
        self._sessions: Dict[str, Session] = {}

    # ---- sessions ----

    def open_session(self, connection_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(connection_id)
            if session is None:
                session = Session(connection_id=connection_id)
                self._sessions[connection_id] = session
            return session

    def close_session(self, connection_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.pop(connection_id, None)

    def room_of(self, connection_id: str) -> Optional[str]:
        with self._lock:
            session = self._sessions.get(connection_id)
            return session.room_id if session else None

    def _bind(self, connection_id: str, room_id: Optional[str]) -> None:
        with self._lock:
            session = self._sessions.setdefault(connection_id, Session(connection_id=connection_id))
            session.room_id = room_id

    def unbind(self, connection_id: str, room_id: Optional[str] = None) -> None:
        """Clear a binding; with ``room_id`` only if it still points there."""
        with self._lock:
            session = self._sessions.get(connection_id)
            if session is None:
                return
            if room_id is None or session.room_id == room_id:
                session.room_id = None

    # ---- rooms ----

    def get(self, room_id: Optional[str]) -> Optional[Room]:
        if room_id is None:
            return None
        with self._lock:
            return self._rooms.get(room_id)

    def room_lock(self, room_id: Optional[str]) -> Optional[threading.RLock]:
        if room_id is None:
            return None
        with self._lock:
            return self._room_locks.get(room_id)

    def remove(self, room_id: str) -> Optional[Room]:
        with self._lock:
            self._room_locks.pop(room_id, None)
            return self._rooms.pop(room_id, None)

    def list_waiting_rooms(self) -> List[Room]:
        with self._lock:
            return [r for r in self._rooms.values() if r.status == RoomStatus.WAITING]

    def snapshot_waiting_rooms(self) -> List[dict]:
        return [r.to_dict() for r in self.list_waiting_rooms()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    # ---- membership ----

    def create_room(self, host_id: str, name: str, display_name: str, stake_amount: float = 0.0,
                    staked: bool = False, wallet_ref: Optional[str] = None) -> Tuple[Room, Player]:
        host = Player(id=host_id, name=display_name, wallet_ref=wallet_ref)
        with self._lock:
            room_id = generate_room_id()
            while room_id in self._rooms:
                logger.warning(f"[room-id-collision] room={room_id}")
                room_id = generate_room_id()
            room = Room(id=room_id, name=name, slot_a=host, stake_amount=stake_amount, staked=staked)
            self._rooms[room_id] = room
            self._room_locks[room_id] = threading.RLock()
        self._bind(host_id, room_id)
        logger.info(f"[room-create] room={room_id} host={host_id} stake={stake_amount} staked={staked}")
        return room, host

    def joinable(self, connection_id: str, room_id: str) -> Room:
        """Return the room if the connection may take its free seat.

        Raises ``RoomUnavailable`` when the room is gone, full, already
        started, or already holds this connection.
        """
        room = self.get(room_id)
        if room is None:
            raise RoomUnavailable(room_id)
        if room.seat_of(connection_id) is not None:
            raise RoomUnavailable(room_id, 'Already in this room')
        if room.slot_b is not None or room.status != RoomStatus.WAITING:
            raise RoomUnavailable(room_id)
        return room

    def join_room(self, connection_id: str, room_id: str, display_name: str,
                  wallet_ref: Optional[str] = None) -> Tuple[Room, Player]:
        room = self.joinable(connection_id, room_id)
        player = Player(id=connection_id, name=display_name, wallet_ref=wallet_ref)
        room.slot_b = player
        machine.on_opponent_joined(room)
        self._bind(connection_id, room_id)
        logger.info(f"[room-join] room={room_id} player={connection_id} status={room.status.value}")
        return room, player

    def leave(self, connection_id: str) -> Optional[Room]:
        """Remove the connection from its room.

        Returns the surviving room, or None when the room was deleted (or
        was already gone).
        """
        room_id = self.room_of(connection_id)
        if room_id is None:
            return None
        self.unbind(connection_id)
        room = self.get(room_id)
        if room is None:
            logger.info(f"[room-leave] room={room_id} player={connection_id} room already gone")
            return None
        seat = room.seat_of(connection_id)
        if seat == SLOT_A and room.slot_b is None:
            self.remove(room_id)
            logger.info(f"[room-delete] room={room_id} last occupant left")
            return None
        if seat is None:
            return room
        machine.evict(room, seat)
        logger.info(f"[room-leave] room={room_id} player={connection_id} seat={seat} status={room.status.value}")
        return room
