import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

from clickbattle.models import RESERVED_NAMES, Room, RoomStatus
from . import machine
from .errors import EscrowFailure, InvalidPayload, InvalidTransition, RoomUnavailable
from .escrow import EscrowGateway
from .registry import RoomRegistry
from .scheduler import RoomTimers, TimerKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArenaSettings:
    countdown_sec: int = 10
    match_duration_sec: int = 30
    finished_grace_sec: float = 30
    fee_fraction: float = 0.05
    staking_enabled: bool = True

    @classmethod
    def from_config(cls, config) -> 'ArenaSettings':
        return cls(
            countdown_sec=int(config.get('COUNTDOWN_SEC', 10)),
            match_duration_sec=int(config.get('MATCH_DURATION_SEC', 30)),
            finished_grace_sec=float(config.get('FINISHED_GRACE_SEC', 30)),
            fee_fraction=float(config.get('FEE_FRACTION', 0.05)),
            staking_enabled=bool(config.get('STAKING_ENABLED', True)),
        )


def _require_text(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayload(f'{field} is required')
    return value.strip()


def _require_display_name(value) -> str:
    display_name = _require_text(value, 'displayName')
    if display_name in RESERVED_NAMES:
        raise InvalidPayload(f'displayName "{display_name}" is reserved')
    return display_name


def _parse_stake(value) -> float:
    if value in (None, ''):
        return 0.0
    try:
        stake = float(value)
    except (TypeError, ValueError):
        raise InvalidPayload('stake must be a number')
    if stake < 0 or stake != stake:
        raise InvalidPayload('stake must not be negative')
    return stake


class Arena:
    """Applies connection events and timer ticks to rooms.

    Every event for a room runs under that room's lock, so a room's
    client events and its own timer ticks never interleave. Escrow calls
    run in background tasks with the lock released and re-enter through
    the same lock with their result.
    """

    def __init__(self, notifier, escrow: EscrowGateway, timers: RoomTimers, spawn: Callable,
                 settings: Optional[ArenaSettings] = None) -> None:
        self.notifier = notifier
        self.escrow = escrow
        self.timers = timers
        self.spawn = spawn
        self.settings = settings or ArenaSettings()
        self.registry = RoomRegistry()

    @contextmanager
    def _locked_room(self, room_id: Optional[str]) -> Iterator[Optional[Room]]:
        lock = self.registry.room_lock(room_id)
        if lock is None:
            yield None
            return
        with lock:
            # The room may have been deleted while we waited for the lock
            yield self.registry.get(room_id)

    # ---- connection lifecycle ----

    def connect(self, connection_id: str) -> None:
        self.registry.open_session(connection_id)

    def disconnect(self, connection_id: str) -> None:
        if self.registry.room_of(connection_id):
            self.leave(connection_id)
        self.registry.close_session(connection_id)

    # ---- lobby ----

    def rooms_list(self) -> List[dict]:
        return self.registry.snapshot_waiting_rooms()

    def room_snapshot(self, room_id: str) -> Optional[dict]:
        with self._locked_room(room_id) as room:
            return room.to_dict() if room else None

    def send_rooms_list(self, connection_id: str) -> None:
        self.notifier.to_connection(connection_id, 'rooms:list', self.rooms_list())

    def _broadcast_rooms_list(self) -> None:
        self.notifier.broadcast('rooms:list', self.rooms_list())

    def create_room(self, connection_id, name, display_name, wallet_ref=None, stake=None):
        name = _require_text(name, 'name')
        display_name = _require_display_name(display_name)
        stake_amount = _parse_stake(stake)
        if self.registry.room_of(connection_id):
            self.leave(connection_id)
        staked = self.settings.staking_enabled and stake_amount > 0
        room, player = self.registry.create_room(
            connection_id, name, display_name, stake_amount=stake_amount, staked=staked, wallet_ref=wallet_ref)
        with self._locked_room(room.id) as current:
            if current is not None:
                self.notifier.enter(connection_id, room.id)
                self.notifier.to_connection(connection_id, 'room:joined', current.to_dict(), player.to_dict())
        self._broadcast_rooms_list()
        return room, player

    def join_room(self, connection_id, room_id, display_name, wallet_ref=None):
        room_id = _require_text(room_id, 'roomId')
        display_name = _require_display_name(display_name)
        # A rejected join leaves the caller's current room untouched
        with self._locked_room(room_id) as room:
            if room is None:
                self.registry.unbind(connection_id, room_id)
                raise RoomUnavailable(room_id)
            self.registry.joinable(connection_id, room_id)
        current = self.registry.room_of(connection_id)
        if current and current != room_id:
            self.leave(connection_id)
        with self._locked_room(room_id) as room:
            if room is None:
                raise RoomUnavailable(room_id)
            # Re-checked here: the seat may have been taken while we left
            room, player = self.registry.join_room(connection_id, room_id, display_name, wallet_ref)
            self.notifier.enter(connection_id, room_id)
            self.notifier.to_connection(connection_id, 'room:joined', room.to_dict(), player.to_dict())
            self.notifier.to_room(room_id, 'room:updated', room.to_dict())
            if room.status == RoomStatus.BET_CONFIRMATION:
                self.notifier.to_room(room_id, 'room:bet-required', room.stake_amount)
        self._broadcast_rooms_list()
        return room, player

    def leave(self, connection_id: str) -> Optional[Room]:
        room_id = self.registry.room_of(connection_id)
        if room_id is None:
            return None
        with self._locked_room(room_id) as room:
            if room is None:
                # Already expired; just drop the stale binding
                self.registry.unbind(connection_id, room_id)
                return None
            self.timers.cancel(room_id)
            if any(p.stake_paid for p in room.players()):
                logger.warning(f"[stake-abandoned] room={room_id} player={connection_id} refs={room.escrow_refs}")
            survivor = self.registry.leave(connection_id)
            self.notifier.exit(connection_id, room_id)
            if survivor is not None:
                self.notifier.to_room(room_id, 'room:updated', survivor.to_dict())
            else:
                self.notifier.close(room_id)
        self._broadcast_rooms_list()
        return survivor

    # ---- bets ----

    def confirm_bet(self, connection_id: str, proof) -> None:
        room_id = self.registry.room_of(connection_id)
        with self._locked_room(room_id) as room:
            if room is None:
                return
            try:
                player = machine.pending_stake(room, connection_id)
            except InvalidTransition as exc:
                logger.debug(f"[bet-ignored] room={room_id} player={connection_id} {exc}")
                return
            proof = _require_text(proof, 'escrowProof')
            machine.check_escrow_ref(room, proof)
            amount, wallet_ref = room.stake_amount, player.wallet_ref
        self.spawn(self._verify_stake, connection_id, room_id, proof, amount, wallet_ref)

    def _verify_stake(self, connection_id, room_id, proof, amount, wallet_ref) -> None:
        try:
            receipt = self.escrow.verify_stake(proof, amount, wallet_ref)
        except EscrowFailure as exc:
            logger.warning(f"[escrow-failed] room={room_id} player={connection_id} {exc}")
            self.notifier.to_connection(connection_id, 'error', str(exc))
            return
        with self._locked_room(room_id) as room:
            if room is None or self.registry.room_of(connection_id) != room_id:
                logger.info(f"[escrow-stale] room={room_id} player={connection_id} no longer seated")
                return
            try:
                machine.confirm_stake(room, connection_id, receipt.reference)
            except InvalidTransition as exc:
                logger.debug(f"[bet-ignored] room={room_id} player={connection_id} {exc}")
                return
            except EscrowFailure as exc:
                logger.warning(f"[escrow-reused] room={room_id} player={connection_id} ref={receipt.reference}")
                self.notifier.to_connection(connection_id, 'error', str(exc))
                return
            logger.info(f"[bet-confirmed] room={room_id} player={connection_id} status={room.status.value}")
            self.notifier.to_room(room_id, 'room:bet-confirmed', connection_id)
            self.notifier.to_room(room_id, 'room:updated', room.to_dict())

    # ---- match ----

    def toggle_ready(self, connection_id: str) -> None:
        room_id = self.registry.room_of(connection_id)
        with self._locked_room(room_id) as room:
            if room is None:
                return
            try:
                started = machine.toggle_ready(room, connection_id, self.settings.countdown_sec)
            except InvalidTransition as exc:
                logger.debug(f"[ready-ignored] room={room_id} player={connection_id} {exc}")
                return
            if started:
                self.timers.arm(room_id, TimerKind.COUNTDOWN, self.tick)
            self.notifier.to_room(room_id, 'room:updated', room.to_dict())

    def click(self, connection_id: str) -> None:
        room_id = self.registry.room_of(connection_id)
        with self._locked_room(room_id) as room:
            if room is None:
                return
            try:
                player = machine.register_click(room, connection_id)
            except InvalidTransition:
                return
            self.notifier.to_room(room_id, 'player:click', connection_id, player.clicks)
            self.notifier.to_room(room_id, 'room:updated', room.to_dict())

    def claim_winnings(self, connection_id: str) -> None:
        room_id = self.registry.room_of(connection_id)
        with self._locked_room(room_id) as room:
            if room is None:
                logger.info(f"[claim-ignored] player={connection_id} room not found")
                return
            machine.claim(room, connection_id)
            winner, amount, refs = room.winner, room.payout_amount, dict(room.escrow_refs)
            logger.info(f"[claim] room={room_id} winner={winner} amount={amount}")
            self.notifier.to_room(room_id, 'room:updated', room.to_dict())
            self.timers.arm(room_id, TimerKind.EXPIRY, self.tick, interval=self.settings.finished_grace_sec)
        self.spawn(self._release_payout, room_id, winner, amount, refs)

    def _release_payout(self, room_id, winner, amount, refs) -> None:
        try:
            self.escrow.release_payout(room_id, winner, amount, refs)
        except EscrowFailure as exc:
            logger.error(f"[payout-failed] room={room_id} winner={winner} amount={amount} {exc}")

    # ---- timers ----

    def tick(self, room_id: str, kind: TimerKind, generation: int) -> bool:
        """Apply one timer tick. Returns whether the timer keeps running."""
        with self._locked_room(room_id) as room:
            if room is None or not self.timers.is_current(room_id, kind, generation):
                logger.debug(f"[tick-stale] room={room_id} kind={kind.value} generation={generation}")
                return False
            try:
                return self._apply_tick(room, kind)
            except InvalidTransition as exc:
                logger.debug(f"[tick-stale] room={room_id} kind={kind.value} {exc}")
                self.timers.cancel(room_id)
                return False
            except Exception:
                logger.exception(f"[tick-error] room={room_id} kind={kind.value}")
                self._force_close(room, 'Room closed after an internal error')
                return False

    def _apply_tick(self, room: Room, kind: TimerKind) -> bool:
        if kind == TimerKind.COUNTDOWN:
            started = machine.countdown_tick(room, self.settings.match_duration_sec)
            self.notifier.to_room(room.id, 'room:countdown', room.countdown)
            if not started:
                return True
            self.timers.cancel(room.id)
            self.notifier.to_room(room.id, 'room:game-start')
            self.notifier.to_room(room.id, 'room:updated', room.to_dict())
            self.timers.arm(room.id, TimerKind.MATCH, self.tick)
            return False

        if kind == TimerKind.MATCH:
            ended = machine.match_tick(room, self.settings.fee_fraction)
            if not ended:
                self.notifier.to_room(room.id, 'room:updated', room.to_dict())
                return True
            self.timers.cancel(room.id)
            logger.info(f"[match-end] room={room.id} winner={room.winner} status={room.status.value}")
            if room.status == RoomStatus.PAYOUT:
                self.notifier.to_room(room.id, 'room:payout-ready', room.winner, room.payout_amount)
            self.notifier.to_room(room.id, 'room:game-end', room.winner)
            self.notifier.to_room(room.id, 'room:updated', room.to_dict())
            if room.status == RoomStatus.FINISHED:
                self.timers.arm(room.id, TimerKind.EXPIRY, self.tick, interval=self.settings.finished_grace_sec)
            return False

        self._expire(room)
        return False

    def _drop_room(self, room: Room) -> None:
        self.timers.cancel(room.id)
        self.registry.remove(room.id)
        for p in room.players():
            self.registry.unbind(p.id, room.id)
        self.notifier.close(room.id)

    def _expire(self, room: Room) -> None:
        if room.status != RoomStatus.FINISHED:
            raise InvalidTransition(f"expiry for {room.id} in status {room.status.value}")
        self._drop_room(room)
        logger.info(f"[room-expire] room={room.id}")

    def _force_close(self, room: Room, message: str) -> None:
        room.status = RoomStatus.FINISHED
        self.notifier.to_room(room.id, 'room:updated', room.to_dict())
        self.notifier.to_room(room.id, 'error', message)
        self._drop_room(room)
        logger.warning(f"[room-force-close] room={room.id}")
