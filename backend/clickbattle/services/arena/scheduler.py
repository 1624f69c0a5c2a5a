import itertools
import logging
import threading
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class TimerKind(str, Enum):
    COUNTDOWN = 'countdown'
    MATCH = 'match'
    EXPIRY = 'expiry'


# on_tick(room_id, kind, generation) -> keep ticking?
TickHandler = Callable[[str, TimerKind, int], bool]


class RoomTimers:
    """At most one ticking timer per room, each tagged with a generation.

    Arming a timer supersedes whatever the room had before; ``cancel``
    forgets the room's generation so any tick already in flight is
    discarded on delivery. ``spawn``/``sleep`` are the Socket.IO
    background task primitives in production.
    """

    def __init__(self, spawn: Callable, sleep: Callable[[float], None], tick_interval: float = 1.0) -> None:
        self._spawn = spawn
        self._sleep = sleep
        self.tick_interval = tick_interval
        self._lock = threading.Lock()
        self._active: Dict[str, Tuple[TimerKind, int]] = {}
        self._generations = itertools.count(1)

    def arm(self, room_id: str, kind: TimerKind, on_tick: TickHandler, interval: Optional[float] = None) -> int:
        delay = self.tick_interval if interval is None else interval
        with self._lock:
            generation = next(self._generations)
            previous = self._active.get(room_id)
            self._active[room_id] = (kind, generation)
        if previous is not None:
            logger.debug(f"[timer-replace] room={room_id} old={previous[0].value}#{previous[1]}")
        logger.info(f"[timer-set] room={room_id} kind={kind.value} generation={generation} interval={delay}s")
        self._spawn(self._worker, room_id, kind, generation, on_tick, delay)
        return generation

    def cancel(self, room_id: str) -> bool:
        with self._lock:
            previous = self._active.pop(room_id, None)
        if previous is not None:
            logger.info(f"[timer-cancel] room={room_id} kind={previous[0].value} generation={previous[1]}")
        return previous is not None

    def is_current(self, room_id: str, kind: TimerKind, generation: int) -> bool:
        with self._lock:
            return self._active.get(room_id) == (kind, generation)

    def active(self, room_id: str) -> Optional[TimerKind]:
        with self._lock:
            entry = self._active.get(room_id)
        return entry[0] if entry else None

    def _worker(self, room_id: str, kind: TimerKind, generation: int, on_tick: TickHandler, delay: float) -> None:
        while True:
            self._sleep(delay)
            if not self.is_current(room_id, kind, generation):
                logger.debug(f"[timer-abort] room={room_id} kind={kind.value} generation={generation} superseded")
                return
            if not on_tick(room_id, kind, generation):
                return
