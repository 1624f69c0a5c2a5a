"""Arena domain services: rooms, timers and escrow.

This package holds the in-memory room orchestrator. It knows nothing about
HTTP or Socket.IO request handling; socket handlers and routes call into
``Arena`` and it pushes events back out through a notifier.
"""
from .errors import ArenaError, EscrowFailure, InvalidPayload, InvalidTransition, RoomUnavailable, Unauthorized
from .orchestrator import Arena, ArenaSettings
from .scheduler import RoomTimers, TimerKind

__all__ = [
    'Arena',
    'ArenaSettings',
    'ArenaError',
    'EscrowFailure',
    'InvalidPayload',
    'InvalidTransition',
    'RoomTimers',
    'RoomUnavailable',
    'TimerKind',
    'Unauthorized',
]
