"""Arena exceptions.

Socket handlers turn these into an ``error`` event for the connection
that caused them; nothing here is ever broadcast to the opponent.
"""


class ArenaError(Exception):
    """Base class for all room/session failures."""
    pass


class RoomUnavailable(ArenaError):
    """Join target is missing, full, or no longer waiting."""
    def __init__(self, room_id, reason='Room not available'):
        self.room_id = room_id
        super().__init__(reason)


class InvalidTransition(ArenaError):
    """Event not valid for the room's current status."""
    pass


class Unauthorized(ArenaError):
    """Caller is not allowed to perform the action (claim by non-winner)."""
    pass


class EscrowFailure(ArenaError):
    """Stake proof could not be verified by the escrow gateway."""
    pass


class InvalidPayload(ArenaError):
    """Malformed arguments on an inbound event."""
    pass
