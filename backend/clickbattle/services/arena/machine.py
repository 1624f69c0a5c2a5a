"""Per-room state transitions.

Every function here mutates a single Room in place and assumes the caller
holds that room's lock. Rejected transitions raise ``InvalidTransition``
(dropped as a no-op by the caller), ``Unauthorized`` or ``EscrowFailure``
(both reported back to the connection that asked).
"""
from clickbattle.models import Player, Room, RoomStatus, SLOT_A
from .errors import EscrowFailure, InvalidTransition, Unauthorized
from .scoring import compute_winner, is_strict_winner, payout_amount


def on_opponent_joined(room: Room) -> None:
    room.status = RoomStatus.BET_CONFIRMATION if room.staked else RoomStatus.READY


def evict(room: Room, seat: str) -> None:
    """Drop the player in ``seat``; the survivor always ends up in slot A."""
    if seat == SLOT_A:
        room.slot_a = room.slot_b
    room.slot_b = None
    room.status = RoomStatus.WAITING
    room.reset_match()


def _seated(room: Room, connection_id: str) -> Player:
    player = room.player(connection_id)
    if player is None:
        raise InvalidTransition(f"{connection_id} is not seated in {room.id}")
    return player


def pending_stake(room: Room, connection_id: str) -> Player:
    """Return the caller's player if their stake still needs confirming."""
    if room.status != RoomStatus.BET_CONFIRMATION:
        raise InvalidTransition(f"no bet pending in {room.id} (status={room.status.value})")
    player = _seated(room, connection_id)
    if player.stake_paid:
        raise InvalidTransition(f"stake already confirmed for {connection_id}")
    return player


def check_escrow_ref(room: Room, escrow_ref: str) -> None:
    """One escrow transaction backs exactly one stake."""
    if escrow_ref in room.escrow_refs.values():
        raise EscrowFailure('Stake transaction already used')


def confirm_stake(room: Room, connection_id: str, escrow_ref: str) -> bool:
    """Mark the caller's stake paid. True once both stakes are in."""
    player = pending_stake(room, connection_id)
    check_escrow_ref(room, escrow_ref)
    player.stake_paid = True
    room.escrow_refs[room.seat_of(connection_id)] = escrow_ref
    if all(p.stake_paid for p in room.players()) and len(room.players()) == 2:
        room.status = RoomStatus.READY
        room.total_pot = room.stake_amount * 2
        return True
    return False


def toggle_ready(room: Room, connection_id: str, countdown_sec: int) -> bool:
    """Flip the caller's ready flag. True when this started the countdown."""
    if room.status != RoomStatus.READY:
        raise InvalidTransition(f"cannot ready in {room.id} (status={room.status.value})")
    player = _seated(room, connection_id)
    player.is_ready = not player.is_ready
    if room.slot_a and room.slot_b and room.slot_a.is_ready and room.slot_b.is_ready:
        room.status = RoomStatus.COUNTDOWN
        room.countdown = countdown_sec
        return True
    return False


def countdown_tick(room: Room, match_duration_sec: int) -> bool:
    """Advance the countdown by one. True when play has started."""
    if room.status != RoomStatus.COUNTDOWN:
        raise InvalidTransition(f"countdown tick in {room.id} (status={room.status.value})")
    room.countdown -= 1
    if room.countdown <= 0:
        room.countdown = 0
        room.status = RoomStatus.PLAYING
        room.match_clock = match_duration_sec
        return True
    return False


def register_click(room: Room, connection_id: str) -> Player:
    if room.status != RoomStatus.PLAYING:
        raise InvalidTransition(f"click in {room.id} (status={room.status.value})")
    player = _seated(room, connection_id)
    player.clicks += 1
    return player


def match_tick(room: Room, fee_fraction: float) -> bool:
    """Advance the match clock by one. True when the match has ended."""
    if room.status != RoomStatus.PLAYING:
        raise InvalidTransition(f"match tick in {room.id} (status={room.status.value})")
    room.match_clock -= 1
    if room.match_clock > 0:
        return False
    room.match_clock = 0
    finish(room, fee_fraction)
    return True


def finish(room: Room, fee_fraction: float) -> None:
    room.status = RoomStatus.FINISHED
    room.winner = compute_winner(room)
    if room.staked and is_strict_winner(room.winner):
        room.status = RoomStatus.PAYOUT
        room.payout_amount = payout_amount(room.total_pot, fee_fraction)


def claim(room: Room, connection_id: str) -> Player:
    """Accept a winnings claim from the seated winner.

    The winner is matched by display name, the only identity a player
    reports about themselves.
    """
    if room.status != RoomStatus.PAYOUT:
        raise Unauthorized('No winnings to claim')
    player = room.player(connection_id)
    if player is None or player.name != room.winner:
        raise Unauthorized('Only the winner can claim winnings')
    room.status = RoomStatus.FINISHED
    return player
