from clickbattle.models import NO_WINNER, TIE, Room


def compute_winner(room: Room) -> str:
    """Return the winning player's name, ``Tie`` or ``No winner``.

    Higher click count wins. Equal counts (including 0-0) are a tie, and a
    room that lost a player before the clock ran out has no winner.
    """
    a, b = room.slot_a, room.slot_b
    if a is None or b is None:
        return NO_WINNER
    if a.clicks > b.clicks:
        return a.name
    if b.clicks > a.clicks:
        return b.name
    return TIE


def is_strict_winner(winner) -> bool:
    return winner is not None and winner not in (TIE, NO_WINNER)


def payout_amount(total_pot: float, fee_fraction: float) -> float:
    # 9 decimals matches lamport precision on the payment side
    return round(total_pot * (1 - fee_fraction), 9)
