import itertools
import random
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class RoomStatus(str, Enum):
    WAITING = 'waiting'
    BET_CONFIRMATION = 'bet_confirmation'
    READY = 'ready'
    COUNTDOWN = 'countdown'
    PLAYING = 'playing'
    FINISHED = 'finished'
    PAYOUT = 'payout'


# Winner sentinels
TIE = 'Tie'
NO_WINNER = 'No winner'
# Sentinels are never valid display names
RESERVED_NAMES = (TIE, NO_WINNER)

SLOT_A = 'a'
SLOT_B = 'b'

_room_sequence = itertools.count(1)


def generate_room_id(suffix_length=9):
    """Generate a room id that is unique for the lifetime of the process."""
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=suffix_length))
    return f"room_{int(time.time() * 1000)}_{next(_room_sequence)}{suffix}"


@dataclass
class Session:
    connection_id: str
    room_id: Optional[str] = None


@dataclass
class Player:
    id: str
    name: str
    wallet_ref: Optional[str] = None
    stake_paid: bool = False
    clicks: int = 0
    is_ready: bool = False

    def reset(self):
        self.stake_paid = False
        self.clicks = 0
        self.is_ready = False

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'stake_paid': self.stake_paid,
            'clicks': self.clicks,
            'is_ready': self.is_ready,
        }


@dataclass
class Room:
    id: str
    name: str
    slot_a: Optional[Player]
    stake_amount: float = 0.0
    # True when the room goes through bet confirmation before ready
    staked: bool = False
    slot_b: Optional[Player] = None
    status: RoomStatus = RoomStatus.WAITING
    countdown: int = 0
    match_clock: int = 0
    winner: Optional[str] = None
    total_pot: float = 0.0
    payout_amount: float = 0.0
    escrow_refs: Dict[str, str] = field(default_factory=dict)

    def seat_of(self, connection_id: str) -> Optional[str]:
        if self.slot_a is not None and self.slot_a.id == connection_id:
            return SLOT_A
        if self.slot_b is not None and self.slot_b.id == connection_id:
            return SLOT_B
        return None

    def player(self, connection_id: str) -> Optional[Player]:
        seat = self.seat_of(connection_id)
        if seat == SLOT_A:
            return self.slot_a
        if seat == SLOT_B:
            return self.slot_b
        return None

    def players(self):
        return [p for p in (self.slot_a, self.slot_b) if p is not None]

    def reset_match(self):
        """Clear every per-match field, keeping the seated players."""
        for p in self.players():
            p.reset()
        self.countdown = 0
        self.match_clock = 0
        self.winner = None
        self.total_pot = 0.0
        self.payout_amount = 0.0
        self.escrow_refs = {}

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'stake_amount': self.stake_amount,
            'staked': self.staked,
            'slot_a': self.slot_a.to_dict() if self.slot_a else None,
            'slot_b': self.slot_b.to_dict() if self.slot_b else None,
            'status': self.status.value,
            'countdown': self.countdown,
            'match_clock': self.match_clock,
            'winner': self.winner,
            'total_pot': self.total_pot,
            'payout_amount': self.payout_amount,
        }
