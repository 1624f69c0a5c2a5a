from collections import defaultdict

from clickbattle.services.arena.errors import EscrowFailure
from clickbattle.services.arena.escrow import EscrowGateway, EscrowReceipt

NAMESPACE = '/click-battle'


class ManualTasks:
    """Background task runner the tests step by hand."""

    def __init__(self):
        self.pending = []

    def spawn(self, fn, *args):
        self.pending.append((fn, args))

    def sleep(self, seconds):
        pass

    def run_next(self):
        fn, args = self.pending.pop(0)
        fn(*args)

    def run_all(self, limit=50):
        while self.pending and limit:
            self.run_next()
            limit -= 1


class RecordingNotifier:
    def __init__(self):
        self.sent = []
        self.members = defaultdict(set)

    def to_connection(self, connection_id, event, *args):
        self.sent.append(('conn', connection_id, event, args))

    def to_room(self, room_id, event, *args):
        self.sent.append(('room', room_id, event, args))

    def broadcast(self, event, *args):
        self.sent.append(('all', None, event, args))

    def enter(self, connection_id, room_id):
        self.members[room_id].add(connection_id)

    def exit(self, connection_id, room_id):
        self.members[room_id].discard(connection_id)

    def close(self, room_id):
        self.members.pop(room_id, None)

    def events(self, name):
        return [s for s in self.sent if s[2] == name]

    def args_of(self, name):
        return [s[3] for s in self.events(name)]

    def clear(self):
        self.sent.clear()


class StubEscrow(EscrowGateway):
    def __init__(self, rejected=()):
        self.rejected = set(rejected)
        self.verified = []
        self.payouts = []

    def verify_stake(self, proof, amount, wallet_ref=None):
        if proof in self.rejected:
            raise EscrowFailure('Stake transaction not found')
        self.verified.append((proof, amount, wallet_ref))
        return EscrowReceipt(reference=proof, amount=amount)

    def release_payout(self, room_id, winner, amount, escrow_refs):
        self.payouts.append((room_id, winner, amount, dict(escrow_refs)))
