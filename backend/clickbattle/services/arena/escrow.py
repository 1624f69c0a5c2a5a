import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Dict, Optional

import httpx

from .errors import EscrowFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EscrowReceipt:
    reference: str
    amount: float


class EscrowGateway:
    """Interface to the payment oracle.

    Both calls may block on the network, so the arena always runs them
    from a background task and never while holding a room lock.
    """

    def verify_stake(self, proof: str, amount: float, wallet_ref: Optional[str] = None) -> EscrowReceipt:
        raise NotImplementedError

    def release_payout(self, room_id: str, winner: str, amount: float, escrow_refs: Dict[str, str]) -> None:
        raise NotImplementedError


class TrustingEscrowGateway(EscrowGateway):
    """Development gateway: any non-empty proof counts as paid."""

    def verify_stake(self, proof, amount, wallet_ref=None):
        if not proof:
            raise EscrowFailure('Missing escrow proof')
        return EscrowReceipt(reference=proof, amount=amount)

    def release_payout(self, room_id, winner, amount, escrow_refs):
        logger.info(f"[payout] room={room_id} winner={winner} amount={amount} refs={sorted(escrow_refs.values())}")


class SolanaRpcEscrowGateway(EscrowGateway):
    """Checks stake transfers against a Solana JSON-RPC node.

    A proof is the transaction signature the client got back after
    sending its stake to the escrow account. Payouts are handed to an
    external signer through ``payout_url``.
    """

    ACCEPTED_STATUSES = ('confirmed', 'finalized')

    def __init__(self, rpc_url: str, payout_url: Optional[str] = None, timeout: float = 10.0,
                 client: Optional[httpx.Client] = None) -> None:
        self.rpc_url = rpc_url
        self.payout_url = payout_url
        self._client = client or httpx.Client(timeout=timeout)

    def _rpc(self, method: str, params: list):
        try:
            response = self._client.post(self.rpc_url, json={
                'jsonrpc': '2.0', 'id': 1, 'method': method, 'params': params,
            })
        except httpx.RequestError as exc:
            raise EscrowFailure(f'Escrow node unreachable: {exc}') from exc
        if response.status_code != HTTPStatus.OK:
            raise EscrowFailure(f'Escrow node returned {response.status_code}')
        try:
            payload = response.json()
        except ValueError as exc:
            raise EscrowFailure('Escrow node returned invalid JSON') from exc
        if payload.get('error'):
            raise EscrowFailure(f"Escrow node error: {payload['error'].get('message', payload['error'])}")
        return payload.get('result')

    def verify_stake(self, proof, amount, wallet_ref=None):
        if not proof:
            raise EscrowFailure('Missing escrow proof')
        result = self._rpc('getSignatureStatuses', [[proof], {'searchTransactionHistory': True}])
        statuses = (result or {}).get('value') or [None]
        status = statuses[0]
        if status is None:
            raise EscrowFailure('Stake transaction not found')
        if status.get('err') is not None:
            raise EscrowFailure('Stake transaction failed')
        if status.get('confirmationStatus') not in self.ACCEPTED_STATUSES:
            raise EscrowFailure('Stake transaction not confirmed yet')
        logger.info(f"[escrow-verified] proof={proof} amount={amount} wallet={wallet_ref}")
        return EscrowReceipt(reference=proof, amount=amount)

    def release_payout(self, room_id, winner, amount, escrow_refs):
        if not self.payout_url:
            logger.warning(f"[payout-skip] room={room_id} no PAYOUT_WEBHOOK_URL configured")
            return
        try:
            response = self._client.post(self.payout_url, json={
                'room_id': room_id,
                'winner': winner,
                'amount': amount,
                'escrow_refs': escrow_refs,
            })
        except httpx.RequestError as exc:
            raise EscrowFailure(f'Payout service unreachable: {exc}') from exc
        if response.status_code >= HTTPStatus.BAD_REQUEST:
            raise EscrowFailure(f'Payout service returned {response.status_code}')
        logger.info(f"[payout] room={room_id} winner={winner} amount={amount}")


def build_escrow_gateway(config) -> EscrowGateway:
    backend = config.get('ESCROW_BACKEND', 'trusting')
    if backend == 'solana-rpc':
        return SolanaRpcEscrowGateway(
            rpc_url=config['ESCROW_RPC_URL'],
            payout_url=config.get('PAYOUT_WEBHOOK_URL'),
            timeout=float(config.get('ESCROW_TIMEOUT_SEC', 10)),
        )
    if backend != 'trusting':
        raise ValueError(f'Unknown ESCROW_BACKEND: {backend}')
    return TrustingEscrowGateway()
