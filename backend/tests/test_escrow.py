import json

import httpx
import pytest

from clickbattle.services.arena.errors import EscrowFailure
from clickbattle.services.arena.escrow import (
    SolanaRpcEscrowGateway,
    TrustingEscrowGateway,
    build_escrow_gateway,
)

RPC_URL = 'https://rpc.test'
PAYOUT_URL = 'https://payout.test/release'


def _gateway(handler, payout_url=PAYOUT_URL):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return SolanaRpcEscrowGateway(RPC_URL, payout_url=payout_url, client=client)


def _status_response(status):
    return httpx.Response(200, json={
        'jsonrpc': '2.0', 'id': 1,
        'result': {'context': {'slot': 1}, 'value': [status]},
    })


def test_confirmed_signature_is_accepted():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return _status_response({'slot': 5, 'confirmations': None, 'err': None, 'confirmationStatus': 'finalized'})

    receipt = _gateway(handler).verify_stake('sig-1', 0.5, wallet_ref='wallet-a')
    assert receipt.reference == 'sig-1'
    assert receipt.amount == 0.5
    assert seen[0]['method'] == 'getSignatureStatuses'
    assert seen[0]['params'][0] == ['sig-1']


@pytest.mark.parametrize('status,message', [
    (None, 'not found'),
    ({'err': {'InstructionError': [0, 'Custom']}, 'confirmationStatus': 'finalized'}, 'failed'),
    ({'err': None, 'confirmationStatus': 'processed'}, 'not confirmed'),
])
def test_unusable_signatures_are_rejected(status, message):
    gateway = _gateway(lambda request: _status_response(status))
    with pytest.raises(EscrowFailure, match=message):
        gateway.verify_stake('sig-1', 0.5)


def test_rpc_error_becomes_escrow_failure():
    def handler(request):
        return httpx.Response(200, json={'jsonrpc': '2.0', 'id': 1, 'error': {'code': -32602, 'message': 'Invalid param'}})

    with pytest.raises(EscrowFailure, match='Invalid param'):
        _gateway(handler).verify_stake('sig-1', 0.5)


def test_unreachable_node_becomes_escrow_failure():
    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    with pytest.raises(EscrowFailure, match='unreachable'):
        _gateway(handler).verify_stake('sig-1', 0.5)


def test_http_error_status_becomes_escrow_failure():
    with pytest.raises(EscrowFailure, match='503'):
        _gateway(lambda request: httpx.Response(503)).verify_stake('sig-1', 0.5)


def test_payout_posts_to_webhook():
    posted = []

    def handler(request):
        posted.append((str(request.url), json.loads(request.content)))
        return httpx.Response(202)

    _gateway(handler).release_payout('room_1', 'Alice', 1.9, {'a': 'sig-a', 'b': 'sig-b'})
    assert posted == [(PAYOUT_URL, {
        'room_id': 'room_1', 'winner': 'Alice', 'amount': 1.9, 'escrow_refs': {'a': 'sig-a', 'b': 'sig-b'},
    })]


def test_payout_failure_raises():
    with pytest.raises(EscrowFailure):
        _gateway(lambda request: httpx.Response(500)).release_payout('room_1', 'Alice', 1.9, {})


def test_payout_without_webhook_is_skipped():
    calls = []
    _gateway(lambda request: calls.append(request) or httpx.Response(200), payout_url=None).release_payout(
        'room_1', 'Alice', 1.9, {})
    assert calls == []


def test_trusting_gateway_needs_a_proof():
    gateway = TrustingEscrowGateway()
    assert gateway.verify_stake('anything', 1.0).reference == 'anything'
    with pytest.raises(EscrowFailure):
        gateway.verify_stake('', 1.0)


def test_gateway_selected_from_config():
    assert isinstance(build_escrow_gateway({'ESCROW_BACKEND': 'trusting'}), TrustingEscrowGateway)
    gateway = build_escrow_gateway({'ESCROW_BACKEND': 'solana-rpc', 'ESCROW_RPC_URL': RPC_URL})
    assert isinstance(gateway, SolanaRpcEscrowGateway)
    assert gateway.rpc_url == RPC_URL
    with pytest.raises(ValueError):
        build_escrow_gateway({'ESCROW_BACKEND': 'carrier-pigeon'})
