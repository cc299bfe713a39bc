"""Unit tests for SolanaRPCProvider.

These tests verify that the provider issues the right JSON-RPC calls and
parses their responses, using ``httpx.MockTransport`` instead of a node.
"""
import asyncio
import base64
import json
from datetime import datetime, timezone

import httpx
import pytest
from solders.keypair import Keypair

from sol_wallet.exceptions import RemoteError, TransactionFailedError
from sol_wallet.wallet.instructions import decode_transfers
from sol_wallet.wallet.provider import SIGNATURE_PAGE_LIMIT, SolanaRPCProvider
from tests.fixtures import build_transfer_tx, new_address

RPC_URL = "https://rpc.test"


class RPCStub:
    """Records JSON-RPC requests and answers them from a handler table."""

    def __init__(self, **handlers):
        self.handlers = handlers
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        handler = self.handlers[body["method"]]
        result = handler(*body["params"]) if callable(handler) else handler
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def methods(self):
        return [r["method"] for r in self.requests]


def _provider(stub, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return SolanaRPCProvider(RPC_URL, client=client, **kwargs)


def _run(provider, coro_fn):
    async def _go():
        try:
            return await coro_fn(provider)
        finally:
            await provider.aclose()

    return asyncio.run(_go())


def test_get_balance():
    stub = RPCStub(getBalance={"context": {"slot": 1}, "value": 2_500_000_000})

    balance = _run(_provider(stub), lambda p: p.get_balance("Addr"))

    assert balance == 2_500_000_000
    assert stub.requests[0]["params"] == ["Addr", {"commitment": "confirmed"}]
    assert stub.requests[0]["jsonrpc"] == "2.0"


def test_signatures_are_paged_until_exhausted():
    first = [{"signature": f"a{i}"} for i in range(SIGNATURE_PAGE_LIMIT)]
    second = [{"signature": "b0"}, {"signature": "b1"}]

    def pages(address, options):
        return second if options.get("before") else first

    stub = RPCStub(getSignaturesForAddress=pages)

    signatures = _run(_provider(stub), lambda p: p.get_signatures_for_address("Addr"))

    assert len(signatures) == SIGNATURE_PAGE_LIMIT + 2
    assert signatures[-2:] == ["b0", "b1"]
    assert "before" not in stub.requests[0]["params"][1]
    assert stub.requests[1]["params"][1]["before"] == f"a{SIGNATURE_PAGE_LIMIT - 1}"


def test_get_transaction_decodes_base64():
    raw = build_transfer_tx(new_address(), new_address(), 10)
    stub = RPCStub(getTransaction={
        "slot": 321,
        "blockTime": 1_700_000_000,
        "transaction": [base64.b64encode(raw).decode(), "base64"],
    })

    tx = _run(_provider(stub), lambda p: p.get_transaction("Sig"))

    assert tx.data == raw
    assert tx.slot == 321
    options = stub.requests[0]["params"][1]
    assert options["encoding"] == "base64"
    assert options["maxSupportedTransactionVersion"] == 0


def test_get_transaction_not_found():
    stub = RPCStub(getTransaction=None)

    with pytest.raises(RemoteError, match="not found"):
        _run(_provider(stub), lambda p: p.get_transaction("Sig"))


@pytest.mark.parametrize("result,expected", [
    (1_700_000_000, datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)),
    (None, None),
])
def test_get_block_time(result, expected):
    stub = RPCStub(getBlockTime=result)

    assert _run(_provider(stub), lambda p: p.get_block_time(5)) == expected


@pytest.mark.parametrize("response", [
    httpx.Response(500, text="upstream error"),
    httpx.Response(200, text="not json"),
    httpx.Response(200, json={"jsonrpc": "2.0", "id": 1,
                              "error": {"code": -32005, "message": "rate limited"}}),
    httpx.Response(200, json={"jsonrpc": "2.0", "id": 1}),
])
def test_rpc_failures_raise_remote_error(response):
    stub = RPCStub(getBalance=response)

    with pytest.raises(RemoteError):
        _run(_provider(stub), lambda p: p.get_balance("Addr"))


def test_unknown_commitment():
    with pytest.raises(ValueError):
        SolanaRPCProvider(RPC_URL, commitment="eventually")


def test_http_client_is_created_on_first_use():
    provider = SolanaRPCProvider(RPC_URL)
    assert provider._client is None

    asyncio.run(provider.aclose())
    assert provider._client is None

    assert isinstance(provider.client, httpx.AsyncClient)
    asyncio.run(provider.aclose())
    assert provider._client is None


def test_get_transaction_keeps_loaded_addresses():
    raw = build_transfer_tx(new_address(), new_address(), 10)
    stub = RPCStub(getTransaction={
        "slot": 5,
        "transaction": [base64.b64encode(raw).decode(), "base64"],
        "meta": {"loadedAddresses": {"writable": ["W1", "W2"], "readonly": ["R1"]}},
    })

    tx = _run(_provider(stub), lambda p: p.get_transaction("Sig"))

    assert tx.loaded_addresses == ("W1", "W2", "R1")


def test_get_transaction_without_meta_has_no_loaded_addresses():
    raw = build_transfer_tx(new_address(), new_address(), 10)
    stub = RPCStub(getTransaction={
        "slot": 5,
        "transaction": [base64.b64encode(raw).decode(), "base64"],
        "meta": None,
    })

    tx = _run(_provider(stub), lambda p: p.get_transaction("Sig"))

    assert tx.loaded_addresses == ()


# Submission

def _submit_stub(statuses):
    status_iter = iter(statuses)
    return RPCStub(
        getLatestBlockhash={"context": {"slot": 1},
                            "value": {"blockhash": "11111111111111111111111111111111",
                                      "lastValidBlockHeight": 10}},
        sendTransaction="5ignature",
        getSignatureStatuses=lambda sigs, opts: {"context": {"slot": 2},
                                                 "value": [next(status_iter)]},
    )


def test_submit_signed_transfer():
    sender = Keypair()
    recipient = new_address()
    stub = _submit_stub([
        None,
        {"confirmationStatus": "processed", "err": None},
        {"confirmationStatus": "confirmed", "err": None},
    ])
    provider = _provider(stub, poll_interval=0)

    signature = _run(provider, lambda p: p.submit_signed_transfer(bytes(sender), recipient, 12345))

    assert signature == "5ignature"
    assert stub.methods() == [
        "getLatestBlockhash", "sendTransaction",
        "getSignatureStatuses", "getSignatureStatuses", "getSignatureStatuses",
    ]
    encoded, options = stub.requests[1]["params"]
    assert options["encoding"] == "base64"
    (event,) = decode_transfers(base64.b64decode(encoded), None, str(sender.pubkey()))
    assert event.amount == 12345
    assert event.receiver == recipient
    assert event.is_sender is True


def test_submit_rejected_transaction():
    stub = _submit_stub([{"confirmationStatus": "processed",
                          "err": {"InstructionError": [0, "InsufficientFunds"]}}])

    with pytest.raises(TransactionFailedError, match="InsufficientFunds"):
        _run(_provider(stub, poll_interval=0),
             lambda p: p.submit_signed_transfer(bytes(Keypair()), new_address(), 1))


def test_submit_confirmation_timeout():
    stub = _submit_stub([None] * 1000)
    provider = _provider(stub, poll_interval=0.01, confirm_timeout=0.05)

    with pytest.raises(TransactionFailedError, match="not confirmed"):
        _run(provider, lambda p: p.submit_signed_transfer(bytes(Keypair()), new_address(), 1))
