"""Solana JSON-RPC provider built on ``httpx``."""

from __future__ import annotations

import asyncio
import base64
import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from solders.hash import Hash
from solders.message import Message
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from sol_wallet.exceptions import RemoteError, TransactionFailedError
from sol_wallet.wallet.keys import keypair_from_bytes, parse_address
from sol_wallet.wallet.ledger import LedgerClient, RawTransaction

logger = logging.getLogger("sol_wallet.wallet.provider")

SIGNATURE_PAGE_LIMIT = 1000
_COMMITMENT_ORDER = {"processed": 0, "confirmed": 1, "finalized": 2}


class SolanaRPCProvider(LedgerClient):
    """Talks to a Solana RPC node over HTTP JSON-RPC 2.0.

    Parameters
    ----------
    rpc_url:
        Endpoint of the RPC node.
    commitment:
        Commitment level used for reads and for confirming submissions.
    confirm_timeout:
        Seconds to wait for a submitted transfer to reach *commitment*.
    client:
        Optional pre-built ``httpx.AsyncClient`` (used by tests).  Without
        one, a client is created on the first request.
    """

    def __init__(
        self,
        rpc_url: str,
        commitment: str = "confirmed",
        confirm_timeout: float = 60.0,
        poll_interval: float = 1.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if commitment not in _COMMITMENT_ORDER:
            raise ValueError(f"Unknown commitment level '{commitment}'")
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self._client = client
        self._ids = itertools.count(1)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            resp = await self.client.post(self.rpc_url, json=payload)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as exc:
            raise RemoteError(
                f"{method} failed: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteError(f"{method} failed: {exc}") from exc
        except ValueError as exc:
            raise RemoteError(f"{method} returned invalid JSON: {exc}") from exc

        error = body.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise RemoteError(f"{method} failed: {message}")
        if "result" not in body:
            raise RemoteError(f"{method} returned no result")
        return body["result"]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_balance(self, address: str) -> int:
        result = await self._call(
            "getBalance", [address, {"commitment": self.commitment}]
        )
        return int(result["value"])

    async def get_signatures_for_address(self, address: str) -> list[str]:
        """Page backwards through the address's history until it is exhausted."""
        signatures: list[str] = []
        before: Optional[str] = None
        while True:
            options: dict[str, Any] = {
                "limit": SIGNATURE_PAGE_LIMIT,
                "commitment": self.commitment,
            }
            if before:
                options["before"] = before
            page = await self._call("getSignaturesForAddress", [address, options])
            signatures.extend(entry["signature"] for entry in page)
            if len(page) < SIGNATURE_PAGE_LIMIT:
                break
            before = page[-1]["signature"]
        return signatures

    async def get_transaction(self, signature: str) -> RawTransaction:
        result = await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "base64",
                    "commitment": self.commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if result is None:
            raise RemoteError(f"transaction {signature} not found")
        try:
            encoded, encoding = result["transaction"]
            if encoding != "base64":
                raise ValueError(f"unexpected encoding {encoding}")
            data = base64.b64decode(encoded)
            slot = int(result["slot"])
            loaded = (result.get("meta") or {}).get("loadedAddresses") or {}
            loaded_addresses = tuple(
                list(loaded.get("writable") or []) + list(loaded.get("readonly") or [])
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise RemoteError(
                f"getTransaction returned an unexpected payload for {signature}: {exc}"
            ) from exc
        return RawTransaction(data=data, slot=slot, loaded_addresses=loaded_addresses)

    async def get_block_time(self, slot: int) -> Optional[datetime]:
        result = await self._call("getBlockTime", [slot])
        if result is None:
            return None
        return datetime.fromtimestamp(int(result), tz=timezone.utc)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def _latest_blockhash(self) -> Hash:
        result = await self._call(
            "getLatestBlockhash", [{"commitment": "finalized"}]
        )
        return Hash.from_string(result["value"]["blockhash"])

    async def submit_signed_transfer(
        self, from_key: bytes, to_address: str, lamports: int
    ) -> str:
        """Build, sign, send and confirm a system-program transfer.

        Returns the transaction signature as a base58 string.
        """
        sender = keypair_from_bytes(from_key)
        recipient = parse_address(to_address)

        blockhash = await self._latest_blockhash()
        instruction = transfer(
            TransferParams(
                from_pubkey=sender.pubkey(), to_pubkey=recipient, lamports=lamports
            )
        )
        message = Message.new_with_blockhash([instruction], sender.pubkey(), blockhash)
        tx = Transaction([sender], message, blockhash)

        encoded = base64.b64encode(bytes(tx)).decode("ascii")
        signature = await self._call(
            "sendTransaction",
            [encoded, {"encoding": "base64", "preflightCommitment": self.commitment}],
        )
        logger.info(f"Submitted transfer of {lamports} lamports to {to_address}: {signature}")
        await self._confirm(signature)
        return signature

    async def _confirm(self, signature: str) -> None:
        """Poll signature status until *commitment* is reached."""
        wanted = _COMMITMENT_ORDER[self.commitment]
        try:
            async with asyncio.timeout(self.confirm_timeout):
                while True:
                    result = await self._call(
                        "getSignatureStatuses",
                        [[signature], {"searchTransactionHistory": False}],
                    )
                    status = result["value"][0]
                    if status is not None:
                        if status.get("err"):
                            raise TransactionFailedError(
                                f"transaction {signature} failed: {status['err']}"
                            )
                        reached = _COMMITMENT_ORDER.get(
                            status.get("confirmationStatus") or "processed", 0
                        )
                        if reached >= wanted:
                            return
                    await asyncio.sleep(self.poll_interval)
        except TimeoutError as exc:
            raise TransactionFailedError(
                f"transaction {signature} not confirmed within {self.confirm_timeout}s"
            ) from exc
