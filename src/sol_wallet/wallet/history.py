"""Concurrent reconstruction of an address's transfer history.

For each signature of the address the aggregator fetches the transaction,
then the block time of its slot, and decodes the native transfers it
contains.  Signatures are processed concurrently under a fixed budget and a
per-signature timeout.  The first failure cancels all outstanding work and
is raised to the caller; there is no partial result.
"""

from __future__ import annotations

import asyncio
import logging

from sol_wallet.exceptions import LedgerTimeoutError
from sol_wallet.wallet.instructions import decode_transfers
from sol_wallet.wallet.ledger import LedgerClient
from sol_wallet.wallet.models import TransferEvent

logger = logging.getLogger("sol_wallet.wallet.history")

DEFAULT_MAX_CONCURRENCY = 50
DEFAULT_TASK_TIMEOUT = 10.0


class TransactionHistoryAggregator:
    """Fetches and decodes every native transfer touching an address.

    Parameters
    ----------
    ledger:
        Remote ledger client used for all RPC calls.
    max_concurrency:
        Maximum number of signatures being fetched at the same time.
    task_timeout:
        Seconds allowed for one signature's transaction + block-time fetch.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        task_timeout: float = DEFAULT_TASK_TIMEOUT,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.ledger = ledger
        self.max_concurrency = max_concurrency
        self.task_timeout = task_timeout

    async def fetch(self, address: str) -> list[TransferEvent]:
        """Return every transfer event for *address*, in no particular order."""
        signatures = await self.ledger.get_signatures_for_address(address)
        logger.debug(f"Resolving {len(signatures)} signatures for {address}")

        events: list[TransferEvent] = []
        lock = asyncio.Lock()
        semaphore = asyncio.Semaphore(self.max_concurrency)
        failed = asyncio.Event()

        async def _process(signature: str) -> None:
            async with semaphore:
                # a released slot can wake a queued task before the group
                # cancels it; no fetch may start after a failure
                if failed.is_set():
                    return
                try:
                    decoded = await self._fetch_signature(signature, address)
                except Exception:
                    failed.set()
                    raise
            async with lock:
                events.extend(decoded)

        failure: Exception | None = None
        try:
            async with asyncio.TaskGroup() as group:
                for signature in signatures:
                    group.create_task(_process(signature))
        except ExceptionGroup as eg:
            # TaskGroup records errors in the order they were observed
            failure = eg.exceptions[0]

        if failure is not None:
            logger.warning(f"Transaction history for {address} failed: {failure}")
            raise failure

        logger.debug(f"Decoded {len(events)} transfers for {address}")
        return events

    async def _fetch_signature(self, signature: str, address: str) -> list[TransferEvent]:
        try:
            async with asyncio.timeout(self.task_timeout):
                raw = await self.ledger.get_transaction(signature)
                block_time = await self.ledger.get_block_time(raw.slot)
        except TimeoutError as exc:
            raise LedgerTimeoutError(
                f"fetching transaction {signature} timed out after {self.task_timeout}s"
            ) from exc
        return decode_transfers(raw.data, block_time, address, raw.loaded_addresses)
