"""Ledger client interface.

The wallet core talks to the Solana network only through
:class:`LedgerClient`, so a test double can stand in for the real RPC
provider.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class RawTransaction:
    """A confirmed transaction as returned by the node."""

    data: bytes  # wire-format transaction
    slot: int
    # addresses resolved from lookup tables, writable then readonly
    loaded_addresses: tuple[str, ...] = ()


class LedgerClient(ABC):
    """Interface for the remote ledger calls the wallet needs."""

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """
        Fetch the balance of an address.

        Returns:
            int: Balance in lamports
        """

    @abstractmethod
    async def get_signatures_for_address(self, address: str) -> list[str]:
        """
        Fetch every transaction signature involving an address.

        Returns:
            list[str]: Base58 signatures, in no guaranteed order
        """

    @abstractmethod
    async def get_transaction(self, signature: str) -> RawTransaction:
        """
        Fetch the wire bytes and confirming slot of a transaction.

        Raises:
            RemoteError: If the node fails or does not know the signature
        """

    @abstractmethod
    async def get_block_time(self, slot: int) -> Optional[datetime]:
        """
        Fetch the production time of a slot.

        Returns:
            datetime: Aware UTC timestamp, or None if the node has none
        """

    @abstractmethod
    async def submit_signed_transfer(
        self, from_key: bytes, to_address: str, lamports: int
    ) -> str:
        """
        Sign a native transfer with *from_key*, submit it and wait for confirmation.

        Args:
            from_key: 64 keypair bytes of the sender
            to_address: Base58 recipient
            lamports: Amount to move

        Returns:
            str: The confirmed transaction signature
        """

    async def aclose(self) -> None:
        """Release any underlying connections."""
