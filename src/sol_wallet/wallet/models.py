"""Data models for the key store and transaction history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

LAMPORTS_PER_SOL = 1_000_000_000

_CENTS = Decimal("0.01")


def to_eur(amount_sol: Decimal, rate: Decimal) -> Decimal:
    """Convert SOL to EUR, rounded half-up to cents."""
    return (amount_sol * rate).quantize(_CENTS, rounding=ROUND_HALF_UP)


def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(lamports) / Decimal(LAMPORTS_PER_SOL)


# ---------------------------------------------------------------------------
# Persisted key-store models
# ---------------------------------------------------------------------------


class WalletRecord(BaseModel):
    """One wallet entry in the key-store file.

    ``balance`` is advisory metadata written at creation time; it is never
    synced with the ledger.
    """

    model_config = ConfigDict(populate_by_name=True)

    private_key: str = Field(alias="privateKey")
    balance: Decimal = Decimal("0")
    public_key: str = Field(alias="publicKey")


class WalletStore(BaseModel):
    """The whole key-store file: the active alias plus every wallet."""

    model_config = ConfigDict(populate_by_name=True)

    active_alias: str = Field(default="", alias="activeAlias")
    wallets: dict[str, WalletRecord] = Field(default_factory=dict)

    def active_record(self) -> Optional[WalletRecord]:
        """Return the active wallet, or ``None`` if unset or dangling."""
        if not self.active_alias:
            return None
        return self.wallets.get(self.active_alias)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


# ---------------------------------------------------------------------------
# Plain result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WalletListing:
    """A wallet as shown by ``list_all``."""

    alias: str
    is_active: bool
    balance_eur: Decimal
    public_key: str

    @property
    def label(self) -> str:
        """Display name, e.g. ``"main (Active) // BAL - (€ 10.00)"``."""
        text = self.alias
        if self.is_active:
            text += " (Active)"
        return f"{text} // BAL - (€ {self.balance_eur:.2f})"


@dataclass(frozen=True)
class TransferEvent:
    """A native SOL transfer touching the queried address."""

    amount: int  # lamports
    sender: str
    receiver: str
    timestamp: Optional[datetime]
    is_sender: bool

    @property
    def amount_sol(self) -> Decimal:
        return lamports_to_sol(self.amount)

    @property
    def direction(self) -> str:
        return "Sent" if self.is_sender else "Received"
