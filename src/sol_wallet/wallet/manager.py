"""High-level wallet manager used by the CLI."""

from __future__ import annotations

import logging
import secrets
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from pathlib import Path

from solders.keypair import Keypair

from sol_wallet.config import WalletConfig
from sol_wallet.exceptions import InvalidAmountError
from sol_wallet.wallet.history import TransactionHistoryAggregator
from sol_wallet.wallet.keys import (
    generate_seed_phrase,
    keypair_from_seed_phrase,
    parse_address,
    parse_secret,
)
from sol_wallet.wallet.keystore import KeyStore
from sol_wallet.wallet.ledger import LedgerClient
from sol_wallet.wallet.models import (
    LAMPORTS_PER_SOL,
    TransferEvent,
    WalletListing,
    lamports_to_sol,
    to_eur,
)
from sol_wallet.wallet.networks import get_network
from sol_wallet.wallet.provider import SolanaRPCProvider
from sol_wallet.wallet.rates import KrakenRateProvider, RateProvider

logger = logging.getLogger("sol_wallet.wallet.manager")

_OLDEST = float("-inf")


def random_alias() -> str:
    return f"{secrets.token_hex(3)}-wallet"


def eur_to_lamports(eur_amount: str, rate: Decimal) -> int:
    """Convert a EUR amount string to lamports at *rate* EUR per SOL.

    Fractions of a lamport are truncated.

    Raises
    ------
    InvalidAmountError
        If the amount is not a positive decimal or is worth less than one
        lamport.
    """
    try:
        eur = Decimal(eur_amount.strip())
    except (InvalidOperation, AttributeError) as exc:
        raise InvalidAmountError(f"invalid EUR amount {eur_amount!r}") from exc
    if not eur.is_finite() or eur <= 0:
        raise InvalidAmountError(f"amount must be positive, got {eur_amount!r}")
    if rate <= 0:
        raise InvalidAmountError(f"exchange rate must be positive, got {rate}")

    lamports = int((eur / rate * LAMPORTS_PER_SOL).to_integral_value(rounding=ROUND_DOWN))
    if lamports <= 0:
        raise InvalidAmountError(f"{eur_amount} EUR is less than one lamport")
    return lamports


class WalletManager:
    """Orchestrates key store, ledger client, and rate lookup for wallet operations."""

    def __init__(
        self,
        keystore: KeyStore,
        ledger: LedgerClient,
        rates: RateProvider,
        history: TransactionHistoryAggregator | None = None,
    ) -> None:
        self.keystore = keystore
        self.ledger = ledger
        self.rates = rates
        self.history = history or TransactionHistoryAggregator(ledger)

    @classmethod
    def from_config(cls, config: WalletConfig) -> WalletManager:
        """Wire up the RPC provider, Kraken rates, and key store from *config*."""
        network = get_network(config.network)
        ledger = SolanaRPCProvider(
            config.rpc_url or network.rpc_url,
            commitment=config.send.commitment,
            confirm_timeout=config.send.confirm_timeout_seconds,
        )
        rates = KrakenRateProvider(
            pair=config.rates.pair,
            base_url=config.rates.base_url,
            timeout=config.rates.timeout_seconds,
        )
        history = TransactionHistoryAggregator(
            ledger,
            max_concurrency=config.history.max_concurrency,
            task_timeout=config.history.task_timeout_seconds,
        )
        keystore = KeyStore(Path(config.keystore_path).expanduser())
        return cls(keystore, ledger, rates, history)

    async def aclose(self) -> None:
        await self.ledger.aclose()

    # ------------------------------------------------------------------
    # Wallet lifecycle
    # ------------------------------------------------------------------

    def create(self, alias: str | None = None) -> str:
        """Generate a new keypair, store it as the active wallet, and return its address."""
        alias = alias or random_alias()
        keypair = Keypair()
        address = str(keypair.pubkey())
        self.keystore.write_new_wallet(alias, bytes(keypair), address)
        logger.info(f"Created wallet '{alias}' ({address})")
        return address

    def import_key(self, alias: str | None, private_key: str) -> str:
        """Import an existing secret (base58 or ``solana-keygen`` array)."""
        keypair = parse_secret(private_key)
        alias = alias or random_alias()
        address = str(keypair.pubkey())
        self.keystore.write_new_wallet(alias, bytes(keypair), address)
        logger.info(f"Imported wallet '{alias}' ({address})")
        return address

    def create_paper_wallet(self) -> tuple[str, str]:
        """Generate a paper wallet. Returns ``(seed_phrase, address)``.

        Paper wallets are never written to the key store; the phrase is the
        only copy of the key.
        """
        phrase = generate_seed_phrase()
        address = str(keypair_from_seed_phrase(phrase).pubkey())
        logger.info(f"Generated paper wallet ({address})")
        return phrase, address

    def paper_wallet_address(self, seed_phrase: str) -> str:
        """The address of an existing paper wallet, validating its phrase."""
        return str(keypair_from_seed_phrase(seed_phrase).pubkey())

    def has_wallets(self) -> bool:
        return self.keystore.is_store_present()

    def switch(self, alias: str) -> None:
        self.keystore.set_active(alias)

    def list_wallets(self) -> list[WalletListing]:
        return self.keystore.list_all(self.rates)

    def address(self, alias: str | None = None) -> str:
        """The address of *alias*, or of the active wallet."""
        if alias:
            return self.keystore.public_key_by_alias(alias)
        return self.keystore.current_public_key()

    def _private_key(self, alias: str | None) -> bytes:
        if alias:
            return self.keystore.private_key_by_alias(alias)
        return self.keystore.current_private_key()

    # ------------------------------------------------------------------
    # Balances and rates
    # ------------------------------------------------------------------

    def exchange_rate(self) -> Decimal:
        return self.rates.fetch_rate()

    async def balance_sol(self, alias: str | None = None) -> Decimal:
        lamports = await self.ledger.get_balance(self.address(alias))
        return lamports_to_sol(lamports)

    async def balance_eur(self, alias: str | None = None) -> Decimal:
        """Ledger balance converted to EUR, rounded to cents."""
        sol = await self.balance_sol(alias)
        return to_eur(sol, self.exchange_rate())

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def transaction_history(self, alias: str | None = None) -> list[TransferEvent]:
        """Every native transfer of the wallet, newest first."""
        events = await self.history.fetch(self.address(alias))
        return sorted(
            events,
            key=lambda e: e.timestamp.timestamp() if e.timestamp else _OLDEST,
            reverse=True,
        )

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    async def send(
        self,
        eur_amount: str,
        recipient: str,
        alias: str | None = None,
        seed_phrase: str | None = None,
    ) -> str:
        """Send *eur_amount* worth of SOL to *recipient*. Returns the signature.

        With *seed_phrase* the transfer is signed by that paper wallet instead
        of a stored one.
        """
        parse_address(recipient)
        rate = self.exchange_rate()
        lamports = eur_to_lamports(eur_amount, rate)
        if seed_phrase is not None:
            key = bytes(keypair_from_seed_phrase(seed_phrase))
        else:
            key = self._private_key(alias)
        signature = await self.ledger.submit_signed_transfer(key, recipient, lamports)
        logger.info(f"Sent {lamports} lamports ({eur_amount} EUR) to {recipient}: {signature}")
        return signature
