"""Multi-wallet key store backed by a single JSON file.

The file holds every managed wallet plus the alias of the active one::

    {"activeAlias": "main",
     "wallets": {"main": {"privateKey": "[..64 ints..]",
                          "balance": "0",
                          "publicKey": "<base58>"}}}

Nothing is cached between calls: each operation reads the file fresh, and
each mutation rewrites the whole file atomically.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from sol_wallet.exceptions import (
    ActiveWalletNotFoundError,
    AliasExistsError,
    InvalidAliasError,
    KeystoreDecodeError,
    KeystoreNotFoundError,
    WalletNotFoundError,
)
from sol_wallet.wallet.keys import decode_private_key, encode_private_key
from sol_wallet.wallet.models import (
    WalletListing,
    WalletRecord,
    WalletStore,
    to_eur,
)

if TYPE_CHECKING:
    from sol_wallet.wallet.rates import RateProvider

logger = logging.getLogger("sol_wallet.wallet.keystore")


class KeyStore:
    """Read and mutate the wallets stored in *path*."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    # ------------------------------------------------------------------
    # File I/O
    # ------------------------------------------------------------------

    def is_store_present(self) -> bool:
        """Check whether the key-store file exists.

        Raises
        ------
        KeystoreDecodeError
            If the path exists but is not a regular file.
        """
        if not self.path.exists():
            return False
        if not self.path.is_file():
            raise KeystoreDecodeError(f"Key store path {self.path} is not a file")
        return True

    def _read(self) -> WalletStore:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            raise KeystoreNotFoundError(self.path) from None
        except OSError as exc:
            # a directory or an unreadable file
            raise KeystoreDecodeError(
                f"Key store {self.path} could not be read: {exc}"
            ) from exc
        try:
            return WalletStore.model_validate_json(raw)
        except ValidationError as exc:
            raise KeystoreDecodeError(
                f"Key store {self.path} could not be parsed: {exc}"
            ) from exc

    def _read_or_empty(self) -> WalletStore:
        if not self.is_store_present():
            return WalletStore()
        return self._read()

    def _write(self, store: WalletStore) -> None:
        """Replace the key-store file with *store* in one atomic step."""
        payload = store.to_json().encode("utf-8")
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def active_alias(self) -> str:
        """Return the active alias (empty string when none is set)."""
        return self._read().active_alias

    def _active(self) -> WalletRecord:
        store = self._read()
        record = store.active_record()
        if record is None:
            raise ActiveWalletNotFoundError(store.active_alias)
        return record

    def _by_alias(self, alias: str) -> WalletRecord:
        store = self._read()
        record = store.wallets.get(alias)
        if record is None:
            raise WalletNotFoundError(alias)
        return record

    def current_private_key(self) -> bytes:
        """Return the 64 keypair bytes of the active wallet."""
        return decode_private_key(self._active().private_key)

    def private_key_by_alias(self, alias: str) -> bytes:
        """Return the 64 keypair bytes of the wallet named *alias*."""
        return decode_private_key(self._by_alias(alias).private_key)

    def current_public_key(self) -> str:
        """Return the base58 public key of the active wallet."""
        return self._active().public_key

    def public_key_by_alias(self, alias: str) -> str:
        """Return the base58 public key of the wallet named *alias*."""
        return self._by_alias(alias).public_key

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_active(self, alias: str) -> None:
        """Make *alias* the active wallet.

        Raises
        ------
        WalletNotFoundError
            If *alias* is not stored.  The file is not touched.
        """
        store = self._read()
        if alias not in store.wallets:
            raise WalletNotFoundError(alias)
        store.active_alias = alias
        self._write(store)
        logger.info(f"Active wallet set to '{alias}'")

    def write_new_wallet(self, alias: str, key: bytes, public_key: str) -> None:
        """Add a wallet and make it active.

        The new store is fully built in memory before the file is replaced,
        so a failure at any point leaves the previous file intact.

        Raises
        ------
        AliasExistsError
            If *alias* is already stored.
        InvalidAliasError
            If *alias* is empty or blank.
        """
        if not alias or not alias.strip():
            raise InvalidAliasError("wallet alias must not be empty")
        store = self._read_or_empty()
        if alias in store.wallets:
            raise AliasExistsError(alias)

        record = WalletRecord(
            private_key=encode_private_key(key),
            public_key=public_key,
        )
        updated = store.model_copy(deep=True)
        updated.wallets[alias] = record
        updated.active_alias = alias
        self._write(updated)
        logger.info(f"Wallet '{alias}' ({public_key}) written to {self.path}")

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_all(self, rate_provider: RateProvider) -> list[WalletListing]:
        """List every wallet with its advisory balance converted to EUR.

        The exchange rate is fetched first; if that fails the error
        propagates and nothing is returned.  Entries are sorted by alias.
        """
        store = self._read()
        rate = rate_provider.fetch_rate()
        return [
            WalletListing(
                alias=alias,
                is_active=alias == store.active_alias,
                balance_eur=to_eur(record.balance, rate),
                public_key=record.public_key,
            )
            for alias, record in sorted(store.wallets.items())
        ]
