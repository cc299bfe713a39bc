"""Error taxonomy for sol-wallet.

Every error raised by the core derives from :class:`WalletError` so the CLI
can report it uniformly.  Lookup-style failures also derive from
``LookupError`` and malformed/invalid input from ``ValueError``.
"""

from __future__ import annotations


class WalletError(Exception):
    """Base class for all sol-wallet errors."""


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class KeystoreNotFoundError(WalletError, LookupError):
    """Raised when the key-store file does not exist yet."""

    def __init__(self, path: object) -> None:
        self.path = path
        super().__init__(
            f"No key store found at {path}. Run 'sol-wallet init' to create a wallet."
        )


class WalletNotFoundError(WalletError, LookupError):
    """Raised when no wallet is stored under the requested alias."""

    def __init__(self, alias: str) -> None:
        self.alias = alias
        super().__init__(f"no wallet found for alias: {alias}")


class ActiveWalletNotFoundError(WalletError, LookupError):
    """Raised when the active alias is empty or does not name a stored wallet."""

    def __init__(self, alias: str = "") -> None:
        self.alias = alias
        detail = f" (active alias '{alias}' is not in the store)" if alias else ""
        super().__init__(f"no active wallet found{detail}")


# ---------------------------------------------------------------------------
# Conflict
# ---------------------------------------------------------------------------


class AliasExistsError(WalletError):
    """Raised when writing a wallet whose alias is already taken."""

    def __init__(self, alias: str) -> None:
        self.alias = alias
        super().__init__(f"alias already exists: {alias}")


# ---------------------------------------------------------------------------
# Malformed data
# ---------------------------------------------------------------------------


class KeystoreDecodeError(WalletError, ValueError):
    """Raised when the key-store file exists but cannot be parsed."""


class MalformedKeyError(WalletError, ValueError):
    """Raised when stored or imported key material is not a valid keypair."""


class InstructionDecodeError(WalletError, ValueError):
    """Raised when a transaction or instruction payload cannot be decoded."""


# ---------------------------------------------------------------------------
# Remote failures
# ---------------------------------------------------------------------------


class RemoteError(WalletError):
    """Raised when the ledger RPC node fails or returns an error."""


class LedgerTimeoutError(RemoteError):
    """Raised when a ledger request does not finish within its time budget."""


class TransactionFailedError(RemoteError):
    """Raised when a submitted transaction is rejected or never confirms."""


class RateUnavailableError(WalletError):
    """Raised when the exchange rate cannot be retrieved."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class InvalidAddressError(WalletError, ValueError):
    """Raised for a recipient that is not a valid base58 public key."""


class InvalidAmountError(WalletError, ValueError):
    """Raised for an amount that is not a positive decimal."""


class InvalidAliasError(WalletError, ValueError):
    """Raised for an empty or blank wallet alias."""


class InvalidSeedError(WalletError, ValueError):
    """Raised for a seed phrase with a bad word count, word, or checksum."""
