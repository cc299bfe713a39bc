"""Private-key encoding compatible with ``solana-keygen`` key files.

``solana-keygen`` stores a keypair as a JSON array of the 64 secret-key
bytes (32-byte seed followed by the 32-byte public key).  The key store keeps
that exact text in each wallet's ``privateKey`` field.
"""

from __future__ import annotations

import json

import base58
from mnemonic import Mnemonic
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from sol_wallet.exceptions import (
    InvalidAddressError,
    InvalidSeedError,
    MalformedKeyError,
)

KEYPAIR_LENGTH = 64
SEED_PHRASE_WORD_COUNTS = (12, 15, 18, 21, 24)

_mnemonic = Mnemonic("english")


def encode_private_key(key: bytes) -> str:
    """Encode 64 keypair bytes as a ``solana-keygen`` JSON array."""
    if len(key) != KEYPAIR_LENGTH:
        raise MalformedKeyError(
            f"expected {KEYPAIR_LENGTH} key bytes, got {len(key)}"
        )
    return json.dumps(list(key), separators=(",", ":"))


def decode_private_key(text: str) -> bytes:
    """Decode a stored private key back to its 64 raw bytes.

    Accepts the ``solana-keygen`` array form.  Key stores written by older
    releases held a base58 string instead; that form is still readable.
    """
    text = text.strip()
    if not text.startswith("["):
        return _decode_base58_key(text)

    try:
        values = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedKeyError(f"private key is not a valid JSON array: {exc}") from exc

    if not isinstance(values, list):
        raise MalformedKeyError("private key must be a JSON array of integers")
    if len(values) != KEYPAIR_LENGTH:
        raise MalformedKeyError(
            f"expected {KEYPAIR_LENGTH} key bytes, got {len(values)}"
        )
    for value in values:
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 255:
            raise MalformedKeyError(f"invalid key byte: {value!r}")
    return bytes(values)


def _decode_base58_key(text: str) -> bytes:
    try:
        raw = base58.b58decode(text)
    except ValueError as exc:
        raise MalformedKeyError(f"private key is not valid base58: {exc}") from exc
    if len(raw) != KEYPAIR_LENGTH:
        raise MalformedKeyError(
            f"expected {KEYPAIR_LENGTH} key bytes, got {len(raw)}"
        )
    return raw


def keypair_from_bytes(key: bytes) -> Keypair:
    """Build a :class:`Keypair`, checking that the public half matches the seed."""
    try:
        keypair = Keypair.from_bytes(key)
        derived = Keypair.from_seed(bytes(key[:32]))
    except Exception as exc:
        raise MalformedKeyError(f"not a valid ed25519 keypair: {exc}") from exc
    if derived.pubkey() != keypair.pubkey():
        raise MalformedKeyError("public key does not match the secret seed")
    return keypair


def parse_secret(text: str) -> Keypair:
    """Parse a user-supplied secret (base58 or JSON array) into a keypair."""
    return keypair_from_bytes(decode_private_key(text))


def parse_address(text: str) -> Pubkey:
    """Parse a base58 public key, raising :class:`InvalidAddressError`."""
    try:
        return Pubkey.from_string(text.strip())
    except Exception as exc:
        raise InvalidAddressError(f"invalid address {text!r}: {exc}") from exc


# ---------------------------------------------------------------------------
# Seed phrases (paper wallets)
# ---------------------------------------------------------------------------


def generate_seed_phrase(strength: int = 128) -> str:
    """Generate a new English BIP39 phrase (12 words at 128 bits)."""
    return _mnemonic.generate(strength=strength)


def validate_seed_phrase(phrase: str) -> str:
    """Check a BIP39 phrase and return it with normalized whitespace.

    Raises
    ------
    InvalidSeedError
        If the phrase is empty, has a word count other than 12, 15, 18, 21
        or 24, or fails the wordlist/checksum check.
    """
    words = phrase.split()
    if not words:
        raise InvalidSeedError("seed phrase is empty")
    if len(words) not in SEED_PHRASE_WORD_COUNTS:
        raise InvalidSeedError(
            f"invalid seed phrase length: got {len(words)} words, "
            f"expected one of {', '.join(map(str, SEED_PHRASE_WORD_COUNTS))}"
        )
    normalized = " ".join(word.lower() for word in words)
    unknown = [word for word in normalized.split() if word not in _mnemonic.wordlist]
    if unknown:
        raise InvalidSeedError(f"seed phrase has {len(unknown)} word(s) not in the BIP39 wordlist")
    if not _mnemonic.check(normalized):
        raise InvalidSeedError("seed phrase is not a valid BIP39 mnemonic")
    return normalized


def keypair_from_seed_phrase(phrase: str, passphrase: str = "") -> Keypair:
    """Derive the keypair of a paper wallet.

    The ed25519 seed is the first 32 bytes of the BIP39 seed, the same
    derivation ``solana-keygen recover`` uses without a derivation path.
    """
    normalized = validate_seed_phrase(phrase)
    seed = Mnemonic.to_seed(normalized, passphrase=passphrase)
    return Keypair.from_seed(seed[:32])
