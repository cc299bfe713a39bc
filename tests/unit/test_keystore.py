"""Unit tests for the JSON key store."""
import json
from decimal import Decimal

import pytest
from solders.keypair import Keypair

from sol_wallet.exceptions import (
    ActiveWalletNotFoundError,
    AliasExistsError,
    InvalidAliasError,
    KeystoreDecodeError,
    KeystoreNotFoundError,
    RateUnavailableError,
    WalletNotFoundError,
)
from sol_wallet.wallet.keys import encode_private_key
from sol_wallet.wallet.keystore import KeyStore
from tests.fixtures import FakeRates


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "standard.solana-keygen.json"


@pytest.fixture
def keystore(store_path):
    return KeyStore(store_path)


def _add(keystore, alias):
    keypair = Keypair()
    keystore.write_new_wallet(alias, bytes(keypair), str(keypair.pubkey()))
    return keypair


def _write_raw(path, data):
    path.write_text(json.dumps(data))


# Presence and decoding

def test_store_absent(keystore):
    assert keystore.is_store_present() is False
    with pytest.raises(KeystoreNotFoundError):
        keystore.current_public_key()


def test_store_path_is_directory(tmp_path):
    keystore = KeyStore(tmp_path)
    with pytest.raises(KeystoreDecodeError):
        keystore.is_store_present()


def test_reading_a_directory_is_a_decode_error(tmp_path):
    keystore = KeyStore(tmp_path)
    with pytest.raises(KeystoreDecodeError, match="could not be read"):
        keystore.current_public_key()
    with pytest.raises(KeystoreDecodeError):
        keystore.list_all(FakeRates())


@pytest.mark.parametrize("content", [
    "not json",
    '{"activeAlias": "a", "wallets": {"a": {"balance": "0"}}}',
    '{"wallets": []}',
])
def test_malformed_store(keystore, store_path, content):
    store_path.write_text(content)

    assert keystore.is_store_present() is True
    with pytest.raises(KeystoreDecodeError):
        keystore.current_public_key()


# Creation

def test_first_wallet_becomes_active(keystore, store_path):
    keypair = _add(keystore, "alice")

    assert keystore.active_alias() == "alice"
    assert keystore.current_public_key() == str(keypair.pubkey())
    assert keystore.current_private_key() == bytes(keypair)

    on_disk = json.loads(store_path.read_text())
    assert on_disk["activeAlias"] == "alice"
    record = on_disk["wallets"]["alice"]
    assert json.loads(record["privateKey"]) == list(bytes(keypair))
    assert record["balance"] == "0"
    assert record["publicKey"] == str(keypair.pubkey())


def test_new_wallet_becomes_active(keystore):
    _add(keystore, "alice")
    bob = _add(keystore, "bob")

    assert keystore.active_alias() == "bob"
    assert keystore.current_public_key() == str(bob.pubkey())


def test_store_file_is_private(keystore, store_path):
    _add(keystore, "alice")

    assert store_path.stat().st_mode & 0o777 == 0o600
    assert [p.name for p in store_path.parent.iterdir()] == [store_path.name]


def test_duplicate_alias_leaves_store_unchanged(keystore, store_path):
    _add(keystore, "alice")
    before = store_path.read_bytes()

    with pytest.raises(AliasExistsError, match="alias already exists: alice"):
        _add(keystore, "alice")

    assert store_path.read_bytes() == before


@pytest.mark.parametrize("alias", ["", "   ", "\t\n"])
def test_blank_alias_is_rejected(keystore, store_path, alias):
    keypair = Keypair()

    with pytest.raises(InvalidAliasError):
        keystore.write_new_wallet(alias, bytes(keypair), str(keypair.pubkey()))

    assert not store_path.exists()


def test_blank_alias_leaves_existing_store_unchanged(keystore, store_path):
    _add(keystore, "alice")
    before = store_path.read_bytes()

    with pytest.raises(ValueError):
        _add(keystore, " ")

    assert store_path.read_bytes() == before


def test_alias_lookup(keystore):
    alice = _add(keystore, "alice")
    _add(keystore, "bob")

    assert keystore.public_key_by_alias("alice") == str(alice.pubkey())
    assert keystore.private_key_by_alias("alice") == bytes(alice)
    with pytest.raises(WalletNotFoundError, match="no wallet found for alias: carol"):
        keystore.public_key_by_alias("carol")


# Switching

def test_set_active(keystore):
    alice = _add(keystore, "alice")
    _add(keystore, "bob")

    keystore.set_active("alice")

    assert keystore.active_alias() == "alice"
    assert keystore.current_public_key() == str(alice.pubkey())


def test_set_active_unknown_alias(keystore, store_path):
    _add(keystore, "alice")
    before = store_path.read_bytes()

    with pytest.raises(WalletNotFoundError):
        keystore.set_active("ghost")

    assert store_path.read_bytes() == before
    assert keystore.active_alias() == "alice"


def test_set_active_without_store(keystore, store_path):
    with pytest.raises(KeystoreNotFoundError):
        keystore.set_active("alice")
    assert not store_path.exists()


def test_dangling_active_alias(keystore, store_path):
    keypair = Keypair()
    _write_raw(store_path, {
        "activeAlias": "gone",
        "wallets": {"a": {
            "privateKey": encode_private_key(bytes(keypair)),
            "balance": "0",
            "publicKey": str(keypair.pubkey()),
        }},
    })

    with pytest.raises(ActiveWalletNotFoundError):
        keystore.current_public_key()
    with pytest.raises(ActiveWalletNotFoundError):
        keystore.current_private_key()


def test_stored_key_must_be_64_bytes(keystore, store_path):
    _write_raw(store_path, {
        "activeAlias": "a",
        "wallets": {"a": {
            "privateKey": json.dumps(list(range(32))),
            "balance": "0",
            "publicKey": "x",
        }},
    })

    with pytest.raises(ValueError):
        keystore.current_private_key()


# Listing

def test_list_all_labels(keystore, store_path):
    a, b = Keypair(), Keypair()
    _write_raw(store_path, {
        "activeAlias": "a",
        "wallets": {
            "b": {"privateKey": encode_private_key(bytes(b)), "balance": "0",
                  "publicKey": str(b.pubkey())},
            "a": {"privateKey": encode_private_key(bytes(a)), "balance": "2",
                  "publicKey": str(a.pubkey())},
        },
    })
    rates = FakeRates(Decimal("5.00"))

    listings = keystore.list_all(rates)

    assert [entry.alias for entry in listings] == ["a", "b"]
    assert listings[0].label == "a (Active) // BAL - (€ 10.00)"
    assert listings[0].public_key == str(a.pubkey())
    assert listings[1].label == "b // BAL - (€ 0.00)"
    assert rates.calls == 1


def test_list_all_rate_failure(keystore):
    _add(keystore, "alice")

    with pytest.raises(RateUnavailableError):
        keystore.list_all(FakeRates(None))


def test_list_all_without_store(keystore):
    with pytest.raises(KeystoreNotFoundError):
        keystore.list_all(FakeRates())
