"""Shared test fixtures for sol-wallet tests."""
from .mock_clients import FakeLedger, FakeRates, fake_ledger, fake_rates
from .transactions import (
    build_transfer_tx,
    build_raw_tx,
    build_v0_transfer_tx,
    new_address,
    transfer_ix,
)
