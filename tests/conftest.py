"""Pytest configuration: register shared fixtures."""
from tests.fixtures import fake_ledger, fake_rates  # noqa: F401
