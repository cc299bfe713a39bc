"""Solana wallet core for sol-wallet.

Provides a multi-wallet key store kept in a ``solana-keygen`` compatible
JSON file, a JSON-RPC ledger client, exchange-rate lookup, and a concurrent
transaction-history aggregator.
"""
