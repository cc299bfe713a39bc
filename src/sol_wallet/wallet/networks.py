"""Cluster definitions for the Solana networks sol-wallet can talk to."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Network:
    """A Solana cluster."""

    name: str
    rpc_url: str
    explorer_url: str

    def explorer_tx_url(self, signature: str) -> str:
        """Link to a transaction on the Solana explorer for this cluster."""
        if self.name == "mainnet-beta":
            return f"{self.explorer_url}/tx/{signature}"
        return f"{self.explorer_url}/tx/{signature}?cluster={self.name}"


NETWORKS: dict[str, Network] = {
    "devnet": Network(
        name="devnet",
        rpc_url="https://api.devnet.solana.com",
        explorer_url="https://explorer.solana.com",
    ),
    "testnet": Network(
        name="testnet",
        rpc_url="https://api.testnet.solana.com",
        explorer_url="https://explorer.solana.com",
    ),
    "mainnet-beta": Network(
        name="mainnet-beta",
        rpc_url="https://api.mainnet-beta.solana.com",
        explorer_url="https://explorer.solana.com",
    ),
}


def get_network(name: str) -> Network:
    """Get a network by name. Raises ``KeyError`` if not found."""
    if name not in NETWORKS:
        raise KeyError(
            f"Unknown network '{name}'. Available: {list_network_names()}"
        )
    return NETWORKS[name]


def list_network_names() -> list[str]:
    """Return the names of all supported networks."""
    return list(NETWORKS.keys())
