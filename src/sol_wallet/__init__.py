"""sol-wallet: a command-line Solana wallet manager."""

__version__ = "0.1.0"
