"""Configuration system for sol-wallet.

Loads settings from ``~/.sol-wallet/config.yaml`` (or an explicit path),
supports environment variable expansion, and falls back to defaults when no
config file exists.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is so that
    validation can catch it later.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class HistoryConfig(BaseModel):
    """Limits for the transaction-history fetch."""

    max_concurrency: int = Field(default=50, ge=1)
    task_timeout_seconds: float = Field(default=10.0, gt=0)


class RatesConfig(BaseModel):
    """Exchange-rate lookup settings."""

    pair: str = "SOLEUR"
    base_url: str = "https://api.kraken.com"
    timeout_seconds: float = 10.0


class SendConfig(BaseModel):
    """Transfer submission settings."""

    commitment: str = "confirmed"  # "confirmed" or "finalized"
    confirm_timeout_seconds: float = 60.0


class WalletConfig(BaseModel):
    """Root configuration object."""

    network: str = "devnet"
    rpc_url: Optional[str] = None  # Overrides the network's default endpoint
    keystore_path: str = "standard.solana-keygen.json"
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    rates: RatesConfig = Field(default_factory=RatesConfig)
    send: SendConfig = Field(default_factory=SendConfig)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def get_config_path() -> Path:
    """Return the config file location, honouring ``SOL_WALLET_CONFIG``."""
    override = os.environ.get("SOL_WALLET_CONFIG")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".sol-wallet" / "config.yaml"


def load_config(path: Path | None = None) -> WalletConfig:
    """Load and validate the configuration from a YAML file.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation.  A missing file yields the default configuration.
    """
    if path is None:
        path = get_config_path()
    if not path.exists():
        return WalletConfig()
    raw_text = path.read_text(encoding="utf-8")
    raw_data = yaml.safe_load(raw_text) or {}
    expanded = _expand_env_recursive(raw_data)
    return WalletConfig.model_validate(expanded)


def save_config(config: WalletConfig, path: Path) -> None:
    """Serialize a :class:`WalletConfig` to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="python", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)
