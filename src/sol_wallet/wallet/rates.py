"""SOL exchange-rate lookup."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation

import httpx

from sol_wallet.exceptions import RateUnavailableError

logger = logging.getLogger("sol_wallet.wallet.rates")


class RateProvider(ABC):
    """Abstract interface for SOL/fiat exchange-rate sources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of the source for logging purposes."""

    @abstractmethod
    def fetch_rate(self) -> Decimal:
        """
        Get the current price of one SOL in fiat.

        Returns:
            Decimal: Fiat amount per SOL

        Raises:
            RateUnavailableError: If the rate cannot be retrieved
        """


class KrakenRateProvider(RateProvider):
    """Kraken public ticker, using the 24h volume-weighted average price."""

    def __init__(
        self,
        pair: str = "SOLEUR",
        base_url: str = "https://api.kraken.com",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.pair = pair
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @property
    def name(self) -> str:
        return "Kraken"

    def _get(self) -> dict:
        url = f"{self.base_url}/0/public/Ticker"
        params = {"pair": self.pair}
        if self._client is not None:
            resp = self._client.get(url, params=params, timeout=self.timeout)
        else:
            resp = httpx.get(url, params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def fetch_rate(self) -> Decimal:
        try:
            data = self._get()
        except httpx.HTTPError as exc:
            raise RateUnavailableError(f"Kraken API error: {exc}") from exc
        except ValueError as exc:
            raise RateUnavailableError(f"Kraken returned invalid JSON: {exc}") from exc

        errors = data.get("error") or []
        if errors:
            raise RateUnavailableError(f"Kraken API error: {', '.join(errors)}")

        try:
            result = data["result"]
            # Kraken may key the result by its internal pair name
            ticker = result.get(self.pair) or next(iter(result.values()))
            vwap = list(ticker["p"])
        except (KeyError, TypeError, StopIteration, AttributeError) as exc:
            raise RateUnavailableError(f"Unexpected response format: {exc}") from exc

        if len(vwap) < 2:
            raise RateUnavailableError("unexpected data structure from Kraken")
        try:
            rate = Decimal(str(vwap[1]))
        except InvalidOperation as exc:
            raise RateUnavailableError(f"Invalid rate value {vwap[1]!r}") from exc

        logger.debug(f"{self.pair} rate from {self.name}: {rate}")
        return rate
