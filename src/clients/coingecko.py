from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

# API docs: https://docs.coingecko.com/reference/coins-id-history
COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"


class CoinGeckoAPIError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class PriceLookupError(CoinGeckoAPIError):
    """The price service answered with an explicit error for a coin/date."""


class MissingMarketData(CoinGeckoAPIError):
    """The history payload has no usable price for the requested currency."""


@dataclass(frozen=True)
class CoinHistory:
    coin_id: str
    symbol: str
    on: date
    current_price: dict[str, Decimal] | None

    def price_in(self, currency: str) -> Decimal:
        if self.current_price is None:
            raise MissingMarketData(f"No market data for {self.coin_id} at {self.on.isoformat()}")
        try:
            return self.current_price[currency.lower()]
        except KeyError as exc:
            msg = f"No {currency.upper()} price for {self.coin_id} at {self.on.isoformat()}"
            raise MissingMarketData(msg) from exc


class CoinGeckoClient:
    def __init__(
        self,
        *,
        base_url: str = COINGECKO_BASE_URL,
        timeout: float = 10.0,
        session: requests.Session | None = None,
        retry_attempts: int = 5,
        retry_backoff_seconds: float = 1,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

        retries = Retry(
            total=retry_attempts,
            backoff_factor=retry_backoff_seconds,
            status_forcelist=[429],
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    def get_coin_history(self, coin_id: str, on: date) -> CoinHistory:
        path = f"/coins/{coin_id}/history"
        payload = self._request("GET", path, params={"date": on.strftime("%d-%m-%Y"), "localization": "false"})

        if payload.get("error"):
            raise PriceLookupError(str(payload["error"]), payload=payload)

        market_data = payload.get("market_data")
        current_price: dict[str, Decimal] | None = None
        if isinstance(market_data, dict) and isinstance(market_data.get("current_price"), dict):
            try:
                current_price = {
                    str(code).lower(): Decimal(str(price))
                    for code, price in market_data["current_price"].items()
                    if price is not None
                }
            except ArithmeticError as exc:
                msg = f"Malformed price data for {coin_id} at {on.isoformat()}"
                raise MissingMarketData(msg, payload=payload) from exc

        return CoinHistory(
            coin_id=str(payload.get("id") or coin_id),
            symbol=str(payload.get("symbol") or ""),
            on=on,
            current_price=current_price,
        )

    def _request(self, method: str, path: str, *, params: dict[str, str]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as exc:
            resp = exc.response
            status_code = getattr(resp, "status_code", None)
            payload = self._error_payload(resp)
            if isinstance(payload, dict) and payload.get("error"):
                raise PriceLookupError(str(payload["error"]), status_code=status_code, payload=payload) from exc
            raise CoinGeckoAPIError("CoinGecko request failed", status_code=status_code, payload=payload) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise CoinGeckoAPIError("CoinGecko request failed", status_code=status_code) from exc

        try:
            payload_raw = response.json()
        except ValueError as exc:
            raise CoinGeckoAPIError("CoinGecko returned invalid JSON", payload=response.text) from exc

        if not isinstance(payload_raw, dict):
            raise CoinGeckoAPIError("CoinGecko returned unexpected payload type", payload=payload_raw)

        return payload_raw

    @staticmethod
    def _error_payload(response: requests.Response | None) -> Any | None:
        if response is None:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text


__all__ = [
    "COINGECKO_BASE_URL",
    "CoinGeckoAPIError",
    "CoinGeckoClient",
    "CoinHistory",
    "MissingMarketData",
    "PriceLookupError",
]
