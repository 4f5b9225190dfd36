from __future__ import annotations

import logging
from typing import Any

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from domain.ethereum import RawTransfer, TransactionDetail, TxHash, parse_quantity

logger = logging.getLogger(__name__)

# API docs: https://docs.etherscan.io/
ETHERSCAN_BASE_URL = "https://api.etherscan.io/api"


class EtherscanAPIError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class EtherscanClient:
    """Blocking Etherscan client; rate limiting is done by the caller's scheduler."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = ETHERSCAN_BASE_URL,
        timeout: float = 10.0,
        session: requests.Session | None = None,
        retry_attempts: int = 5,
        retry_backoff_seconds: float = 1,
    ) -> None:
        if not api_key:
            msg = "api_key must be provided"
            raise ValueError(msg)

        self.api_key = api_key
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

    def list_transactions(self, address: str) -> list[RawTransfer]:
        result = self._request({"module": "account", "action": "txlist", "address": address})
        return [RawTransfer.model_validate(row) for row in self._expect_list(result)]

    def list_token_transfers(self, address: str) -> list[RawTransfer]:
        result = self._request({"module": "account", "action": "tokentx", "address": address})
        return [RawTransfer.model_validate(row) for row in self._expect_list(result)]

    def get_transaction(self, tx_hash: str) -> dict[str, Any]:
        return self._expect_dict(
            self._request({"module": "proxy", "action": "eth_getTransactionByHash", "txhash": tx_hash})
        )

    def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any]:
        return self._expect_dict(
            self._request({"module": "proxy", "action": "eth_getTransactionReceipt", "txhash": tx_hash})
        )

    def get_token_balance(self, *, contract_address: str, address: str, tag: str = "latest") -> int:
        result = self._request(
            {
                "module": "account",
                "action": "tokenbalance",
                "contractaddress": contract_address,
                "address": address,
                "tag": tag,
            }
        )
        try:
            return parse_quantity(result)
        except (TypeError, ValueError) as exc:
            raise EtherscanAPIError("Etherscan returned non-numeric token balance", payload=result) from exc

    def _request(self, params: dict[str, str]) -> Any:
        logger.debug("Etherscan request module=%s action=%s", params.get("module"), params.get("action"))
        try:
            response = self._session.request(
                "GET",
                self.base_url,
                params={**params, "apikey": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            resp = exc.response
            status_code = getattr(resp, "status_code", None)
            message, payload = self._extract_error(resp)
            raise EtherscanAPIError(message, status_code=status_code, payload=payload) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise EtherscanAPIError("Etherscan request failed", status_code=status_code) from exc

        try:
            payload_raw = response.json()
        except ValueError as exc:
            raise EtherscanAPIError("Etherscan returned invalid JSON", payload=response.text) from exc

        if not isinstance(payload_raw, dict):
            raise EtherscanAPIError("Etherscan returned unexpected payload type", payload=payload_raw)

        if payload_raw.get("error"):
            error = payload_raw["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise EtherscanAPIError(message or "Etherscan error", payload=payload_raw)

        if "result" not in payload_raw:
            raise EtherscanAPIError("Etherscan payload missing result", payload=payload_raw)

        result = payload_raw["result"]
        # Empty listings come back as status "0" with an empty list result.
        if payload_raw.get("status") == "0" and isinstance(result, str):
            raise EtherscanAPIError(result or payload_raw.get("message") or "Etherscan error", payload=payload_raw)

        return result

    @staticmethod
    def _expect_list(result: Any) -> list[dict[str, Any]]:
        if not isinstance(result, list):
            raise EtherscanAPIError("Etherscan listing is not a list", payload=result)
        return result

    @staticmethod
    def _expect_dict(result: Any) -> dict[str, Any]:
        if not isinstance(result, dict):
            raise EtherscanAPIError("Etherscan proxy result is not an object", payload=result)
        return result

    @staticmethod
    def _extract_error(response: Response | None) -> tuple[str, Any | None]:
        message = "Etherscan request failed"
        payload: Any | None = None
        if response is None:
            return message, payload

        try:
            payload = response.json()
            if isinstance(payload, dict):
                message = payload.get("message") or message
        except ValueError:
            payload = response.text
        return message, payload


def transaction_detail(tx: dict[str, Any], receipt: dict[str, Any]) -> TransactionDetail:
    """Combine ``eth_getTransactionByHash`` and ``eth_getTransactionReceipt`` results."""
    return TransactionDetail(
        hash=TxHash(str(tx.get("hash") or receipt.get("transactionHash") or "")),
        from_address=str(tx.get("from") or "").lower(),
        to_address=str(tx.get("to") or "").lower(),
        value=parse_quantity(tx.get("value")),
        gas_used=parse_quantity(receipt.get("gasUsed")),
        gas_price=parse_quantity(tx.get("gasPrice")),
    )


__all__ = ["ETHERSCAN_BASE_URL", "EtherscanAPIError", "EtherscanClient", "transaction_detail"]
