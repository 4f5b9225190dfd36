from __future__ import annotations

from datetime import date
from decimal import Decimal
from itertools import count
from typing import Any

from clients.coingecko import CoinHistory, PriceLookupError
from domain.ethereum import RawTransfer

WALLET_A = "0x1111111111111111111111111111111111111111"
WALLET_B = "0x2222222222222222222222222222222222222222"
OUTSIDE = "0x9999999999999999999999999999999999999999"
DAI_CONTRACT = "0x6b175474e89094c44da98b954eedeac495271d0f"
USDC_CONTRACT = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"

# 2024-01-02 00:00:00 UTC
BASE_TIMESTAMP = 1_704_153_600

_block_counter = count(18_900_000)


def native_tx(
    *,
    tx_hash: str,
    sender: str,
    receiver: str,
    value: int = 0,
    timestamp: int = BASE_TIMESTAMP,
    block_number: int | None = None,
    gas_used: int = 21_000,
    gas_price: int = 50 * 10**9,
) -> RawTransfer:
    return RawTransfer.model_validate(
        {
            "hash": tx_hash,
            "from": sender,
            "to": receiver,
            "value": str(value),
            "timeStamp": str(timestamp),
            "blockNumber": str(block_number if block_number is not None else next(_block_counter)),
            "gasUsed": str(gas_used),
            "gasPrice": str(gas_price),
        }
    )


def token_tx(
    *,
    tx_hash: str,
    sender: str,
    receiver: str,
    value: int,
    symbol: str = "DAI",
    decimals: int = 18,
    contract: str = DAI_CONTRACT,
    timestamp: int = BASE_TIMESTAMP,
    block_number: int | None = None,
) -> RawTransfer:
    return RawTransfer.model_validate(
        {
            "hash": tx_hash,
            "from": sender,
            "to": receiver,
            "value": str(value),
            "timeStamp": str(timestamp),
            "blockNumber": str(block_number if block_number is not None else next(_block_counter)),
            "tokenSymbol": symbol,
            "tokenDecimal": str(decimals),
            "contractAddress": contract,
        }
    )


class StubExplorer:
    """In-memory stand-in for the Etherscan client."""

    def __init__(
        self,
        *,
        native: dict[str, list[RawTransfer]] | None = None,
        tokens: dict[str, list[RawTransfer]] | None = None,
        transactions: dict[str, dict[str, Any]] | None = None,
        receipts: dict[str, dict[str, Any]] | None = None,
        balances: dict[tuple[str, str], int] | None = None,
    ) -> None:
        self.native = native or {}
        self.tokens = tokens or {}
        self.transactions = transactions or {}
        self.receipts = receipts or {}
        self.balances = balances or {}
        self.calls: list[tuple[str, str]] = []

    def list_transactions(self, address: str) -> list[RawTransfer]:
        self.calls.append(("txlist", address))
        return list(self.native.get(address, []))

    def list_token_transfers(self, address: str) -> list[RawTransfer]:
        self.calls.append(("tokentx", address))
        return list(self.tokens.get(address, []))

    def get_transaction(self, tx_hash: str) -> dict[str, Any]:
        self.calls.append(("tx", tx_hash))
        return self.transactions[tx_hash]

    def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any]:
        self.calls.append(("receipt", tx_hash))
        return self.receipts.get(tx_hash, {"transactionHash": tx_hash, "gasUsed": "0x0"})

    def get_token_balance(self, *, contract_address: str, address: str, tag: str = "latest") -> int:
        self.calls.append(("tokenbalance", f"{contract_address}@{address}@{tag}"))
        return self.balances.get((contract_address, address), 0)


class StubCoinHistory:
    """In-memory stand-in for the CoinGecko client."""

    def __init__(
        self,
        prices: dict[tuple[str, date], dict[str, Decimal] | None] | None = None,
        symbols: dict[str, str] | None = None,
    ) -> None:
        self.prices = prices or {}
        self.symbols = symbols or {}
        self.requests: list[tuple[str, date]] = []

    def get_coin_history(self, coin_id: str, on: date) -> CoinHistory:
        self.requests.append((coin_id, on))
        if (coin_id, on) not in self.prices:
            raise PriceLookupError("coin not found")
        return CoinHistory(
            coin_id=coin_id,
            symbol=self.symbols.get(coin_id, coin_id),
            on=on,
            current_price=self.prices[(coin_id, on)],
        )
