from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Iterable, NewType

from pydantic import BaseModel, ConfigDict, Field, field_validator

WalletAddress = NewType("WalletAddress", str)
TxHash = NewType("TxHash", str)

NATIVE_SYMBOL = "ETH"
NATIVE_DECIMALS = 18


class TxKind(StrEnum):
    NATIVE_TRANSFER = "ETH Transfer"
    TOKEN_TRANSFER = "ERC20 Transfer"
    TOKEN_EXCHANGE = "ERC20 Exchange"
    CONTRACT_EXECUTION = "Contract Execution"


class Connection(BaseModel):
    """A tracked wallet and the account prefix its postings are booked under."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    address: WalletAddress
    type: str = "ethereum"
    account_prefix: str = Field(alias="accountPrefix")

    @field_validator("address", mode="before")
    @classmethod
    def _lowercase_address(cls, value: str) -> str:
        return value.lower()

    def account(self, symbol: str) -> str:
        return f"{self.account_prefix}:{symbol}"


class ConnectionRegistry:
    def __init__(self, connections: Iterable[Connection]) -> None:
        self._by_address: dict[str, Connection] = {}
        for connection in connections:
            self._by_address.setdefault(connection.address, connection)

    def lookup(self, address: str | None) -> Connection | None:
        if not address:
            return None
        return self._by_address.get(address.lower())

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and self.lookup(address) is not None


def parse_quantity(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    text = str(value)
    if text.startswith(("0x", "0X")):
        return int(text, 16)
    return int(text)


class RawTransfer(BaseModel):
    """A row of an explorer ``txlist`` or ``tokentx`` listing."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    hash: TxHash
    from_address: str = Field(alias="from")
    to_address: str = Field(default="", alias="to")
    value: int = 0
    timestamp: int = Field(alias="timeStamp")
    block_number: int = Field(alias="blockNumber")
    gas_used: int = Field(default=0, alias="gasUsed")
    gas_price: int = Field(default=0, alias="gasPrice")
    token_symbol: str | None = Field(default=None, alias="tokenSymbol")
    token_decimal: int | None = Field(default=None, alias="tokenDecimal")
    contract_address: str | None = Field(default=None, alias="contractAddress")

    @field_validator("value", "timestamp", "block_number", "gas_used", "gas_price", mode="before")
    @classmethod
    def _to_int(cls, value: Any) -> int:
        return parse_quantity(value)

    @field_validator("token_decimal", mode="before")
    @classmethod
    def _decimals_to_int(cls, value: Any) -> int | None:
        if value is None or value == "":
            return None
        return parse_quantity(value)

    @field_validator("to_address", mode="before")
    @classmethod
    def _empty_to(cls, value: str | None) -> str:
        return value or ""

    @property
    def leg_key(self) -> tuple[str, str, int]:
        return (self.from_address, self.to_address, self.value)


class TransactionDetail(BaseModel):
    """Sender, receiver and gas of a transaction looked up by hash."""

    hash: TxHash
    from_address: str
    to_address: str = ""
    value: int = 0
    gas_used: int = 0
    gas_price: int = 0


@dataclass(frozen=True)
class TokenMetadata:
    symbol: str
    contract_address: str
    decimals: int


@dataclass(frozen=True)
class ReferenceBlock:
    """Block a tracked address's balances are asserted at."""

    block_number: int
    timestamp: int

    @property
    def tag(self) -> str:
        return hex(self.block_number)

    @property
    def executed_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


@dataclass(frozen=True)
class AggregatedTransaction:
    hash: TxHash
    timestamp: int
    kind: TxKind
    from_address: str
    to_address: str
    native_value: int
    gas_used: int
    gas_price: int
    legs: tuple[RawTransfer, ...] = ()

    @property
    def executed_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


__all__ = [
    "NATIVE_DECIMALS",
    "NATIVE_SYMBOL",
    "AggregatedTransaction",
    "Connection",
    "ConnectionRegistry",
    "RawTransfer",
    "ReferenceBlock",
    "TokenMetadata",
    "TransactionDetail",
    "TxHash",
    "TxKind",
    "WalletAddress",
    "parse_quantity",
]
