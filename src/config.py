from __future__ import annotations

from functools import cache
from pathlib import Path
from typing import Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.ethereum import Connection
from domain.rules import Rule


class AppSettings(BaseSettings):
    etherscan_api_key: str

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@cache
def config() -> AppSettings:
    return AppSettings()  # type: ignore[call-arg]


class ConfigError(ValueError):
    pass


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CryptoDefaultAccount(_ConfigModel):
    deposit: str
    withdraw: str
    fee: str = Field(alias="ethTx")


class CoinConfig(_ConfigModel):
    symbol: str
    id: str


class CryptoConfig(_ConfigModel):
    connections: list[Connection]
    default_account: CryptoDefaultAccount = Field(alias="defaultAccount")
    coins: list[CoinConfig] = Field(default_factory=list)
    fiat: str = "USD"
    rules: list[Rule] = Field(default_factory=list)

    @property
    def coin_ids(self) -> dict[str, str]:
        coin_ids: dict[str, str] = {}
        for coin in self.coins:
            coin_ids.setdefault(coin.symbol, coin.id)
        return coin_ids


class BankDefaultAccount(_ConfigModel):
    base: str
    deposit: str
    withdraw: str


class BankRule(_ConfigModel):
    type: Literal["deposit", "withdraw"]
    pattern: str
    account: str
    fields: list[str] | None = None


class BankConfig(_ConfigModel):
    encoding: str = "big5"
    default_parsing_fields: list[str] = Field(alias="defaultParsingFields")
    default_account: BankDefaultAccount = Field(alias="defaultAccount")
    rules: list[BankRule] = Field(default_factory=list)


_ConfigT = TypeVar("_ConfigT", bound=BaseModel)


def _load(path: Path, model: type[_ConfigT]) -> _ConfigT:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}") from exc
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config file {path}:\n{exc}") from exc


def load_crypto_config(path: Path) -> CryptoConfig:
    return _load(path, CryptoConfig)


def load_bank_config(path: Path) -> BankConfig:
    return _load(path, BankConfig)


__all__ = [
    "AppSettings",
    "BankConfig",
    "BankDefaultAccount",
    "BankRule",
    "CoinConfig",
    "ConfigError",
    "CryptoConfig",
    "CryptoDefaultAccount",
    "config",
    "load_bank_config",
    "load_crypto_config",
]
