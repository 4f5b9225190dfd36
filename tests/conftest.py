import pytest

from clients.scheduler import RateLimitedScheduler
from config import CryptoConfig
from domain.ethereum import Connection, ConnectionRegistry
from tests.helpers.ethereum import WALLET_A, WALLET_B


@pytest.fixture(scope="function")
def scheduler() -> RateLimitedScheduler:
    return RateLimitedScheduler(name="test", max_concurrent=4, min_interval=0.0)


@pytest.fixture(scope="function")
def connections() -> list[Connection]:
    return [
        Connection(address=WALLET_A, account_prefix="Assets:Crypto:WalletA"),
        Connection(address=WALLET_B, account_prefix="Assets:Crypto:WalletB"),
    ]


@pytest.fixture(scope="function")
def registry(connections: list[Connection]) -> ConnectionRegistry:
    return ConnectionRegistry(connections)


@pytest.fixture(scope="function")
def crypto_config(connections: list[Connection]) -> CryptoConfig:
    return CryptoConfig.model_validate(
        {
            "connections": [connection.model_dump(by_alias=True) for connection in connections],
            "defaultAccount": {
                "deposit": "Income:Crypto:Unknown",
                "withdraw": "Expenses:Crypto:Unknown",
                "ethTx": "Expenses:Crypto:Gas",
            },
            "coins": [
                {"symbol": "ETH", "id": "ethereum"},
                {"symbol": "DAI", "id": "dai"},
            ],
            "fiat": "USD",
            "rules": [],
        }
    )
