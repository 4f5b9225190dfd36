from __future__ import annotations

import logging
from typing import Any, Protocol

from clients.coingecko import CoinGeckoClient
from clients.etherscan import EtherscanClient, transaction_detail
from clients.scheduler import RateLimitedScheduler, build_coingecko_scheduler, build_etherscan_scheduler
from config import CryptoConfig, config
from domain.beancount import BalanceAssertion, LedgerTransaction, render_ledger
from domain.ethereum import Connection, ConnectionRegistry, RawTransfer, TransactionDetail, TxHash
from domain.rules import apply_rules
from importers.ethereum.aggregator import TransactionAggregator
from importers.ethereum.directives import DirectiveBuilder
from services.balances import BalanceSnapshotBuilder
from services.price_enricher import CoinHistorySource, PriceEnricher

logger = logging.getLogger(__name__)

SUPPORTED_CONNECTION_TYPE = "ethereum"


class ExplorerSource(Protocol):
    def list_transactions(self, address: str) -> list[RawTransfer]: ...

    def list_token_transfers(self, address: str) -> list[RawTransfer]: ...

    def get_transaction(self, tx_hash: str) -> dict[str, Any]: ...

    def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any]: ...

    def get_token_balance(self, *, contract_address: str, address: str, tag: str = "latest") -> int: ...


class EthereumImporter:
    """Roasts the tracked Ethereum wallets into beancount text.

    Wallets are processed one after another; within a wallet the listings,
    the per-hash lookups and the balance queries run strictly in sequence.
    Explorer failures abort the run, price failures only leave costs out.
    """

    def __init__(
        self,
        settings: CryptoConfig,
        *,
        explorer: ExplorerSource,
        prices: CoinHistorySource,
        explorer_scheduler: RateLimitedScheduler,
        price_scheduler: RateLimitedScheduler,
    ) -> None:
        self.settings = settings
        self.explorer = explorer
        self.explorer_scheduler = explorer_scheduler
        self.registry = ConnectionRegistry(settings.connections)
        self.builder = DirectiveBuilder(
            self.registry,
            deposit_account=settings.default_account.deposit,
            withdraw_account=settings.default_account.withdraw,
            fee_account=settings.default_account.fee,
        )
        self.balances = BalanceSnapshotBuilder(explorer, explorer_scheduler)
        self.enricher = PriceEnricher(prices, price_scheduler, coin_ids=settings.coin_ids, fiat=settings.fiat)

    async def load_transactions(self) -> tuple[list[LedgerTransaction], list[BalanceAssertion]]:
        aggregator = TransactionAggregator(self._lookup_transaction)
        balances: list[BalanceAssertion] = []

        for connection in self.settings.connections:
            logger.info("Process %s", connection.account_prefix)
            if connection.type != SUPPORTED_CONNECTION_TYPE:
                logger.warning(
                    "Skipping %s: unsupported connection type %s", connection.account_prefix, connection.type
                )
                continue
            balances.extend(await self._process_connection(connection, aggregator))

        transactions = self.builder.build(aggregator.finalize())
        apply_rules(transactions, self.settings.rules)
        annotated = await self.enricher.enrich(transactions)
        logger.info(
            "Built %d transactions (%d duplicate legs skipped, %d costs annotated)",
            len(transactions),
            aggregator.duplicates,
            annotated,
        )
        return transactions, balances

    async def roast(self) -> str:
        transactions, balances = await self.load_transactions()
        return render_ledger(transactions, balances)

    async def _process_connection(
        self, connection: Connection, aggregator: TransactionAggregator
    ) -> list[BalanceAssertion]:
        native = await self.explorer_scheduler.schedule_blocking(self.explorer.list_transactions, connection.address)
        tokens = await self.explorer_scheduler.schedule_blocking(
            self.explorer.list_token_transfers, connection.address
        )
        logger.info("  fetched %d transactions and %d token transfers", len(native), len(tokens))

        reference = await aggregator.ingest(native, tokens)
        if reference is None:
            logger.info("  no activity, skipping balances")
            return []
        return await self.balances.snapshot(connection, reference, list(aggregator.token_metadata.values()))

    async def _lookup_transaction(self, tx_hash: TxHash) -> TransactionDetail:
        logger.info("    getting tx %s", tx_hash)
        tx = await self.explorer_scheduler.schedule_blocking(self.explorer.get_transaction, tx_hash)
        receipt = await self.explorer_scheduler.schedule_blocking(self.explorer.get_transaction_receipt, tx_hash)
        return transaction_detail(tx, receipt)


def build_default_importer(settings: CryptoConfig) -> EthereumImporter:
    return EthereumImporter(
        settings,
        explorer=EtherscanClient(api_key=config().etherscan_api_key),
        prices=CoinGeckoClient(),
        explorer_scheduler=build_etherscan_scheduler(),
        price_scheduler=build_coingecko_scheduler(),
    )


__all__ = ["EthereumImporter", "ExplorerSource", "build_default_importer"]
