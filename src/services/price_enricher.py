from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Iterable, Mapping, Protocol

from clients.coingecko import CoinGeckoAPIError, CoinHistory, MissingMarketData, PriceLookupError
from clients.scheduler import RateLimitedScheduler
from domain.beancount import Directive, LedgerTransaction
from utils.formatting import format_decimal

logger = logging.getLogger(__name__)

CoinPriceGroups = dict[tuple[date, str], list[Directive]]


class CoinHistorySource(Protocol):
    def get_coin_history(self, coin_id: str, on: date) -> CoinHistory: ...


def group_by_coin(transactions: Iterable[LedgerTransaction], coin_ids: Mapping[str, str]) -> CoinPriceGroups:
    groups: CoinPriceGroups = {}
    for tx in transactions:
        for directive in tx.directives:
            coin_id = coin_ids.get(directive.symbol)
            if coin_id is None:
                continue
            groups.setdefault((tx.date, coin_id), []).append(directive)
    return groups


def _awaiting_cost(directive: Directive) -> bool:
    return directive.is_incoming and directive.cost is None


class PriceEnricher:
    """Annotates incoming directives with the historical fiat price as cost.

    One lookup is issued per (date, coin) group; all lookups go through the
    scheduler concurrently and are joined before returning. A failed group
    is logged and left without costs.
    """

    def __init__(
        self,
        source: CoinHistorySource,
        scheduler: RateLimitedScheduler,
        *,
        coin_ids: Mapping[str, str],
        fiat: str,
    ) -> None:
        self.source = source
        self.scheduler = scheduler
        self.coin_ids = dict(coin_ids)
        self.fiat = fiat.upper()

    async def enrich(self, transactions: Iterable[LedgerTransaction]) -> int:
        groups = group_by_coin(transactions, self.coin_ids)
        pending = {key: directives for key, directives in groups.items() if any(map(_awaiting_cost, directives))}
        logger.info("Fetching %d price groups (%d already priced)", len(pending), len(groups) - len(pending))

        results = await asyncio.gather(
            *(self._enrich_group(on, coin_id, directives) for (on, coin_id), directives in pending.items())
        )
        return sum(results)

    async def _enrich_group(self, on: date, coin_id: str, directives: list[Directive]) -> int:
        try:
            history = await self.scheduler.schedule_blocking(self.source.get_coin_history, coin_id, on)
            price = history.price_in(self.fiat)
        except PriceLookupError as exc:
            logger.error("cannot find %s at %s: %s", coin_id, on.isoformat(), exc)
            return 0
        except MissingMarketData as exc:
            logger.error("unexpected result for %s at %s: %s", coin_id, on.isoformat(), exc)
            return 0
        except CoinGeckoAPIError as exc:
            logger.error("price lookup for %s at %s failed: %s", coin_id, on.isoformat(), exc)
            return 0

        cost = f"{format_decimal(price)} {self.fiat}"
        annotated = 0
        for directive in directives:
            if _awaiting_cost(directive) and directive.symbol.upper() == history.symbol.upper():
                directive.cost = cost
                annotated += 1
        return annotated


__all__ = ["CoinHistorySource", "CoinPriceGroups", "PriceEnricher", "group_by_coin"]
