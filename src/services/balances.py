from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable, Protocol

from clients.scheduler import RateLimitedScheduler
from domain.beancount import BalanceAssertion
from domain.ethereum import Connection, ReferenceBlock, TokenMetadata
from utils.formatting import int_to_decimal

logger = logging.getLogger(__name__)


class TokenBalanceSource(Protocol):
    def get_token_balance(self, *, contract_address: str, address: str, tag: str = "latest") -> int: ...


class BalanceSnapshotBuilder:
    def __init__(self, source: TokenBalanceSource, scheduler: RateLimitedScheduler) -> None:
        self.source = source
        self.scheduler = scheduler

    async def snapshot(
        self,
        connection: Connection,
        reference: ReferenceBlock,
        tokens: Iterable[TokenMetadata],
    ) -> list[BalanceAssertion]:
        # beancount balance assertions apply at the start of their date.
        as_of = reference.executed_at.date() + timedelta(days=1)
        assertions: list[BalanceAssertion] = []
        for token in tokens:
            raw = await self.scheduler.schedule_blocking(
                self.source.get_token_balance,
                contract_address=token.contract_address,
                address=connection.address,
                tag=reference.tag,
            )
            assertions.append(
                BalanceAssertion(
                    date=as_of,
                    account=connection.account(token.symbol),
                    amount=int_to_decimal(raw, token.decimals),
                    symbol=token.symbol,
                )
            )
        logger.info("Built %d balance assertions for %s", len(assertions), connection.account_prefix)
        return assertions


__all__ = ["BalanceSnapshotBuilder", "TokenBalanceSource"]
