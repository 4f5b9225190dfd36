from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from domain.beancount import Directive, LedgerTransaction
from domain.ethereum import (
    NATIVE_DECIMALS,
    NATIVE_SYMBOL,
    AggregatedTransaction,
    Connection,
    ConnectionRegistry,
    RawTransfer,
)
from utils.formatting import int_to_decimal


class DirectiveBuilder:
    """Turns aggregated transactions into balanced beancount transactions.

    Unknown senders are booked against ``deposit_account`` and unknown
    receivers against ``withdraw_account``. In a multi-leg transaction the
    unknown sides are dropped since they net against known legs.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        deposit_account: str,
        withdraw_account: str,
        fee_account: str,
    ) -> None:
        self.registry = registry
        self.deposit_account = deposit_account
        self.withdraw_account = withdraw_account
        self.fee_account = fee_account

    def build(self, transactions: Iterable[AggregatedTransaction]) -> list[LedgerTransaction]:
        ordered = sorted(transactions, key=lambda tx: tx.timestamp)
        return [self.build_transaction(tx) for tx in ordered]

    def build_transaction(self, tx: AggregatedTransaction) -> LedgerTransaction:
        ledger_tx = LedgerTransaction(date=tx.executed_at.date(), narration=str(tx.kind))
        ledger_tx.metadata["tx"] = tx.hash

        directives = ledger_tx.directives
        directives.extend(self._gas_directives(tx))
        directives.extend(self._token_directives(tx.legs))

        if tx.native_value != 0:
            amount = int_to_decimal(tx.native_value, NATIVE_DECIMALS)
            directives.append(
                self._directive(-amount, NATIVE_SYMBOL, self.registry.lookup(tx.from_address), self.deposit_account)
            )
            directives.append(
                self._directive(amount, NATIVE_SYMBOL, self.registry.lookup(tx.to_address), self.withdraw_account)
            )

        return ledger_tx

    def _gas_directives(self, tx: AggregatedTransaction) -> list[Directive]:
        sender = self.registry.lookup(tx.from_address)
        if sender is None:
            return []
        gas = int_to_decimal(tx.gas_used * tx.gas_price, NATIVE_DECIMALS)
        return [
            Directive(self.fee_account, gas, NATIVE_SYMBOL),
            Directive(sender.account(NATIVE_SYMBOL), -gas, NATIVE_SYMBOL),
        ]

    def _token_directives(self, legs: tuple[RawTransfer, ...]) -> list[Directive]:
        single = len(legs) <= 1
        directives: list[Directive] = []
        for leg in legs:
            if leg.value == 0:
                continue

            symbol = leg.token_symbol or ""
            amount = int_to_decimal(leg.value, leg.token_decimal or 0)
            sender = self.registry.lookup(leg.from_address)
            receiver = self.registry.lookup(leg.to_address)

            if sender is not None or single:
                directives.append(self._directive(-amount, symbol, sender, self.deposit_account))
            if receiver is not None or single:
                directives.append(self._directive(amount, symbol, receiver, self.withdraw_account))
        return directives

    @staticmethod
    def _directive(amount: Decimal, symbol: str, connection: Connection | None, fallback: str) -> Directive:
        account = connection.account(symbol) if connection is not None else fallback
        return Directive(account, amount, symbol)


__all__ = ["DirectiveBuilder"]
