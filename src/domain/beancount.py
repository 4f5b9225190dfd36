from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from utils.formatting import format_decimal


def quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


@dataclass
class Directive:
    """A single posting line of a beancount transaction.

    Sign convention: negative amounts leave the account, positive amounts
    enter it. ``amount`` is ``None`` for postings beancount should balance
    automatically.
    """

    account: str
    amount: Decimal | None = None
    symbol: str = ""
    cost: str | None = None
    price: str | None = None
    ambiguous_cost: bool = True
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def is_incoming(self) -> bool:
        return self.amount is not None and self.amount >= 0

    def render(self, *, show_metadata: bool = False) -> str:
        parts = [self.account, format_decimal(self.amount) if self.amount is not None else "", self.symbol]
        if self.cost or self.ambiguous_cost:
            parts.append(f"{{{self.cost or ''}}}")
        if self.price:
            parts.append(f"@ {self.price}")

        line = f"  {' '.join(parts)}".rstrip()
        if show_metadata and self.metadata:
            meta = "\n".join(f"    {key}: {quote(value)}" for key, value in self.metadata.items())
            return f"{line}\n{meta}".rstrip()
        return line


@dataclass
class LedgerTransaction:
    date: date
    narration: str
    flag: str = "*"
    payee: str = ""
    directives: list[Directive] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)

    def render(self) -> str:
        header = f"{self.date.isoformat()} {self.flag}"
        if self.payee:
            header += f" {quote(self.payee)}"
        header += f" {quote(self.narration)}"

        lines = [header]
        lines.extend(f"  {key}: {quote(value)}" for key, value in self.metadata.items())
        lines.extend(directive.render() for directive in self.directives)
        return "\n".join(lines)


@dataclass(frozen=True)
class BalanceAssertion:
    date: date
    account: str
    amount: Decimal
    symbol: str

    def render(self) -> str:
        return f"{self.date.isoformat()} balance {self.account} {format_decimal(self.amount)} {self.symbol}"


def render_ledger(transactions: list[LedgerTransaction], balances: list[BalanceAssertion]) -> str:
    sections: list[str] = []
    if transactions:
        sections.append("\n\n".join(tx.render() for tx in transactions))
    if balances:
        sections.append("\n".join(balance.render() for balance in balances))
    if not sections:
        return ""
    return "\n\n".join(sections) + "\n"


__all__ = ["BalanceAssertion", "Directive", "LedgerTransaction", "quote", "render_ledger"]
