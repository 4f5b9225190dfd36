from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Iterable

from pydantic import BaseModel, model_validator

from domain.beancount import Directive, LedgerTransaction
from utils.formatting import format_decimal

logger = logging.getLogger(__name__)


class DirectiveField(StrEnum):
    ACCOUNT = "account"
    AMOUNT = "amount"
    SYMBOL = "symbol"
    COST = "cost"
    PRICE = "price"


class RuleTransform(BaseModel):
    field: DirectiveField
    value: str

    @model_validator(mode="after")
    def _validate_amount(self) -> RuleTransform:
        if self.field is DirectiveField.AMOUNT:
            try:
                Decimal(self.value)
            except InvalidOperation as exc:
                raise ValueError(f"Invalid amount in rule transform: {self.value!r}") from exc
        return self


class Rule(BaseModel):
    """Rewrites directives matching any of the ``pattern`` fields.

    A directive matches when at least one pattern entry equals the directive's
    field. Every matching rule applies, in configured order.
    """

    pattern: dict[DirectiveField, str]
    transform: list[RuleTransform]

    @model_validator(mode="after")
    def _validate_fields(self) -> Rule:
        if not self.pattern:
            raise ValueError("Rule.pattern must contain at least one field")
        return self

    def matches(self, directive: Directive) -> bool:
        return any(read_field(directive, key) == expected for key, expected in self.pattern.items())

    def apply(self, directive: Directive) -> None:
        for step in self.transform:
            write_field(directive, step.field, step.value)


def read_field(directive: Directive, field: DirectiveField) -> str | None:
    match field:
        case DirectiveField.ACCOUNT:
            return directive.account
        case DirectiveField.AMOUNT:
            return format_decimal(directive.amount) if directive.amount is not None else None
        case DirectiveField.SYMBOL:
            return directive.symbol
        case DirectiveField.COST:
            return directive.cost
        case DirectiveField.PRICE:
            return directive.price


def write_field(directive: Directive, field: DirectiveField, value: str) -> None:
    match field:
        case DirectiveField.ACCOUNT:
            directive.account = value
        case DirectiveField.AMOUNT:
            directive.amount = Decimal(value)
        case DirectiveField.SYMBOL:
            # Accounts end with the asset symbol, e.g. Assets:Crypto:Wallet:SAI.
            if directive.symbol:
                directive.account = re.sub(f"{re.escape(directive.symbol)}$", lambda _: value, directive.account)
            directive.symbol = value
        case DirectiveField.COST:
            directive.cost = value
        case DirectiveField.PRICE:
            directive.price = value


def apply_rules(transactions: Iterable[LedgerTransaction], rules: list[Rule]) -> int:
    rewritten = 0
    for tx in transactions:
        for directive in tx.directives:
            for rule in rules:
                if rule.matches(directive):
                    rule.apply(directive)
                    rewritten += 1
    logger.debug("Applied %d rule rewrites", rewritten)
    return rewritten


__all__ = ["DirectiveField", "Rule", "RuleTransform", "apply_rules", "read_field", "write_field"]
