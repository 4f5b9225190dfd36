from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from domain.beancount import Directive, LedgerTransaction
from domain.rules import DirectiveField, Rule, apply_rules, read_field


def _rule(pattern: dict[str, str], transform: list[dict[str, str]]) -> Rule:
    return Rule.model_validate({"pattern": pattern, "transform": transform})


def _tx(*directives: Directive) -> LedgerTransaction:
    return LedgerTransaction(date=date(2019, 11, 18), narration="ERC20 Transfer", directives=list(directives))


def test_rule_matches_when_any_pattern_field_matches() -> None:
    rule = _rule({"account": "Assets:Other", "symbol": "SAI"}, [{"field": "cost", "value": "1 USD"}])

    assert rule.matches(Directive("Assets:Crypto:WalletA:SAI", Decimal("1"), "SAI"))
    assert not rule.matches(Directive("Assets:Crypto:WalletA:DAI", Decimal("1"), "DAI"))


def test_symbol_transform_rewrites_account_suffix() -> None:
    directive = Directive("Assets:Crypto:WalletA:SAI", Decimal("10"), "SAI")
    rule = _rule({"symbol": "SAI"}, [{"field": "symbol", "value": "DAI"}])

    rewritten = apply_rules([_tx(directive)], [rule])

    assert rewritten == 1
    assert directive.account == "Assets:Crypto:WalletA:DAI"
    assert directive.symbol == "DAI"


def test_symbol_transform_only_touches_trailing_symbol() -> None:
    directive = Directive("Assets:SAI:Wallet:SAI", Decimal("10"), "SAI")

    apply_rules([_tx(directive)], [_rule({"symbol": "SAI"}, [{"field": "symbol", "value": "D\\1AI"}])])

    assert directive.account == "Assets:SAI:Wallet:D\\1AI"


def test_transforms_apply_in_order() -> None:
    directive = Directive("Expenses:Crypto:Unknown", Decimal("5"), "USDC")
    rule = _rule(
        {"account": "Expenses:Crypto:Unknown"},
        [
            {"field": "account", "value": "Expenses:Fees"},
            {"field": "amount", "value": "5.5"},
            {"field": "price", "value": "1 USD"},
        ],
    )

    apply_rules([_tx(directive)], [rule])

    assert directive.account == "Expenses:Fees"
    assert directive.amount == Decimal("5.5")
    assert directive.price == "1 USD"


def test_later_rules_see_earlier_rewrites() -> None:
    directive = Directive("Income:Crypto:Unknown", Decimal("-3"), "DAI")
    rules = [
        _rule({"account": "Income:Crypto:Unknown"}, [{"field": "account", "value": "Income:Airdrop"}]),
        _rule({"account": "Income:Airdrop"}, [{"field": "cost", "value": "0 USD"}]),
    ]

    rewritten = apply_rules([_tx(directive)], rules)

    assert rewritten == 2
    assert directive.account == "Income:Airdrop"
    assert directive.cost == "0 USD"


def test_amount_pattern_compares_formatted_value() -> None:
    directive = Directive("Assets:Crypto:WalletA:ETH", Decimal("-0.00105000"), "ETH")

    assert read_field(directive, DirectiveField.AMOUNT) == "-0.00105"
    assert _rule({"amount": "-0.00105"}, [{"field": "cost", "value": "1 USD"}]).matches(directive)


def test_unmatched_directives_are_untouched() -> None:
    directive = Directive("Assets:Crypto:WalletA:ETH", Decimal("1"), "ETH")

    assert apply_rules([_tx(directive)], [_rule({"symbol": "SAI"}, [{"field": "symbol", "value": "DAI"}])]) == 0
    assert directive == Directive("Assets:Crypto:WalletA:ETH", Decimal("1"), "ETH")


def test_rule_requires_a_pattern() -> None:
    with pytest.raises(ValidationError, match="at least one field"):
        _rule({}, [{"field": "symbol", "value": "DAI"}])


def test_rule_rejects_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        _rule({"memo": "x"}, [{"field": "symbol", "value": "DAI"}])


def test_rule_rejects_non_numeric_amount_transform() -> None:
    with pytest.raises(ValidationError, match="Invalid amount in rule transform"):
        _rule({"symbol": "ETH"}, [{"field": "amount", "value": "abc"}])


def test_non_amount_transforms_accept_free_text() -> None:
    rule = _rule({"symbol": "ETH"}, [{"field": "cost", "value": "abc"}])

    assert rule.transform[0].value == "abc"
