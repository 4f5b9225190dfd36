from __future__ import annotations

import logging
import re
from csv import DictReader
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from io import StringIO
from pathlib import Path

from config import BankConfig, BankRule
from domain.beancount import BalanceAssertion, Directive, LedgerTransaction, render_ledger

logger = logging.getLogger(__name__)

CURRENCY = "TWD"

# Column headers of the statement export.
DATE_FIELD = "日期"
WITHDRAW_FIELD = "提出"
DEPOSIT_FIELD = "存入"
BALANCE_FIELD = "餘額"
NARRATION_FIELDS = ("說明", "備註", "特別備註")


class TxType(StrEnum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


def _parse_date(value: str) -> date:
    return datetime.strptime(value.strip(), "%Y%m%d").date()


def _parse_amount(value: str) -> Decimal:
    try:
        return Decimal(value.replace(",", "").strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc


def tx_type(record: dict[str, str]) -> TxType:
    if record.get(WITHDRAW_FIELD):
        return TxType.WITHDRAW
    if record.get(DEPOSIT_FIELD):
        return TxType.DEPOSIT
    raise ValueError("Failed to get Transaction Type")


class CathayBankImporter:
    """Converts a Cathay United Bank CSV statement into beancount text."""

    def __init__(self, settings: BankConfig, source_path: Path) -> None:
        self.settings = settings
        self._source_path = source_path
        self.basename = source_path.stem

    def decode(self) -> str:
        return self._source_path.read_bytes().decode(self.settings.encoding)

    def parse(self, content: str) -> list[dict[str, str]]:
        # The first line is a title row, the header follows.
        body = "\n".join(content.splitlines()[1:])
        reader = DictReader(StringIO(body))
        records: list[dict[str, str]] = []
        for row in reader:
            # Overlong rows put their extra cells under a None key.
            records.append({key.strip(): (value or "").strip() for key, value in row.items() if key is not None})
        return records

    def load_transactions(self, records: list[dict[str, str]]) -> tuple[list[LedgerTransaction], BalanceAssertion]:
        if not records:
            raise ValueError("Statement contains no records")

        base_account = self.settings.default_account.base
        rules: dict[TxType, list[BankRule]] = {TxType.DEPOSIT: [], TxType.WITHDRAW: []}
        for rule in self.settings.rules:
            rules[TxType(rule.type)].append(rule)

        transactions: list[LedgerTransaction] = []
        for record in records:
            kind = tx_type(record)
            narration = " ".join(record.get(key, "") for key in NARRATION_FIELDS).strip()
            tx = LedgerTransaction(date=_parse_date(record[DATE_FIELD]), narration=narration)

            account = self._match_account(record, rules[kind])
            if kind is TxType.DEPOSIT:
                tx.directives = [
                    Directive(base_account, _parse_amount(record[DEPOSIT_FIELD]), CURRENCY),
                    Directive(account or self.settings.default_account.deposit),
                ]
            else:
                counter = account or self.settings.default_account.withdraw
                tx.directives = [
                    Directive(counter, _parse_amount(record[WITHDRAW_FIELD]), CURRENCY),
                    Directive(base_account),
                ]
            for directive in tx.directives:
                directive.ambiguous_cost = False
            transactions.append(tx)

        last = records[-1]
        balance = BalanceAssertion(
            date=_parse_date(last[DATE_FIELD]) + timedelta(days=1),
            account=base_account,
            amount=_parse_amount(last[BALANCE_FIELD]),
            symbol=CURRENCY,
        )
        return transactions, balance

    def _match_account(self, record: dict[str, str], rules: list[BankRule]) -> str | None:
        for rule in rules:
            fields = rule.fields or self.settings.default_parsing_fields
            if any(re.search(rule.pattern, record.get(field, "")) for field in fields):
                return rule.account
        return None

    def roast(self, output_dir: Path) -> Path:
        content = self.decode()
        output_dir.mkdir(parents=True, exist_ok=True)
        decoded_copy = output_dir / f"{self.basename}.csv"
        if decoded_copy.resolve() != self._source_path.resolve():
            decoded_copy.write_text(content, encoding="utf-8")

        records = self.parse(content)
        transactions, balance = self.load_transactions(records)
        logger.info("Parsed %d statement rows from %s", len(records), self._source_path)

        target = output_dir / f"{self.basename}.bean"
        target.write_text(render_ledger(transactions, [balance]), encoding="utf-8")
        return target


__all__ = ["CathayBankImporter", "TxType", "tx_type"]
