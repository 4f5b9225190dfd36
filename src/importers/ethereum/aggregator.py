from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from domain.ethereum import (
    AggregatedTransaction,
    RawTransfer,
    ReferenceBlock,
    TokenMetadata,
    TransactionDetail,
    TxHash,
    TxKind,
)

logger = logging.getLogger(__name__)

TransactionLookup = Callable[[TxHash], Awaitable[TransactionDetail]]


@dataclass
class _PendingTransaction:
    hash: TxHash
    timestamp: int
    kind: TxKind
    from_address: str
    to_address: str
    native_value: int
    gas_used: int
    gas_price: int
    legs: list[RawTransfer] = field(default_factory=list)

    def add_leg(self, transfer: RawTransfer) -> bool:
        if any(leg.leg_key == transfer.leg_key for leg in self.legs):
            return False
        self.legs.append(transfer)
        self.kind = TxKind.TOKEN_TRANSFER if len(self.legs) <= 1 else TxKind.TOKEN_EXCHANGE
        return True

    def freeze(self) -> AggregatedTransaction:
        return AggregatedTransaction(
            hash=self.hash,
            timestamp=self.timestamp,
            kind=self.kind,
            from_address=self.from_address,
            to_address=self.to_address,
            native_value=self.native_value,
            gas_used=self.gas_used,
            gas_price=self.gas_price,
            legs=tuple(self.legs),
        )


class TransactionAggregator:
    """Merges native and token listings of the tracked addresses by hash.

    Addresses are ingested one after another into the same map, so a
    transaction between two tracked wallets ends up as a single entry.
    """

    def __init__(self, lookup: TransactionLookup) -> None:
        self._lookup = lookup
        self._pending: dict[TxHash, _PendingTransaction] = {}
        self.token_metadata: dict[str, TokenMetadata] = {}
        self.duplicates = 0

    async def ingest(self, native: list[RawTransfer], tokens: list[RawTransfer]) -> ReferenceBlock | None:
        for record in native:
            self._ingest_native(record)

        # Lookups for unseen hashes are awaited one by one so the map is fully
        # populated before anything reads it.
        for index, transfer in enumerate(tokens, start=1):
            logger.info("  process ERC20 tx (%d / %d)", index, len(tokens))
            await self._ingest_token(transfer)

        return reference_block(native, tokens)

    def finalize(self) -> list[AggregatedTransaction]:
        return [pending.freeze() for pending in sorted(self._pending.values(), key=lambda tx: tx.timestamp)]

    def _ingest_native(self, record: RawTransfer) -> None:
        pending = self._pending.get(record.hash)
        if pending is not None:
            pending.native_value = record.value
            return

        self._pending[record.hash] = _PendingTransaction(
            hash=record.hash,
            timestamp=record.timestamp,
            kind=TxKind.CONTRACT_EXECUTION if record.value == 0 else TxKind.NATIVE_TRANSFER,
            from_address=record.from_address.lower(),
            to_address=record.to_address.lower(),
            native_value=record.value,
            gas_used=record.gas_used,
            gas_price=record.gas_price,
        )

    async def _ingest_token(self, transfer: RawTransfer) -> None:
        symbol = (transfer.token_symbol or "").upper()
        transfer = transfer.model_copy(
            update={
                "from_address": transfer.from_address.lower(),
                "to_address": transfer.to_address.lower(),
                "token_symbol": symbol,
            }
        )
        if symbol not in self.token_metadata:
            self.token_metadata[symbol] = TokenMetadata(
                symbol=symbol,
                contract_address=transfer.contract_address or "",
                decimals=transfer.token_decimal or 0,
            )

        pending = self._pending.get(transfer.hash)
        if pending is None:
            detail = await self._lookup(transfer.hash)
            pending = _PendingTransaction(
                hash=transfer.hash,
                timestamp=transfer.timestamp,
                kind=TxKind.TOKEN_TRANSFER,
                from_address=detail.from_address.lower(),
                to_address=detail.to_address.lower(),
                native_value=detail.value,
                gas_used=detail.gas_used,
                gas_price=detail.gas_price,
            )
            self._pending[transfer.hash] = pending

        if not pending.add_leg(transfer):
            self.duplicates += 1
            logger.debug("Skipping duplicate leg of %s", transfer.hash)


def reference_block(native: list[RawTransfer], tokens: list[RawTransfer]) -> ReferenceBlock | None:
    """Pick the later of the two listings' last records.

    Only the tail of each listing is compared, not every record.
    """
    tails = [records[-1] for records in (tokens, native) if records]
    if not tails:
        return None
    latest = sorted(tails, key=lambda record: record.block_number)[-1]
    return ReferenceBlock(block_number=latest.block_number, timestamp=latest.timestamp)


__all__ = ["TransactionAggregator", "TransactionLookup", "reference_block"]
