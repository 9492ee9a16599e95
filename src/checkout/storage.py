"""Buyer wallet and order record storage ports, with in-memory implementations.

``ProofStore`` holds the buyer's ecash balance and its history; checkout
writes to it when it spends from the balance and when it returns change.
``OrderRecordStore`` keeps one summary record per seller order.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from settlement.ledger.proofs import ProofSet


class HistoryDirection(Enum):
    IN = "in"
    OUT = "out"


@dataclass(frozen=True)
class HistoryEntry:
    direction: HistoryDirection
    amount: int
    mint_url: str
    timestamp: int = field(default_factory=lambda: int(time.time()))


@dataclass(frozen=True)
class OrderRecord:
    order_id: str
    buyer_pubkey: str
    seller_pubkey: str
    product_title: str
    total_amount: int
    seller_amount: int
    donation_amount: int
    payment_channel: str
    payment_reference: str
    mint_quote_id: str | None = None
    messages_sent: int = 0
    messages_failed: int = 0
    warnings: tuple[str, ...] = ()
    created_at: int = field(default_factory=lambda: int(time.time()))


class ProofStore(ABC):
    @abstractmethod
    async def load(self) -> ProofSet:
        ...

    @abstractmethod
    async def save(self, proofs: ProofSet) -> None:
        """Replace the stored balance with ``proofs``."""
        ...

    @abstractmethod
    async def add_history(self, entry: HistoryEntry) -> None:
        ...


class OrderRecordStore(ABC):
    @abstractmethod
    async def save(self, record: OrderRecord) -> None:
        ...


class InMemoryProofStore(ProofStore):
    def __init__(self, proofs: ProofSet | None = None) -> None:
        self.proofs = proofs or ProofSet.empty()
        self.history: list[HistoryEntry] = []

    async def load(self) -> ProofSet:
        return self.proofs

    async def save(self, proofs: ProofSet) -> None:
        self.proofs = proofs

    async def add_history(self, entry: HistoryEntry) -> None:
        # Newest first
        self.history.insert(0, entry)


class InMemoryOrderRecordStore(OrderRecordStore):
    def __init__(self) -> None:
        self.records: dict[str, OrderRecord] = {}

    async def save(self, record: OrderRecord) -> None:
        self.records[record.order_id] = record
