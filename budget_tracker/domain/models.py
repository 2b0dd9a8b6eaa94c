"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional


@dataclass(frozen=True)
class Observation:
    """Balance after one transaction, as seen by the snapshot generator"""

    date: date
    balance: Decimal
    sequence: int  # Arrival order; breaks ties between same-day transactions


@dataclass(frozen=True)
class DailyBalance:
    """Closing balance for one calendar day, pending reconciliation"""

    date: date
    balance: Decimal


@dataclass
class UpsertResult:
    """Outcome of reconciling one batch of daily balances against the store"""

    created: int = 0
    updated: int = 0
    unchanged: int = 0

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.unchanged


@dataclass
class TransactionRow:
    """Parsed bank export row handed to the import workflow"""

    booking_date: date
    transaction_date: date
    description: str
    amount: Decimal
    balance: Decimal
    original_text: Optional[str] = None


@dataclass
class ImportOutcome:
    """Result of persisting an import batch"""

    imported: int = 0
    duplicates: int = 0
    warnings: List[str] = field(default_factory=list)
