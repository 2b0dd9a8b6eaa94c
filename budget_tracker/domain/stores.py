"""Storage contracts the snapshot generator depends on"""

from datetime import date, datetime
from typing import List, Optional, Protocol, Sequence, Tuple

from budget_tracker.domain.models import DailyBalance, Observation, UpsertResult


class TransactionStore(Protocol):
    """Read-only source of balance observations for an account"""

    def get_observations(self, account_id: int, end_date: date) -> List[Observation]:
        """Observations dated on or before end_date, ordered by (date, arrival order)"""
        ...

    def get_date_span(self, account_id: int) -> Optional[Tuple[date, date]]:
        """(earliest, latest) transaction date, or None if the account has none"""
        ...


class SnapshotStore(Protocol):
    """Keyed (account, date) -> balance store with batch upsert"""

    def upsert_balances(
        self,
        account_id: int,
        balances: Sequence[DailyBalance],
        recalculated_at: datetime,
    ) -> UpsertResult:
        """Insert missing days, update changed ones, leave equal ones untouched"""
        ...
