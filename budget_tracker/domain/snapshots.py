"""Balance snapshot generation - daily balance history with carry-forward"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, List, Optional

from budget_tracker.domain.models import Observation, DailyBalance
from budget_tracker.domain.exceptions import InvalidRangeError
from budget_tracker.domain.stores import TransactionStore, SnapshotStore
from budget_tracker.utils.date_utils import generate_date_range


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_range(start_date: date, end_date: date) -> None:
    """Raise InvalidRangeError unless start_date <= end_date"""
    if start_date > end_date:
        raise InvalidRangeError(start_date, end_date)


def forward_fill_balances(
    observations: Iterable[Observation],
    start_date: date,
    end_date: date,
) -> List[DailyBalance]:
    """
    Build one closing balance per calendar day from sparse observations.

    Requirements:
    - Observations ordered by date, then arrival order; the last one of a day wins
    - Days without a transaction carry forward the last known balance
    - Days before the first known balance are skipped, not zero-filled
    - Observations before start_date seed the carry-forward balance

    Example:
        Jan 1 -> 1000.00, Jan 2 -> 1500.00, Jan 4 -> 1300.00 over Jan 1..Jan 5
        -> [1000.00, 1500.00, 1500.00, 1300.00, 1300.00]
    """
    validate_range(start_date, end_date)

    ordered = sorted(observations, key=lambda o: (o.date, o.sequence))
    last_known_balance: Optional[Decimal] = None
    position = 0
    daily_balances = []

    for day in generate_date_range(start_date, end_date):
        while position < len(ordered) and ordered[position].date <= day:
            last_known_balance = ordered[position].balance
            position += 1

        if last_known_balance is None:
            continue

        daily_balances.append(DailyBalance(date=day, balance=last_known_balance))

    return daily_balances


class SnapshotGenerator:
    """Computes and persists daily balance snapshots for accounts"""

    def __init__(
        self,
        transaction_store: TransactionStore,
        snapshot_store: SnapshotStore,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.transaction_store = transaction_store
        self.snapshot_store = snapshot_store
        self.clock = clock

    def generate_range(self, account_id: int, start_date: date, end_date: date) -> int:
        """
        Generate snapshots for every day in [start_date, end_date].

        Returns:
            Number of days that had a known balance (created, updated or unchanged)

        Raises:
            InvalidRangeError: start_date is after end_date (nothing is read or written)
            StorageFailureError: a store read or write failed
        """
        # Checked before any store access
        validate_range(start_date, end_date)

        logging.info(
            "Generating balance snapshots",
            extra={"account_id": account_id, "start_date": str(start_date), "end_date": str(end_date)},
        )

        observations = self.transaction_store.get_observations(account_id, end_date)
        if not observations:
            logging.info("No transactions found", extra={"account_id": account_id})
            return 0

        daily_balances = forward_fill_balances(observations, start_date, end_date)
        if daily_balances:
            result = self.snapshot_store.upsert_balances(account_id, daily_balances, self.clock())
            logging.debug(
                "Batch upserted snapshots",
                extra={
                    "account_id": account_id,
                    "snapshots_created": result.created,
                    "snapshots_updated": result.updated,
                    "snapshots_unchanged": result.unchanged,
                },
            )

        logging.info(
            "Generated balance snapshots",
            extra={"account_id": account_id, "snapshots_processed": len(daily_balances)},
        )
        return len(daily_balances)

    def generate_for_account_history(self, account_id: int) -> int:
        """Generate snapshots spanning the account's first to last transaction date"""
        span = self.transaction_store.get_date_span(account_id)
        if span is None:
            logging.info("No transactions found", extra={"account_id": account_id})
            return 0

        first_date, last_date = span
        return self.generate_range(account_id, first_date, last_date)

    def regenerate_many(self, account_ids: Iterable[int]) -> int:
        """
        Regenerate full history for each account, in order.

        The first failing account aborts the batch and the error propagates;
        accounts processed before it keep their snapshots.
        """
        total_processed = 0
        for account_id in account_ids:
            try:
                total_processed += self.generate_for_account_history(account_id)
            except Exception:
                logging.error(
                    "Snapshot regeneration failed, aborting batch",
                    extra={"account_id": account_id, "processed_so_far": total_processed},
                )
                raise

        return total_processed
