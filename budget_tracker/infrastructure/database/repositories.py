"""Data access layer for accounts, transactions and balance snapshots"""

from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from budget_tracker.infrastructure.database.models import Account, AccountUser, BankTransaction, BalanceSnapshot
from budget_tracker.domain.models import DailyBalance, ImportOutcome, Observation, TransactionRow, UpsertResult
from budget_tracker.domain.exceptions import AccountNotFoundError, SnapshotConflictError, StorageFailureError

OWNER_ROLE = "Owner"


class AccountRepository:
    """Repository for accounts and their user grants"""

    def __init__(self, db: Session):
        self.db = db

    def create_account(self, name: str, account_number: Optional[str], owner_user_id: str) -> Account:
        """Create account and grant Owner role to its creator"""
        db_account = Account(name=name, account_number=account_number)
        self.db.add(db_account)
        self.db.flush()  # Get ID without committing

        self.db.add(AccountUser(user_id=owner_user_id, account_id=db_account.id, role=OWNER_ROLE))
        return db_account

    def get_account(self, account_id: int) -> Optional[Account]:
        try:
            return self.db.query(Account).filter(Account.id == account_id).first()
        except SQLAlchemyError as e:
            raise StorageFailureError(f"Failed to load account {account_id}: {e}") from e

    def require_account(self, account_id: int) -> Account:
        """Fetch account or raise AccountNotFoundError"""
        account = self.get_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def get_accounts_for_user(self, user_id: str) -> List[Account]:
        """Fetch every account shared with a user, oldest first"""
        try:
            return (
                self.db.query(Account)
                .join(AccountUser, AccountUser.account_id == Account.id)
                .filter(AccountUser.user_id == user_id)
                .order_by(Account.id)
                .all()
            )
        except SQLAlchemyError as e:
            raise StorageFailureError(f"Failed to load accounts for user {user_id}: {e}") from e

    def get_account_ids_for_user(self, user_id: str) -> List[int]:
        return [account.id for account in self.get_accounts_for_user(user_id)]


class TransactionRepository:
    """Repository for imported bank transactions"""

    def __init__(self, db: Session):
        self.db = db

    def get_observations(self, account_id: int, end_date: date) -> List[Observation]:
        """Balances of all transactions on or before end_date, in (date, arrival) order"""
        try:
            rows = (
                self.db.query(BankTransaction.transaction_date, BankTransaction.balance, BankTransaction.id)
                .filter(
                    BankTransaction.account_id == account_id,
                    BankTransaction.transaction_date <= end_date,
                )
                .order_by(BankTransaction.transaction_date, BankTransaction.id)
                .all()
            )
        except SQLAlchemyError as e:
            raise StorageFailureError(f"Failed to load transactions for account {account_id}: {e}") from e

        return [Observation(date=row[0], balance=row[1], sequence=row[2]) for row in rows]

    def get_date_span(self, account_id: int) -> Optional[Tuple[date, date]]:
        """Earliest and latest transaction date for an account"""
        try:
            first_date, last_date = (
                self.db.query(func.min(BankTransaction.transaction_date), func.max(BankTransaction.transaction_date))
                .filter(BankTransaction.account_id == account_id)
                .one()
            )
        except SQLAlchemyError as e:
            raise StorageFailureError(f"Failed to load transaction dates for account {account_id}: {e}") from e

        if first_date is None:
            return None
        return first_date, last_date

    def import_transactions(self, account_id: int, rows: Sequence[TransactionRow]) -> ImportOutcome:
        """
        Persist imported rows, skipping ones already stored.

        A row is a duplicate when the account already has a transaction with the
        same booking date, amount and description. Rows are only checked against
        stored transactions, so repeated rows within one export are all kept.
        """
        outcome = ImportOutcome()
        new_transactions = []

        for row in rows:
            if self._is_stored_duplicate(account_id, row):
                outcome.duplicates += 1
                outcome.warnings.append(
                    f"Duplicate transaction skipped: {row.description} on {row.booking_date}"
                )
                continue

            new_transactions.append(
                BankTransaction(
                    account_id=account_id,
                    booking_date=row.booking_date,
                    transaction_date=row.transaction_date,
                    description=row.description,
                    amount=row.amount,
                    balance=row.balance,
                    original_text=row.original_text,
                )
            )

        # Added in row order so ids follow the export's arrival order
        try:
            for db_transaction in new_transactions:
                self.db.add(db_transaction)
                self.db.flush()
        except SQLAlchemyError as e:
            raise StorageFailureError(f"Failed to save transactions for account {account_id}: {e}") from e

        outcome.imported = len(new_transactions)
        return outcome

    def _is_stored_duplicate(self, account_id: int, row: TransactionRow) -> bool:
        try:
            match = (
                self.db.query(BankTransaction.id)
                .filter(
                    BankTransaction.account_id == account_id,
                    BankTransaction.booking_date == row.booking_date,
                    BankTransaction.amount == row.amount,
                    BankTransaction.description == row.description,
                )
                .first()
            )
        except SQLAlchemyError as e:
            raise StorageFailureError(f"Failed to check duplicates for account {account_id}: {e}") from e
        return match is not None


class SnapshotRepository:
    """Repository for daily balance snapshots"""

    def __init__(self, db: Session):
        self.db = db

    def upsert_balances(
        self,
        account_id: int,
        balances: Sequence[DailyBalance],
        recalculated_at: datetime,
    ) -> UpsertResult:
        """
        Reconcile computed daily balances with stored snapshots in one transaction.

        - Missing day: insert with recalculated_at
        - Stored balance differs: update balance and recalculated_at
        - Stored balance equal: leave row untouched

        Raises:
            SnapshotConflictError: a concurrent writer inserted the same (account, date)
            StorageFailureError: any other database error; the batch is rolled back
        """
        result = UpsertResult()
        if not balances:
            return result

        start_date = min(b.date for b in balances)
        end_date = max(b.date for b in balances)

        try:
            existing_snapshots = {
                snapshot.snapshot_date: snapshot
                for snapshot in self.db.query(BalanceSnapshot)
                .filter(
                    BalanceSnapshot.account_id == account_id,
                    BalanceSnapshot.snapshot_date >= start_date,
                    BalanceSnapshot.snapshot_date <= end_date,
                )
                .all()
            }

            for daily in balances:
                existing = existing_snapshots.get(daily.date)
                if existing is None:
                    self.db.add(
                        BalanceSnapshot(
                            account_id=account_id,
                            snapshot_date=daily.date,
                            balance=daily.balance,
                            last_recalculated_at=recalculated_at,
                        )
                    )
                    result.created += 1
                elif existing.balance != daily.balance:
                    existing.balance = daily.balance
                    existing.last_recalculated_at = recalculated_at
                    result.updated += 1
                else:
                    result.unchanged += 1

            self.db.commit()

        except IntegrityError as e:
            self.db.rollback()
            raise SnapshotConflictError(
                f"Snapshot already exists for account {account_id} between {start_date} and {end_date}"
            ) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageFailureError(f"Failed to save snapshots for account {account_id}: {e}") from e

        return result

    def get_snapshots(
        self,
        account_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[BalanceSnapshot]:
        """Fetch stored balance history, oldest first"""
        try:
            query = self.db.query(BalanceSnapshot).filter(BalanceSnapshot.account_id == account_id)
            if start_date is not None:
                query = query.filter(BalanceSnapshot.snapshot_date >= start_date)
            if end_date is not None:
                query = query.filter(BalanceSnapshot.snapshot_date <= end_date)
            return query.order_by(BalanceSnapshot.snapshot_date).all()
        except SQLAlchemyError as e:
            raise StorageFailureError(f"Failed to load snapshots for account {account_id}: {e}") from e
