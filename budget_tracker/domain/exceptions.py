"""Domain-specific exceptions"""

from datetime import date


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidRangeError(DomainException):
    """Snapshot generation was requested with start date after end date"""

    def __init__(self, start_date: date, end_date: date):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(f"Start date {start_date} must be before or equal to end date {end_date}")


class StorageFailureError(DomainException):
    """A read or write against the transaction or snapshot store failed"""

    pass


class SnapshotConflictError(StorageFailureError):
    """The store rejected a snapshot write on its (account, date) uniqueness constraint"""

    pass


class AccountNotFoundError(DomainException):
    """Account does not exist"""

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")
