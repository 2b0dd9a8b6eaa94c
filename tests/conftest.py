"""Pytest fixtures for testing"""

import pytest
from datetime import date
from decimal import Decimal
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from budget_tracker.api.main import create_app
from budget_tracker.infrastructure.database.models import Base, Account, BankTransaction
from budget_tracker.infrastructure.database.session import get_db
from budget_tracker.infrastructure.database.repositories import AccountRepository


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def account(db: Session) -> Account:
    """Account owned by test_user"""
    db_account = AccountRepository(db).create_account("Checking", "1234-5678", owner_user_id="test_user")
    db.commit()
    return db_account


@pytest.fixture
def add_transaction(db: Session) -> Callable[..., BankTransaction]:
    """Factory inserting a committed transaction; insertion order is arrival order"""

    def _add(account_id: int, transaction_date: date, balance: str, amount: str = "100.00") -> BankTransaction:
        db_transaction = BankTransaction(
            account_id=account_id,
            booking_date=transaction_date,
            transaction_date=transaction_date,
            description="Test Transaction",
            amount=Decimal(amount),
            balance=Decimal(balance),
        )
        db.add(db_transaction)
        db.commit()
        return db_transaction

    return _add
