"""SQLAlchemy ORM models for accounts, transactions and balance snapshots"""

from sqlalchemy import Column, String, Integer, Numeric, DateTime, Date, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class Account(Base):
    """Bank account, shareable between users"""

    __tablename__ = "account"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    account_number = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    account_users = relationship("AccountUser", back_populates="account", cascade="all, delete-orphan")
    transactions = relationship("BankTransaction", back_populates="account", cascade="all, delete-orphan")
    balance_snapshots = relationship("BalanceSnapshot", back_populates="account", cascade="all, delete-orphan")


class AccountUser(Base):
    """Grant of an account to a user (Owner, ReadWrite, ReadOnly)"""

    __tablename__ = "account_user"
    __table_args__ = (UniqueConstraint("user_id", "account_id", name="uq_account_user"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("account.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(50), nullable=False)
    granted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    account = relationship("Account", back_populates="account_users")


class BankTransaction(Base):
    """Imported bank transaction; balance is the account balance after it"""

    __tablename__ = "bank_transaction"

    id = Column(Integer, primary_key=True, autoincrement=True)  # Also the arrival order
    account_id = Column(Integer, ForeignKey("account.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_date = Column(Date, nullable=False)
    transaction_date = Column(Date, nullable=False, index=True)
    description = Column(String(500), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    balance = Column(Numeric(18, 2), nullable=False)
    original_text = Column(Text, nullable=True)
    imported_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    account = relationship("Account", back_populates="transactions")


class BalanceSnapshot(Base):
    """Closing balance of an account on one calendar day"""

    __tablename__ = "balance_snapshot"
    __table_args__ = (UniqueConstraint("account_id", "snapshot_date", name="uq_balance_snapshot_account_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("account.id", ondelete="CASCADE"), nullable=False)
    snapshot_date = Column(Date, nullable=False)
    balance = Column(Numeric(18, 2), nullable=False)
    last_recalculated_at = Column(DateTime(timezone=True), nullable=False)

    account = relationship("Account", back_populates="balance_snapshots")
