"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from budget_tracker.config import settings


class AccountCreateRequest(BaseModel):
    """Request body for POST /v1/accounts"""

    name: str = Field(..., min_length=1, max_length=200, description="Account display name")
    account_number: Optional[str] = Field(None, max_length=50)
    user_id: str = Field(..., min_length=1, description="User who becomes the account owner")


class AccountResponse(BaseModel):
    """Single account"""

    id: int
    name: str
    account_number: Optional[str] = None
    created_at: str


class AccountListResponse(BaseModel):
    """Response for GET /v1/accounts"""

    user_id: str
    accounts: List[AccountResponse]


class TransactionImportRow(BaseModel):
    """One parsed row of a bank export"""

    booking_date: date
    transaction_date: date
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., max_digits=18, decimal_places=2)
    balance: Decimal = Field(..., max_digits=18, decimal_places=2, description="Account balance after this row")
    original_text: Optional[str] = None


class ImportRequest(BaseModel):
    """Request body for POST /v1/accounts/{account_id}/transactions"""

    transactions: List[TransactionImportRow] = Field(..., min_length=1, max_length=settings.max_import_rows)


class ImportResponse(BaseModel):
    """Response for POST /v1/accounts/{account_id}/transactions"""

    success: bool
    imported_count: int
    duplicate_count: int
    warnings: List[str] = Field(default_factory=list)
    snapshots_processed: int = 0


class GenerateRangeRequest(BaseModel):
    """Request body for POST /v1/accounts/{account_id}/snapshots/generate"""

    start_date: date
    end_date: date


class RegenerateManyRequest(BaseModel):
    """Request body for POST /v1/snapshots/regenerate"""

    account_ids: List[int] = Field(..., min_length=1, description="Accounts to regenerate, in order")


class GenerationResponse(BaseModel):
    """Result of a snapshot generation call"""

    account_id: Optional[int] = None
    account_ids: Optional[List[int]] = None
    snapshots_processed: int


class SnapshotSchema(BaseModel):
    """Closing balance for one day"""

    snapshot_date: date
    balance: Decimal
    last_recalculated_at: datetime


class SnapshotHistoryResponse(BaseModel):
    """Response for GET /v1/accounts/{account_id}/snapshots"""

    account_id: int
    snapshots: List[SnapshotSchema]
