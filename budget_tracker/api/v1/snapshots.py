"""Balance snapshot endpoints - generation triggers and balance history"""

import time
import logging
from datetime import date
from typing import Callable, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from budget_tracker.api.v1.schemas import (
    GenerateRangeRequest,
    RegenerateManyRequest,
    GenerationResponse,
    SnapshotSchema,
    SnapshotHistoryResponse,
)
from budget_tracker.api.dependencies import get_request_id, get_snapshot_generator
from budget_tracker.domain.snapshots import SnapshotGenerator, validate_range
from budget_tracker.domain.exceptions import (
    AccountNotFoundError,
    InvalidRangeError,
    SnapshotConflictError,
    StorageFailureError,
)
from budget_tracker.infrastructure.database.session import get_db
from budget_tracker.infrastructure.database.repositories import AccountRepository, SnapshotRepository
from budget_tracker.infrastructure.observability.metrics import record_generation, record_generation_failure
from budget_tracker.infrastructure.observability.logging import log_snapshot_generation

router = APIRouter()


def _run_generation(
    db: Session,
    operation: str,
    request_id: str,
    account_id: Optional[int],
    generate: Callable[[], int],
) -> int:
    """Run a generation call, translating domain errors to HTTP errors"""
    start_time = time.time()
    try:
        snapshots_processed = generate()

    except InvalidRangeError as e:
        record_generation_failure(operation, "invalid_range")
        logging.warning(f"Invalid range: {e}", extra={"request_id": request_id, "account_id": account_id})
        raise HTTPException(status_code=400, detail=str(e))

    except SnapshotConflictError as e:
        record_generation_failure(operation, "conflict")
        logging.warning(f"Snapshot conflict: {e}", extra={"request_id": request_id, "account_id": account_id})
        raise HTTPException(status_code=409, detail="Snapshots are being generated concurrently, retry")

    except StorageFailureError as e:
        record_generation_failure(operation, "storage_failure")
        logging.error(f"Storage failure: {e}", extra={"request_id": request_id, "account_id": account_id})
        raise HTTPException(status_code=503, detail="Snapshot storage unavailable")

    except Exception as e:
        db.rollback()
        record_generation_failure(operation, "error")
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id, "account_id": account_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    duration = time.time() - start_time
    record_generation(operation, snapshots_processed, duration)
    log_snapshot_generation(request_id, account_id, operation, snapshots_processed, duration * 1000)
    return snapshots_processed


def _require_account(db: Session, account_id: int) -> None:
    try:
        AccountRepository(db).require_account(account_id)
    except AccountNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageFailureError as e:
        logging.error(f"Storage failure: {e}", extra={"account_id": account_id})
        raise HTTPException(status_code=503, detail="Snapshot storage unavailable")


@router.post("/accounts/{account_id}/snapshots/generate", response_model=GenerationResponse)
def generate_snapshots(
    account_id: int,
    request_body: GenerateRangeRequest,
    request: Request,
    db: Session = Depends(get_db),
    generator: SnapshotGenerator = Depends(get_snapshot_generator),
):
    """
    Generate daily snapshots for a date range (inclusive).

    Returns:
        Number of days in range with a known balance
    """
    _require_account(db, account_id)
    processed = _run_generation(
        db,
        "range",
        get_request_id(request),
        account_id,
        lambda: generator.generate_range(account_id, request_body.start_date, request_body.end_date),
    )
    return GenerationResponse(account_id=account_id, snapshots_processed=processed)


@router.post("/accounts/{account_id}/snapshots/regenerate", response_model=GenerationResponse)
def regenerate_account_snapshots(
    account_id: int,
    request: Request,
    db: Session = Depends(get_db),
    generator: SnapshotGenerator = Depends(get_snapshot_generator),
):
    """Regenerate snapshots from the account's first to last transaction date"""
    _require_account(db, account_id)
    processed = _run_generation(
        db,
        "history",
        get_request_id(request),
        account_id,
        lambda: generator.generate_for_account_history(account_id),
    )
    return GenerationResponse(account_id=account_id, snapshots_processed=processed)


@router.post("/snapshots/regenerate", response_model=GenerationResponse)
def regenerate_many(
    request_body: RegenerateManyRequest,
    request: Request,
    db: Session = Depends(get_db),
    generator: SnapshotGenerator = Depends(get_snapshot_generator),
):
    """
    Regenerate full history for a list of accounts, in order.

    The first failing account aborts the batch; accounts before it keep their snapshots.
    """
    account_ids = request_body.account_ids
    processed = _run_generation(
        db,
        "many",
        get_request_id(request),
        None,
        lambda: generator.regenerate_many(account_ids),
    )
    return GenerationResponse(account_ids=account_ids, snapshots_processed=processed)


@router.post("/users/{user_id}/snapshots/regenerate", response_model=GenerationResponse)
def regenerate_user_snapshots(
    user_id: str,
    request: Request,
    db: Session = Depends(get_db),
    generator: SnapshotGenerator = Depends(get_snapshot_generator),
):
    """Regenerate full history for every account shared with a user"""
    try:
        account_ids = AccountRepository(db).get_account_ids_for_user(user_id)
    except StorageFailureError as e:
        logging.error(f"Storage failure: {e}", extra={"user_id": user_id})
        raise HTTPException(status_code=503, detail="Snapshot storage unavailable")

    processed = _run_generation(
        db,
        "many",
        get_request_id(request),
        None,
        lambda: generator.regenerate_many(account_ids),
    )
    return GenerationResponse(account_ids=account_ids, snapshots_processed=processed)


@router.get("/accounts/{account_id}/snapshots", response_model=SnapshotHistoryResponse)
def get_snapshot_history(
    account_id: int,
    start_date: Optional[date] = Query(None, description="First day (inclusive)"),
    end_date: Optional[date] = Query(None, description="Last day (inclusive)"),
    db: Session = Depends(get_db),
):
    """
    Retrieve stored daily balances for an account.

    Returns:
        Snapshots ordered by date, optionally bounded by start_date / end_date
    """
    _require_account(db, account_id)
    if start_date is not None and end_date is not None:
        try:
            validate_range(start_date, end_date)
        except InvalidRangeError as e:
            raise HTTPException(status_code=400, detail=str(e))

    try:
        snapshots = SnapshotRepository(db).get_snapshots(account_id, start_date, end_date)
    except StorageFailureError as e:
        logging.error(f"Storage failure: {e}", extra={"account_id": account_id})
        raise HTTPException(status_code=503, detail="Snapshot storage unavailable")

    return SnapshotHistoryResponse(
        account_id=account_id,
        snapshots=[
            SnapshotSchema(
                snapshot_date=s.snapshot_date,
                balance=s.balance,
                last_recalculated_at=s.last_recalculated_at,
            )
            for s in snapshots
        ],
    )
