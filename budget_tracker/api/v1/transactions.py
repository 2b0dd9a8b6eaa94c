"""POST /v1/accounts/{account_id}/transactions - Import parsed bank export rows"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from budget_tracker.api.v1.schemas import ImportRequest, ImportResponse
from budget_tracker.api.dependencies import get_request_id, get_snapshot_generator
from budget_tracker.config import settings
from budget_tracker.domain.models import TransactionRow
from budget_tracker.domain.snapshots import SnapshotGenerator
from budget_tracker.domain.exceptions import (
    AccountNotFoundError,
    SnapshotConflictError,
    StorageFailureError,
)
from budget_tracker.infrastructure.database.session import get_db
from budget_tracker.infrastructure.database.repositories import AccountRepository, TransactionRepository
from budget_tracker.infrastructure.observability.metrics import (
    record_import,
    record_generation,
    record_generation_failure,
)
from budget_tracker.infrastructure.observability.logging import log_snapshot_generation

router = APIRouter()


@router.post("/accounts/{account_id}/transactions", response_model=ImportResponse)
def import_transactions(
    account_id: int,
    request_body: ImportRequest,
    request: Request,
    db: Session = Depends(get_db),
    generator: SnapshotGenerator = Depends(get_snapshot_generator),
):
    """
    Import already-parsed transactions into an account.

    Flow:
    1. Verify the account exists
    2. Persist rows, skipping duplicates (same booking date, amount, description)
    3. Commit the import
    4. Regenerate the account's full snapshot history
    5. Return import counts
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        # 1. Verify account
        AccountRepository(db).require_account(account_id)

        # 2. Persist rows
        rows = [
            TransactionRow(
                booking_date=row.booking_date,
                transaction_date=row.transaction_date,
                description=row.description,
                amount=row.amount,
                balance=row.balance,
                original_text=row.original_text,
            )
            for row in request_body.transactions
        ]
        outcome = TransactionRepository(db).import_transactions(account_id, rows)

        # 3. Commit before regeneration so a snapshot failure keeps the import
        db.commit()
        record_import(outcome.imported, outcome.duplicates)

    except AccountNotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except StorageFailureError as e:
        db.rollback()
        logging.error(f"Import storage failure: {e}", extra={"request_id": request_id, "account_id": account_id})
        raise HTTPException(status_code=503, detail="Transaction storage unavailable")

    except Exception as e:
        db.rollback()
        logging.error(f"Import failed: {e}", extra={"request_id": request_id, "account_id": account_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    # 4. Full regeneration stays correct for backdated or corrected imports
    snapshots_processed = 0
    if settings.regenerate_on_import:
        try:
            snapshots_processed = generator.generate_for_account_history(account_id)
        except SnapshotConflictError as e:
            record_generation_failure("history", "conflict")
            logging.warning(
                f"Snapshot conflict after import: {e}",
                extra={"request_id": request_id, "account_id": account_id},
            )
            raise HTTPException(
                status_code=409, detail="Transactions imported, snapshots are being generated concurrently, retry"
            )
        except StorageFailureError as e:
            record_generation_failure("history", "storage_failure")
            logging.error(
                f"Snapshot generation after import failed: {e}",
                extra={"request_id": request_id, "account_id": account_id},
            )
            raise HTTPException(status_code=503, detail="Transactions imported, snapshot generation failed")
        except Exception as e:
            db.rollback()
            record_generation_failure("history", "error")
            logging.error(
                f"Unexpected error after import: {e}",
                extra={"request_id": request_id, "account_id": account_id},
            )
            raise HTTPException(status_code=500, detail="Internal server error")

        duration = time.time() - start_time
        record_generation("history", snapshots_processed, duration)
        log_snapshot_generation(request_id, account_id, "history", snapshots_processed, duration * 1000)

    return ImportResponse(
        success=True,
        imported_count=outcome.imported,
        duplicate_count=outcome.duplicates,
        warnings=outcome.warnings,
        snapshots_processed=snapshots_processed,
    )
