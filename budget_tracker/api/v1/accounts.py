"""POST /v1/accounts, GET /v1/accounts - Create and list shared accounts"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from budget_tracker.api.v1.schemas import AccountCreateRequest, AccountResponse, AccountListResponse
from budget_tracker.domain.exceptions import StorageFailureError
from budget_tracker.infrastructure.database.session import get_db
from budget_tracker.infrastructure.database.repositories import AccountRepository
from budget_tracker.infrastructure.database.models import Account

router = APIRouter()


def _to_response(account: Account) -> AccountResponse:
    return AccountResponse(
        id=account.id,
        name=account.name,
        account_number=account.account_number,
        created_at=account.created_at.isoformat(),
    )


@router.post("/accounts", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(request_body: AccountCreateRequest, db: Session = Depends(get_db)):
    """Create an account owned by the requesting user"""
    account_repo = AccountRepository(db)
    account = account_repo.create_account(
        name=request_body.name,
        account_number=request_body.account_number,
        owner_user_id=request_body.user_id,
    )
    db.commit()
    db.refresh(account)
    return _to_response(account)


@router.get("/accounts", response_model=AccountListResponse)
def list_accounts(
    user_id: str = Query(..., description="User identifier"),
    db: Session = Depends(get_db),
):
    """
    List every account shared with a user.

    Returns:
        Accounts the user owns or was granted access to
    """
    account_repo = AccountRepository(db)
    try:
        accounts = account_repo.get_accounts_for_user(user_id)
    except StorageFailureError as e:
        logging.error(f"Storage failure: {e}", extra={"user_id": user_id})
        raise HTTPException(status_code=503, detail="Account storage unavailable")

    return AccountListResponse(user_id=user_id, accounts=[_to_response(a) for a in accounts])
