"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from budget_tracker.domain.snapshots import SnapshotGenerator
from budget_tracker.infrastructure.database.session import get_db
from budget_tracker.infrastructure.database.repositories import TransactionRepository, SnapshotRepository


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_snapshot_generator(db: Session = Depends(get_db)) -> SnapshotGenerator:
    """Provide a snapshot generator bound to the request's session"""
    return SnapshotGenerator(TransactionRepository(db), SnapshotRepository(db))
