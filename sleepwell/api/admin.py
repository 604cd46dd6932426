import os
import secrets
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from sleepwell.core.sleep_routine import calculate_progress, count_routine_entries, ensure_shape
from sleepwell.db.json_columns import load_json
from sleepwell.db.models import GuestOnboardingSession
from sleepwell.db.session import get_db

router = APIRouter(prefix="/admin", tags=["admin"])

ADMIN_API_KEY = os.getenv("ADMIN_API_KEY", "")


class GuestSessionSummary(BaseModel):
    session_id: str
    created_at: datetime
    last_accessed: datetime
    completed_at: Optional[datetime] = None
    email: Optional[str] = None
    routine_entries: int
    is_complete: bool


class GuestSessionListResponse(BaseModel):
    items: list[GuestSessionSummary]
    total: int
    limit: int
    offset: int


def require_admin(x_admin_key: Optional[str] = Header(default=None)) -> None:
    if not ADMIN_API_KEY:
        raise HTTPException(status_code=503, detail="Admin access is not configured")
    if not x_admin_key or not secrets.compare_digest(x_admin_key, ADMIN_API_KEY):
        raise HTTPException(status_code=401, detail="Invalid admin key")


@router.get("/guest-sessions", response_model=GuestSessionListResponse, dependencies=[Depends(require_admin)])
def list_guest_sessions(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> GuestSessionListResponse:
    total = db.query(GuestOnboardingSession).count()
    rows = (
        db.query(GuestOnboardingSession)
        .order_by(GuestOnboardingSession.last_accessed.desc(), GuestOnboardingSession.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    items = []
    for row in rows:
        routine = ensure_shape(load_json(row.sleep_routine_json))
        items.append(
            GuestSessionSummary(
                session_id=row.session_id,
                created_at=row.created_at,
                last_accessed=row.last_accessed,
                completed_at=row.completed_at,
                email=row.email,
                routine_entries=count_routine_entries(routine),
                is_complete=calculate_progress(routine).is_complete,
            )
        )
    return GuestSessionListResponse(items=items, total=total, limit=limit, offset=offset)
