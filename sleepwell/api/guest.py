import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sleepwell.core.sleep_routine import (
    SleepRoutineItemNotFound,
    SleepRoutineProgress,
    apply_update,
    calculate_progress,
    ensure_shape,
    remove_item,
    summarize_progress,
)
from sleepwell.core.sleep_schedule import format_duration, format_handoff_message, sleep_duration_minutes
from sleepwell.db.json_columns import dump_json, load_dict, load_json, load_list
from sleepwell.db.models import GuestOnboardingSession
from sleepwell.db.session import get_db

router = APIRouter(prefix="/guest", tags=["guest"])
logger = logging.getLogger("uvicorn.error")


class Gender(str, Enum):
    male = "male"
    female = "female"
    other = "other"
    prefer_not_to_say = "prefer_not_to_say"


class HealthMetricType(str, Enum):
    weight = "weight"
    height = "height"
    body_fat_percentage = "body_fat_percentage"
    bmi = "bmi"


class ProfileUpdate(BaseModel):
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None


class HealthMetricInput(BaseModel):
    metric_type: HealthMetricType
    value: float = Field(gt=0)
    unit: str = Field(min_length=1, max_length=16)


class DietaryPreferencesUpdate(BaseModel):
    dietary_style: Optional[str] = Field(default=None, max_length=64)
    allergies: Optional[list[str]] = None
    intolerances: Optional[list[str]] = None
    restrictions: Optional[list[str]] = None
    preferred_foods: Optional[list[str]] = None
    disliked_foods: Optional[list[str]] = None


# Routine fields stay loose JSON; the routine model drops what it cannot use.
class NightUpdate(BaseModel):
    bedtime: Optional[Any] = None
    pre_bed: Optional[list[Any]] = None


class MorningUpdate(BaseModel):
    wake_time: Optional[Any] = None


class SleepRoutineUpdate(BaseModel):
    night: Optional[NightUpdate] = None
    morning: Optional[MorningUpdate] = None


class GuestDataUpdateRequest(BaseModel):
    profile: Optional[ProfileUpdate] = None
    health_metrics: Optional[list[HealthMetricInput]] = None
    dietary_preferences: Optional[DietaryPreferencesUpdate] = None
    sleep_routine: Optional[SleepRoutineUpdate] = None
    email: Optional[EmailStr] = None


class GuestSessionCreateResponse(BaseModel):
    session_id: str
    created_at: datetime


class GuestDataResponse(BaseModel):
    session_id: str
    profile: dict[str, Any]
    health_metrics: list[dict[str, Any]]
    dietary_preferences: dict[str, Any]
    sleep_routine: dict[str, Any]
    email: Optional[str] = None


class GuestDataUpdateResponse(BaseModel):
    success: bool
    updated_fields: list[str]
    data: GuestDataResponse


class RoutineItemDeleteResponse(BaseModel):
    success: bool
    message: str


class SleepRoutineProgressItem(BaseModel):
    has_bedtime: bool
    has_wake_time: bool
    pre_bed_count: int
    is_complete: bool
    missing: list[str]


class GuestProgressResponse(BaseModel):
    session_id: str
    progress: SleepRoutineProgressItem
    summary: str
    next_steps: list[str]
    sleep_minutes: Optional[int] = None
    sleep_duration: str
    sleep_routine: dict[str, Any]


class CompleteOnboardingRequest(BaseModel):
    email: EmailStr


class CompleteOnboardingResponse(BaseModel):
    session_id: str
    email: str
    first_message: str
    progress: SleepRoutineProgressItem
    completed_at: datetime


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _find_session(db: Session, session_id: str) -> Optional[GuestOnboardingSession]:
    return db.query(GuestOnboardingSession).filter(GuestOnboardingSession.session_id == session_id).first()


def _require_session(db: Session, session_id: str) -> GuestOnboardingSession:
    row = _find_session(db, session_id)
    if not row:
        raise HTTPException(status_code=404, detail="Guest session not found")
    return row


def _to_data(session_id: str, row: Optional[GuestOnboardingSession]) -> GuestDataResponse:
    if row is None:
        return GuestDataResponse(
            session_id=session_id,
            profile={},
            health_metrics=[],
            dietary_preferences={},
            sleep_routine=ensure_shape(),
        )
    return GuestDataResponse(
        session_id=row.session_id,
        profile=load_dict(row.profile_json),
        health_metrics=load_list(row.health_metrics_json),
        dietary_preferences=load_dict(row.dietary_preferences_json),
        sleep_routine=ensure_shape(load_json(row.sleep_routine_json)),
        email=row.email,
    )


def _to_progress_item(progress: SleepRoutineProgress) -> SleepRoutineProgressItem:
    return SleepRoutineProgressItem(
        has_bedtime=progress.has_bedtime,
        has_wake_time=progress.has_wake_time,
        pre_bed_count=progress.pre_bed_count,
        is_complete=progress.is_complete,
        missing=list(progress.missing),
    )


def _commit(db: Session, event: str, session_id: str, failure_detail: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s session_id=%s detail=%s", event, session_id, str(exc))
        raise HTTPException(status_code=500, detail=failure_detail) from exc


@router.post("/sessions", response_model=GuestSessionCreateResponse, status_code=status.HTTP_201_CREATED)
def create_guest_session(db: Session = Depends(get_db)) -> GuestSessionCreateResponse:
    now = _utc_now()
    row = GuestOnboardingSession(session_id=uuid4().hex, created_at=now, last_accessed=now)
    db.add(row)
    _commit(db, "guest_session_create_error", row.session_id, "Failed to create guest session")
    db.refresh(row)
    logger.info("guest_session_created session_id=%s", row.session_id)
    return GuestSessionCreateResponse(session_id=row.session_id, created_at=row.created_at)


@router.get("/sessions/{session_id}", response_model=GuestDataResponse)
def get_guest_data(session_id: str, db: Session = Depends(get_db)) -> GuestDataResponse:
    return _to_data(session_id, _find_session(db, session_id))


@router.patch("/sessions/{session_id}", response_model=GuestDataUpdateResponse)
def update_guest_data(
    session_id: str,
    payload: GuestDataUpdateRequest,
    db: Session = Depends(get_db),
) -> GuestDataUpdateResponse:
    row = _require_session(db, session_id)
    updated_fields: list[str] = []

    if payload.profile is not None:
        profile = load_dict(row.profile_json)
        profile.update(payload.profile.model_dump(mode="json", exclude_unset=True))
        row.profile_json = dump_json(profile)
        updated_fields.append("profile")

    if payload.health_metrics is not None:
        logged_at = _utc_now().isoformat()
        metrics = load_list(row.health_metrics_json)
        metrics.extend(
            {**metric.model_dump(mode="json"), "logged_at": logged_at} for metric in payload.health_metrics
        )
        row.health_metrics_json = dump_json(metrics)
        updated_fields.append("health_metrics")

    if payload.dietary_preferences is not None:
        preferences = load_dict(row.dietary_preferences_json)
        preferences.update(payload.dietary_preferences.model_dump(exclude_unset=True))
        row.dietary_preferences_json = dump_json(preferences)
        updated_fields.append("dietary_preferences")

    if payload.sleep_routine is not None:
        routine = apply_update(
            load_json(row.sleep_routine_json),
            payload.sleep_routine.model_dump(exclude_unset=True),
        )
        row.sleep_routine_json = dump_json(routine)
        updated_fields.append("sleep_routine")

    if payload.email is not None:
        row.email = str(payload.email).strip()
        updated_fields.append("email")

    if not updated_fields:
        return GuestDataUpdateResponse(success=True, updated_fields=[], data=_to_data(session_id, row))

    row.last_accessed = _utc_now()
    _commit(db, "guest_session_update_error", session_id, "Failed to update guest session")
    db.refresh(row)
    logger.info("guest_session_updated session_id=%s fields=%s", session_id, ",".join(updated_fields))
    return GuestDataUpdateResponse(success=True, updated_fields=updated_fields, data=_to_data(session_id, row))


@router.delete(
    "/sessions/{session_id}/sleep-routine/pre-bed/{item_name:path}",
    response_model=RoutineItemDeleteResponse,
)
def delete_guest_routine_item(
    session_id: str,
    item_name: str,
    db: Session = Depends(get_db),
) -> RoutineItemDeleteResponse:
    row = _require_session(db, session_id)
    try:
        routine = remove_item(load_json(row.sleep_routine_json), item_name)
    except SleepRoutineItemNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    row.sleep_routine_json = dump_json(routine)
    row.last_accessed = _utc_now()
    _commit(db, "guest_routine_item_delete_error", session_id, "Failed to delete routine item")
    logger.info("guest_routine_item_removed session_id=%s item_name=%s", session_id, item_name)
    return RoutineItemDeleteResponse(success=True, message=f'Removed "{item_name}" from pre-bed routine')


@router.get("/sessions/{session_id}/progress", response_model=GuestProgressResponse)
def get_guest_progress(session_id: str, db: Session = Depends(get_db)) -> GuestProgressResponse:
    row = _find_session(db, session_id)
    routine = ensure_shape(load_json(row.sleep_routine_json) if row else None)
    progress = calculate_progress(routine)
    summary, next_steps = summarize_progress(progress)
    minutes = sleep_duration_minutes(routine["night"]["bedtime"], routine["morning"]["wake_time"])
    return GuestProgressResponse(
        session_id=session_id,
        progress=_to_progress_item(progress),
        summary=summary,
        next_steps=next_steps,
        sleep_minutes=minutes,
        sleep_duration=format_duration(minutes),
        sleep_routine=routine,
    )


@router.post("/sessions/{session_id}/complete", response_model=CompleteOnboardingResponse)
def complete_guest_onboarding(
    session_id: str,
    payload: CompleteOnboardingRequest,
    db: Session = Depends(get_db),
) -> CompleteOnboardingResponse:
    row = _require_session(db, session_id)
    routine = ensure_shape(load_json(row.sleep_routine_json))
    now = _utc_now()

    row.email = str(payload.email).strip()
    row.completed_at = now
    row.last_accessed = now
    _commit(db, "guest_onboarding_complete_error", session_id, "Failed to complete guest onboarding")
    db.refresh(row)
    logger.info("guest_onboarding_completed session_id=%s", session_id)
    return CompleteOnboardingResponse(
        session_id=session_id,
        email=row.email,
        first_message=format_handoff_message(routine),
        progress=_to_progress_item(calculate_progress(routine)),
        completed_at=row.completed_at,
    )
