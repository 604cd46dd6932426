from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

Base = declarative_base()


class GuestOnboardingSession(Base):
    __tablename__ = "guest_onboarding_sessions"
    __table_args__ = (Index("ix_guest_sessions_last_accessed", "last_accessed"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    session_id: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    profile_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    health_metrics_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    dietary_preferences_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sleep_routine_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    last_accessed: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
