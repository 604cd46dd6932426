from sqlalchemy import inspect

from sleepwell.db import session as db_session_module
from sleepwell.db.session import create_tables


def test_create_tables_builds_guest_session_columns(test_db_path) -> None:
    create_tables()
    columns = {col["name"] for col in inspect(db_session_module.engine).get_columns("guest_onboarding_sessions")}
    assert {
        "session_id",
        "email",
        "profile_json",
        "health_metrics_json",
        "dietary_preferences_json",
        "sleep_routine_json",
        "created_at",
        "last_accessed",
        "completed_at",
    } <= columns
