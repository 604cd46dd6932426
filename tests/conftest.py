import json
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Optional
from uuid import uuid4

# Bind the engine to a throwaway path before the app package is imported.
os.environ.setdefault("DB_PATH", str(Path(tempfile.mkdtemp(prefix="sleepwell_")) / "import.db"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from sleepwell.db.models import GuestOnboardingSession  # noqa: E402
from sleepwell.db.session import SessionLocal, configure_database, create_tables  # noqa: E402


@pytest.fixture(scope="session")
def fixture_dir() -> Path:
    return Path(__file__).resolve().parent / "fixtures" / "extractions"


@pytest.fixture
def load_extraction(fixture_dir: Path) -> Callable[[str], dict]:
    def _load(name: str) -> dict:
        raw = (fixture_dir / f"{name}.json").read_text(encoding="utf-8")
        return json.loads(raw)

    return _load


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    db_path = tmp_path_factory.mktemp("db") / "sleepwell_test.db"
    configure_database(str(db_path))
    create_tables()
    return db_path


@pytest.fixture(scope="session")
def app(test_db_path: Path):
    from sleepwell.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
def client(app):
    app.dependency_overrides = {}
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides = {}


@pytest.fixture
def db_session(test_db_path: Path):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def create_guest_session(db_session: Session) -> Callable[..., GuestOnboardingSession]:
    def _create(
        sleep_routine: Any = None,
        raw_sleep_routine_json: Optional[str] = None,
        last_accessed: Optional[datetime] = None,
        completed: bool = False,
    ) -> GuestOnboardingSession:
        now = datetime.now(timezone.utc)
        row = GuestOnboardingSession(
            session_id=uuid4().hex,
            created_at=now,
            last_accessed=last_accessed or now,
            completed_at=now if completed else None,
        )
        if raw_sleep_routine_json is not None:
            row.sleep_routine_json = raw_sleep_routine_json
        elif sleep_routine is not None:
            row.sleep_routine_json = json.dumps(sleep_routine)
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row

    return _create


@pytest.fixture
def stale_time() -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=45)
