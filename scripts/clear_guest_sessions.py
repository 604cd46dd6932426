import argparse
import os
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

TABLE = "guest_onboarding_sessions"


def resolve_db_path(override: Optional[str]) -> Path:
    if override:
        return Path(override).expanduser().resolve()
    env_path = os.getenv("DB_PATH")
    if env_path:
        return Path(env_path).expanduser().resolve()
    if os.name == "nt":
        win_default = Path("C:/var/data/sleepwell.db")
        if win_default.exists():
            return win_default.resolve()
        return Path("./sleepwell.db").resolve()
    return Path("/var/data/sleepwell.db").resolve()


def find_session_ids(conn: sqlite3.Connection, session_ids: list[str]) -> list[str]:
    if not session_ids:
        return []
    placeholders = ",".join("?" for _ in session_ids)
    sql = f"SELECT session_id FROM {TABLE} WHERE session_id IN ({placeholders})"
    return [str(r[0]) for r in conn.execute(sql, session_ids).fetchall()]


def find_stale_session_ids(
    conn: sqlite3.Connection, older_than_days: int, now: Optional[datetime] = None
) -> list[str]:
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=older_than_days)
    # Timestamps are stored naive UTC by SQLAlchemy.
    cutoff_text = cutoff.replace(tzinfo=None).isoformat(sep=" ")
    sql = f"SELECT session_id FROM {TABLE} WHERE last_accessed < ? AND completed_at IS NULL"
    return [str(r[0]) for r in conn.execute(sql, [cutoff_text]).fetchall()]


def delete_sessions(conn: sqlite3.Connection, session_ids: list[str]) -> int:
    if not session_ids:
        return 0
    placeholders = ",".join("?" for _ in session_ids)
    cur = conn.execute(f"DELETE FROM {TABLE} WHERE session_id IN ({placeholders})", session_ids)
    return cur.rowcount if cur.rowcount is not None else 0


def delete_all_sessions(conn: sqlite3.Connection) -> int:
    cur = conn.execute(f"DELETE FROM {TABLE}")
    return cur.rowcount if cur.rowcount is not None else 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Clear guest onboarding sessions from the Sleepwell SQLite DB."
    )
    parser.add_argument(
        "--session-id",
        action="append",
        default=[],
        help="Guest session id to delete (repeatable).",
    )
    parser.add_argument(
        "--older-than-days",
        type=int,
        default=None,
        help="Delete unfinished sessions not accessed in this many days.",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Delete all guest sessions.",
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="Override SQLite DB path. Defaults to DB_PATH env or app default.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show matched sessions only; do not delete.",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm destructive operation.",
    )
    args = parser.parse_args(argv)

    if not args.all and not args.session_id and args.older_than_days is None:
        parser.error("Use --session-id <id>, --older-than-days <n> or --all")
    if not args.dry_run and not args.yes:
        parser.error("Add --yes to confirm deletion")

    db_path = resolve_db_path(args.db_path)
    if not db_path.exists():
        print(f"DB not found: {db_path}")
        return 1

    conn = sqlite3.connect(str(db_path))
    try:
        print(f"Target DB: {db_path}")
        if args.all:
            total = conn.execute(f"SELECT COUNT(*) FROM {TABLE}").fetchone()[0]
            print(f"Matched sessions: {total} (all)")
            if args.dry_run:
                return 0
            deleted = delete_all_sessions(conn)
        else:
            requested = [s.strip() for s in args.session_id if s.strip()]
            matched = set(find_session_ids(conn, requested))
            if args.older_than_days is not None:
                matched.update(find_stale_session_ids(conn, args.older_than_days))
            print(f"Requested session ids: {len(requested)}")
            print(f"Matched sessions: {len(matched)}")
            if args.dry_run:
                return 0
            deleted = delete_sessions(conn, sorted(matched))

        conn.commit()
        print(f"Deleted sessions: {deleted}")
    finally:
        conn.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
