"""Schema checks against the SQL migrations."""

import re
from pathlib import Path

from maraum.services.event_log import EventType

MIGRATIONS = Path(__file__).parent.parent / "supabase" / "migrations"


def read_migrations() -> str:
    return "\n".join(p.read_text(encoding="utf-8") for p in sorted(MIGRATIONS.glob("*.sql")))


def logged_event_types(sql: str) -> set[str]:
    block = re.search(r"event_type text not null check \(event_type in \((.*?)\)\)", sql, re.S)
    return set(re.findall(r"'([a-z_]+)'", block.group(1)))


def test_expired_sessions_are_deleted_after_seven_idle_days():
    sql = read_migrations()

    body = sql[sql.index("create or replace function delete_expired_sessions()"):]
    body = body[:body.index("$$ language plpgsql")]
    assert "is_completed = false" in body
    assert "last_activity_at < now() - interval '7 days'" in body
    assert "'session_expiration_cleanup'" in body


def test_logs_are_kept_for_thirty_days():
    sql = read_migrations()

    body = sql[sql.index("create or replace function delete_old_logs()"):]
    body = body[:body.index("$$ language plpgsql")]
    assert "created_at < now() - interval '30 days'" in body
    assert "'cleanup_job_executed'" in body


def test_cleanup_events_are_allowed_in_logs():
    event_types = logged_event_types(read_migrations())

    assert {"session_expiration_cleanup", "cleanup_job_executed"} <= event_types


def test_event_log_types_are_allowed_in_logs():
    event_types = logged_event_types(read_migrations())
    declared = {v for k, v in vars(EventType).items() if k.isupper()}

    assert declared <= event_types
