import sqlite3
from pathlib import Path

from app.config import DEV_REQUIRED_TABLES, ensure_dev_database_schema
from tests.support.db_runtime import run_alembic_upgrade, sqlite_url


def test_alembic_upgrade_head_creates_manuscript_tables(tmp_path: Path) -> None:
    db_path = tmp_path / "migration_smoke.db"

    proc = run_alembic_upgrade(db_path)

    assert proc.returncode == 0, proc.stderr
    conn = sqlite3.connect(db_path)
    try:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    finally:
        conn.close()
    missing = set(DEV_REQUIRED_TABLES) - {r[0] for r in rows}
    assert not missing, f"Missing tables: {missing}"


def test_dev_schema_guard_accepts_migrated_database(tmp_path: Path) -> None:
    db_path = tmp_path / "migrated.db"
    assert run_alembic_upgrade(db_path).returncode == 0

    ensure_dev_database_schema(sqlite_url(db_path))
