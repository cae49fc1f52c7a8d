import os
from collections.abc import Iterable
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError

DEV_DEFAULT_DB_URL = "sqlite:///./dev.db"
DEV_REQUIRED_TABLES: tuple[str, ...] = (
    "alembic_version",
    "projects",
    "chapters",
    "scenes",
    "scene_contents",
    "compendium_entries",
    "prompt_templates",
    "prompt_history",
)
DEV_REQUIRED_COLUMNS: dict[str, set[str]] = {
    "scenes": {"summary", "summary_stale", "tags"},
    "compendium_entries": {"tags", "order"},
}


class Settings(BaseSettings):
    app_name: str = "writingway_backend"
    env: str = "dev"
    database_url: str = "sqlite+pysqlite:///./app.db"
    log_level: str = "INFO"
    author_api_token: str = ""

    ai_mode: str = "api"
    ai_provider: str = "fake"
    ai_api_key: str = ""
    ai_model: str = "fake-prose-v1"
    ai_base_url: str = ""
    ai_endpoint: str = "http://localhost:8080"
    ai_health_timeout_s: float = 3.0

    llm_timeout_s: float = 60.0
    llm_connect_timeout_s: float = 5.0
    llm_read_timeout_s: float = 60.0
    llm_temperature: float = 0.8
    llm_max_tokens: int | None = None
    llm_stream_connect_attempts: int = 3

    generation_highlight_s: float = 5.0
    prompt_scene_tail_chars: int = 6000

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def _is_sqlite_memory_url(db_url: str) -> bool:
    try:
        url = make_url(db_url.strip())
    except ArgumentError:
        return False
    if url.get_backend_name() != "sqlite":
        return False
    database = url.database or ""
    return not database or ":memory:" in database


def validate_database_url(env: str, db_url: str | None) -> str:
    if (env or "").strip().lower() != "dev":
        return db_url or ""
    if not (db_url or "").strip():
        return DEV_DEFAULT_DB_URL
    if _is_sqlite_memory_url(db_url):
        raise RuntimeError(
            "An in-memory sqlite DATABASE_URL loses every manuscript on restart and is refused when ENV=dev. "
            f"Use DATABASE_URL={DEV_DEFAULT_DB_URL} or another sqlite file."
        )
    return db_url


@lru_cache(maxsize=1)
def current_alembic_head_revision() -> str:
    from alembic.config import Config
    from alembic.script import ScriptDirectory

    cfg = Config(str(Path(__file__).resolve().parents[1] / "alembic.ini"))
    head = ScriptDirectory.from_config(cfg).get_current_head()
    if not head:
        raise RuntimeError("No Alembic head revision found under app/db/migrations.")
    return str(head)


def _schema_problems(
    engine: Engine,
    required_tables: Iterable[str],
    required_columns: dict[str, set[str]],
) -> list[str]:
    from alembic.runtime.migration import MigrationContext

    inspector = inspect(engine)
    tables = set(inspector.get_table_names())
    problems: list[str] = []

    missing = sorted(set(required_tables) - tables)
    if missing:
        problems.append(f"missing tables: {', '.join(missing)}")

    if "alembic_version" in tables:
        with engine.connect() as conn:
            revision = MigrationContext.configure(conn).get_current_revision()
        head = current_alembic_head_revision()
        if revision != head:
            problems.append(f"database revision {revision or 'none'}, migrations head {head}")

    for table, columns in required_columns.items():
        if table not in tables:
            continue
        present = {column["name"] for column in inspector.get_columns(table)}
        problems.extend(f"missing column {table}.{name}" for name in sorted(columns - present))
    return problems


def ensure_dev_database_schema(
    db_url: str,
    required_tables: Iterable[str] = DEV_REQUIRED_TABLES,
    required_columns: dict[str, set[str]] = DEV_REQUIRED_COLUMNS,
) -> None:
    if not db_url:
        return
    engine = create_engine(db_url)
    try:
        problems = _schema_problems(engine, required_tables, required_columns)
    finally:
        engine.dispose()
    if problems:
        raise RuntimeError(
            f"Database {db_url} is not migrated ({'; '.join(problems)}). "
            f"Run ENV=dev DATABASE_URL={db_url} python -m alembic upgrade head"
        )


def _load_settings() -> Settings:
    loaded = Settings()
    raw_url = os.getenv("DATABASE_URL")
    if loaded.env != "dev":
        raw_url = raw_url or loaded.database_url
    loaded.database_url = validate_database_url(loaded.env, raw_url)
    return loaded


settings = _load_settings()
