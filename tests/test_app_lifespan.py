from __future__ import annotations

import logging

from fastapi.testclient import TestClient

import app.main as main_module
from app.logging_config import LOG_FORMAT, setup_logging


def test_create_app_health_endpoint() -> None:
    with TestClient(main_module.create_app()) as client:
        res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_lifespan_calls_init_db_outside_dev(monkeypatch) -> None:
    calls = {"count": 0}

    def _fake_init_db() -> None:
        calls["count"] += 1

    monkeypatch.setattr(main_module, "init_db", _fake_init_db)

    with TestClient(main_module.create_app()) as client:
        assert client.get("/health").status_code == 200

    assert calls["count"] == 1


def test_lifespan_checks_schema_in_dev(monkeypatch) -> None:
    seen: list[str] = []
    monkeypatch.setattr(main_module.settings, "env", "dev")
    monkeypatch.setattr(main_module, "ensure_dev_database_schema", seen.append)

    with TestClient(main_module.create_app()):
        pass

    assert len(seen) == 1


def test_setup_logging_replaces_root_handlers() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("DEBUG")
        setup_logging("WARNING")
        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
        assert root.handlers[0].formatter._fmt == LOG_FORMAT
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
