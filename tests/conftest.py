from __future__ import annotations

from pathlib import Path

import pytest

from app.config import settings
from app.db import models  # noqa: F401
from app.db import session as db_session
from app.db.base import Base
from app.modules.generation.service import controller_registry
from app.modules.llm.readiness import backend_monitor
from app.modules.llm.registry import get_backend


@pytest.fixture(autouse=True)
def _reset_db_and_defaults(tmp_path: Path) -> None:
    settings.env = "test"
    settings.ai_mode = "api"
    settings.ai_provider = "fake"
    settings.ai_api_key = ""
    settings.ai_model = "fake-prose-v1"
    settings.ai_base_url = ""
    settings.author_api_token = ""
    settings.generation_highlight_s = 5.0
    settings.prompt_scene_tail_chars = 6000
    get_backend.cache_clear()
    controller_registry.reset()
    backend_monitor.reset()

    db_session.rebind_engine(f"sqlite+pysqlite:///{tmp_path / 'writingway.db'}")
    Base.metadata.create_all(bind=db_session.engine)
    yield
    controller_registry.reset()
    get_backend.cache_clear()
    Base.metadata.drop_all(bind=db_session.engine)
    db_session.engine.dispose()
