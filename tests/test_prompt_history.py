from __future__ import annotations

import asyncio
from datetime import timedelta

from app.db import session as db_session
from app.modules.generation.history import (
    PromptHistoryEntry,
    SqlPromptHistory,
    list_prompt_history,
    new_history_entry,
)


def test_sql_history_appends_and_lists_newest_first() -> None:
    first = new_history_entry(project_id="p1", scene_id="s1", beat="first beat", prompt="P1")
    second = PromptHistoryEntry(
        id="h2",
        project_id="p1",
        scene_id="s1",
        timestamp=first.timestamp + timedelta(seconds=1),
        beat="second beat",
        prompt="P2",
    )
    other = new_history_entry(project_id="p2", scene_id="s9", beat="elsewhere", prompt="P3")

    with db_session.SessionLocal() as db:
        log = SqlPromptHistory(db)
        for entry in (first, second, other):
            asyncio.run(log.append(entry))

        entries = list_prompt_history(db, "p1")
        assert [entry.beat for entry in entries] == ["second beat", "first beat"]
        assert [entry.beat for entry in list_prompt_history(db, "p1", limit=1)] == ["second beat"]


def test_history_entry_to_dict_is_json_ready() -> None:
    entry = new_history_entry(project_id="p1", scene_id=None, beat="b", prompt="p")
    data = entry.to_dict()
    assert data["beat"] == "b"
    assert isinstance(data["timestamp"], str)
    assert data["scene_id"] is None
