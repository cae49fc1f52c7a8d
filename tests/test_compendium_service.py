from __future__ import annotations

import pytest

from app.db import session as db_session
from app.modules.compendium.service import (
    create_entry,
    delete_entry,
    export_entries,
    get_entry,
    import_entries,
    list_by_category,
    search,
    summaries,
    update_entry,
)
from app.modules.manuscript.service import RecordNotFoundError, create_project


def _project(db, name: str = "Novel") -> str:
    return create_project(db, name=name).id


def test_create_entry_caps_tags_at_ten() -> None:
    with db_session.SessionLocal() as db:
        project_id = _project(db)
        entry = create_entry(db, project_id=project_id, title="Alice", tags=[f"t{i}" for i in range(15)])
        assert entry.tags == [f"t{i}" for i in range(10)]
        assert entry.category == "lore"
        assert entry.summary == ""


def test_update_entry_bumps_modified_and_ignores_unknown_fields() -> None:
    with db_session.SessionLocal() as db:
        entry = create_entry(db, project_id=_project(db), title="Alice")
        before = entry.modified_at
        updated = update_entry(db, entry.id, {"body": "Curious.", "project_id": "hijack"})
        assert updated.body == "Curious."
        assert updated.project_id != "hijack"
        assert updated.modified_at >= before


def test_update_missing_entry_raises() -> None:
    with db_session.SessionLocal() as db:
        with pytest.raises(RecordNotFoundError):
            update_entry(db, "missing", {"title": "x"})


def test_list_by_category_sorted_by_order() -> None:
    with db_session.SessionLocal() as db:
        project_id = _project(db)
        first = create_entry(db, project_id=project_id, category="characters", title="B")
        second = create_entry(db, project_id=project_id, category="characters", title="A")
        create_entry(db, project_id=project_id, category="places", title="Town")
        update_entry(db, first.id, {"order": 2})
        update_entry(db, second.id, {"order": 1})
        assert [e.title for e in list_by_category(db, project_id, "characters")] == ["A", "B"]


def test_search_matches_title_tags_and_body_case_insensitively() -> None:
    with db_session.SessionLocal() as db:
        project_id = _project(db)
        other_project = _project(db, "Other")
        create_entry(db, project_id=project_id, title="Alice", body="A girl.")
        create_entry(db, project_id=project_id, title="Town", tags=["Setting"])
        create_entry(db, project_id=project_id, title="Sword", body="Forged by ALICE's father.")
        create_entry(db, project_id=other_project, title="Alice elsewhere")

        assert [e.title for e in search(db, project_id, "alice")] == ["Alice", "Sword"]
        assert [e.title for e in search(db, project_id, "setting")] == ["Town"]
        assert len(search(db, project_id, "")) == 3
        assert len(search(db, project_id, None, limit=2)) == 2


def test_summaries_prefer_cached_summary_else_truncated_body() -> None:
    with db_session.SessionLocal() as db:
        project_id = _project(db)
        cached = create_entry(db, project_id=project_id, title="A", body="ignored")
        update_entry(db, cached.id, {"summary": "A long enough cached summary."})
        short = create_entry(db, project_id=project_id, title="B", body="short body")
        update_entry(db, short.id, {"summary": "tiny"})
        long = create_entry(db, project_id=project_id, title="C", body="x" * 350)

        out = summaries(db, [cached.id, short.id, long.id, "missing"])

        assert out[cached.id] == "A long enough cached summary."
        assert out[short.id] == "short body"
        assert out[long.id] == "x" * 300 + "…"
        assert "missing" not in out


def test_export_then_import_into_another_project() -> None:
    with db_session.SessionLocal() as db:
        source = _project(db)
        target = _project(db, "Target")
        create_entry(db, project_id=source, category="characters", title="Alice", tags=["hero"])
        exported = export_entries(db, source)

        imported = import_entries(db, target, [dict(item, id=None) for item in exported] + [{"title": "Fresh"}])

        assert {e.title for e in imported} == {"Alice", "Fresh"}
        assert all(e.project_id == target for e in imported)
        assert len(export_entries(db, source)) == 1
        assert len(export_entries(db, target)) == 2


def test_import_with_existing_id_upserts() -> None:
    with db_session.SessionLocal() as db:
        project_id = _project(db)
        entry = create_entry(db, project_id=project_id, title="Alice")
        import_entries(db, project_id, [{"id": entry.id, "title": "Alice Liddell", "body": "Updated."}])
        db.expire_all()
        assert get_entry(db, entry.id).title == "Alice Liddell"
        assert len(export_entries(db, project_id)) == 1


def test_delete_entry_is_idempotent() -> None:
    with db_session.SessionLocal() as db:
        entry = create_entry(db, project_id=_project(db), title="Gone")
        delete_entry(db, entry.id)
        delete_entry(db, entry.id)
        assert get_entry(db, entry.id) is None
