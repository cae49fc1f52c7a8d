from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models import CompendiumEntry
from app.db.types import new_record_id, utc_now_naive
from app.modules.manuscript.service import RecordNotFoundError, require_project

MAX_TAGS = 10
DEFAULT_SEARCH_LIMIT = 20
SUMMARY_MIN_CHARS = 10
SUMMARY_BODY_CHARS = 300

_UPDATABLE_FIELDS = ("category", "title", "body", "summary", "tags", "order")


def _clean_tags(tags: list[str] | None) -> list[str]:
    return [str(tag) for tag in (tags or [])][:MAX_TAGS]


def require_entry(db: Session, entry_id: str) -> CompendiumEntry:
    entry = db.get(CompendiumEntry, entry_id)
    if entry is None:
        raise RecordNotFoundError(f"compendium entry {entry_id} not found")
    return entry


def get_entry(db: Session, entry_id: str) -> CompendiumEntry | None:
    return db.get(CompendiumEntry, entry_id)


def create_entry(
    db: Session,
    *,
    project_id: str,
    category: str = "lore",
    title: str = "",
    body: str = "",
    tags: list[str] | None = None,
) -> CompendiumEntry:
    require_project(db, project_id)
    entry = CompendiumEntry(
        project_id=project_id,
        category=str(category or "lore"),
        title=str(title or ""),
        body=str(body or ""),
        summary="",
        tags=_clean_tags(tags),
        order=0,
    )
    db.add(entry)
    db.commit()
    return entry


def update_entry(db: Session, entry_id: str, updates: dict[str, Any]) -> CompendiumEntry:
    entry = require_entry(db, entry_id)
    for key in _UPDATABLE_FIELDS:
        if key not in updates or updates[key] is None:
            continue
        value = updates[key]
        if key == "tags":
            value = _clean_tags(value)
        setattr(entry, key, value)
    entry.modified_at = utc_now_naive()
    db.commit()
    return entry


def delete_entry(db: Session, entry_id: str) -> None:
    entry = db.get(CompendiumEntry, entry_id)
    if entry is None:
        return
    db.delete(entry)
    db.commit()


def list_by_category(db: Session, project_id: str, category: str) -> list[CompendiumEntry]:
    return list(
        db.execute(
            select(CompendiumEntry)
            .where(CompendiumEntry.project_id == project_id, CompendiumEntry.category == category)
            .order_by(CompendiumEntry.order, CompendiumEntry.created_at)
        )
        .scalars()
        .all()
    )


def _project_entries(db: Session, project_id: str) -> list[CompendiumEntry]:
    return list(
        db.execute(
            select(CompendiumEntry)
            .where(CompendiumEntry.project_id == project_id)
            .order_by(CompendiumEntry.order, CompendiumEntry.created_at)
        )
        .scalars()
        .all()
    )


def search(db: Session, project_id: str, query: str | None, *, limit: int | None = None) -> list[CompendiumEntry]:
    """Case-insensitive substring match over title, tags and body."""
    limit = limit or DEFAULT_SEARCH_LIMIT
    needle = str(query or "").strip().lower()
    entries = _project_entries(db, project_id)
    if not needle:
        return entries[:limit]
    matches = []
    for entry in entries:
        haystack = "\n".join([entry.title or "", " ".join(entry.tags or []), entry.body or ""]).lower()
        if needle in haystack:
            matches.append(entry)
            if len(matches) >= limit:
                break
    return matches


def summarize_entry(entry: CompendiumEntry) -> str:
    if entry.summary and len(entry.summary) > SUMMARY_MIN_CHARS:
        return entry.summary
    body = entry.body or ""
    return body[:SUMMARY_BODY_CHARS] + ("…" if len(body) > SUMMARY_BODY_CHARS else "")


def summaries(db: Session, entry_ids: list[str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for entry_id in entry_ids:
        entry = db.get(CompendiumEntry, entry_id)
        if entry is None:
            continue
        out[entry_id] = summarize_entry(entry)
    return out


def entry_to_dict(entry: CompendiumEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "project_id": entry.project_id,
        "category": entry.category,
        "title": entry.title,
        "body": entry.body,
        "summary": entry.summary,
        "tags": list(entry.tags or []),
        "order": int(entry.order or 0),
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
        "modified_at": entry.modified_at.isoformat() if entry.modified_at else None,
    }


def export_entries(db: Session, project_id: str) -> list[dict[str, Any]]:
    return [entry_to_dict(entry) for entry in _project_entries(db, project_id)]


def _parse_created(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            pass
    return utc_now_naive()


def import_entries(db: Session, project_id: str, items: list[dict[str, Any]]) -> list[CompendiumEntry]:
    """Upsert exported entries into ``project_id``; missing ids are assigned."""
    require_project(db, project_id)
    now = utc_now_naive()
    added: list[CompendiumEntry] = []
    for item in items:
        entry_id = str(item.get("id") or "").strip() or new_record_id()
        entry = db.get(CompendiumEntry, entry_id)
        if entry is None:
            entry = CompendiumEntry(id=entry_id, created_at=_parse_created(item.get("created_at")))
            db.add(entry)
        entry.project_id = project_id
        entry.category = str(item.get("category") or "lore")
        entry.title = str(item.get("title") or "")
        entry.body = str(item.get("body") or "")
        entry.summary = str(item.get("summary") or "")
        entry.tags = _clean_tags(item.get("tags"))
        entry.order = int(item.get("order") or 0)
        entry.modified_at = now
        added.append(entry)
    db.commit()
    return added
