from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models import PromptHistory
from app.db.types import new_record_id, utc_now_naive


@dataclass(frozen=True, slots=True)
class PromptHistoryEntry:
    id: str
    project_id: str | None
    scene_id: str | None
    timestamp: datetime
    beat: str
    prompt: str

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "scene_id": self.scene_id,
            "timestamp": self.timestamp.isoformat(),
            "beat": self.beat,
            "prompt": self.prompt,
        }


def new_history_entry(*, project_id: str | None, scene_id: str | None, beat: str, prompt: str) -> PromptHistoryEntry:
    return PromptHistoryEntry(
        id=new_record_id(),
        project_id=project_id,
        scene_id=scene_id,
        timestamp=utc_now_naive(),
        beat=beat,
        prompt=prompt,
    )


class PromptHistoryLog(Protocol):
    async def append(self, entry: PromptHistoryEntry) -> None: ...


class InMemoryPromptHistory:
    def __init__(self) -> None:
        self.entries: list[PromptHistoryEntry] = []

    async def append(self, entry: PromptHistoryEntry) -> None:
        self.entries.append(entry)


class SqlPromptHistory:
    """Append-only prompt history; rows are never updated or deleted here."""

    def __init__(self, db: Session):
        self.db = db

    async def append(self, entry: PromptHistoryEntry) -> None:
        await asyncio.to_thread(self._insert, entry)

    def _insert(self, entry: PromptHistoryEntry) -> None:
        self.db.add(
            PromptHistory(
                id=entry.id,
                project_id=entry.project_id,
                scene_id=entry.scene_id,
                timestamp=entry.timestamp,
                beat=entry.beat,
                prompt=entry.prompt,
            )
        )
        self.db.commit()


def list_prompt_history(db: Session, project_id: str, *, limit: int | None = None) -> list[PromptHistoryEntry]:
    stmt = (
        select(PromptHistory)
        .where(PromptHistory.project_id == project_id)
        .order_by(PromptHistory.timestamp.desc(), PromptHistory.id.desc())
    )
    if limit is not None and limit > 0:
        stmt = stmt.limit(limit)
    rows = db.execute(stmt).scalars().all()
    return [
        PromptHistoryEntry(
            id=row.id,
            project_id=row.project_id,
            scene_id=row.scene_id,
            timestamp=row.timestamp,
            beat=row.beat or "",
            prompt=row.prompt or "",
        )
        for row in rows
    ]
