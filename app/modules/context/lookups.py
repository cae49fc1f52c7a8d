from __future__ import annotations

import asyncio
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models import CompendiumEntry, Scene, SceneContent
from app.modules.context.types import CompendiumRef, SceneRecord


class StoryLookups(Protocol):
    async def get_compendium_entry(self, project_id: str, entry_id: str) -> CompendiumRef | None: ...

    async def list_compendium_entries(self, project_id: str) -> list[CompendiumRef]: ...

    async def list_chapter_scenes(self, project_id: str, chapter_id: str) -> list[SceneRecord]: ...

    async def get_scene(self, project_id: str, scene_id: str) -> SceneRecord | None: ...

    async def get_scene_text(self, scene_id: str) -> str | None: ...

    async def list_scenes(self, project_id: str) -> list[SceneRecord]: ...


def _tag_set(raw: object) -> frozenset[str]:
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return frozenset()
    return frozenset(str(tag) for tag in raw if str(tag or "").strip())


def compendium_ref_from_row(row: CompendiumEntry) -> CompendiumRef:
    return CompendiumRef(
        id=row.id,
        project_id=row.project_id,
        category=row.category or "",
        title=row.title or "",
        body=row.body or "",
        tags=_tag_set(row.tags),
        order=int(row.order or 0),
    )


def scene_record_from_row(row: Scene) -> SceneRecord:
    return SceneRecord(
        id=row.id,
        chapter_id=row.chapter_id,
        title=row.title or "",
        summary=row.summary or "",
        tags=_tag_set(row.tags),
    )


class SqlStoryLookups:
    """StoryLookups backed by a SQLAlchemy session.

    Queries run in a worker thread so the event loop keeps streaming while
    the database is read. Rows owned by another project read as missing.
    """

    def __init__(self, db: Session):
        self.db = db

    def _owned(self, model, project_id: str, row_id: str):
        row = self.db.get(model, row_id)
        if row is None or row.project_id != project_id:
            return None
        return row

    def _compendium_entry(self, project_id: str, entry_id: str) -> CompendiumRef | None:
        row = self._owned(CompendiumEntry, project_id, entry_id)
        return compendium_ref_from_row(row) if row is not None else None

    def _compendium_entries(self, project_id: str) -> list[CompendiumRef]:
        rows = self.db.execute(
            select(CompendiumEntry)
            .where(CompendiumEntry.project_id == project_id)
            .order_by(CompendiumEntry.category, CompendiumEntry.order, CompendiumEntry.created_at)
        ).scalars().all()
        return [compendium_ref_from_row(row) for row in rows]

    def _chapter_scenes(self, project_id: str, chapter_id: str) -> list[SceneRecord]:
        rows = self.db.execute(
            select(Scene)
            .where(Scene.project_id == project_id, Scene.chapter_id == chapter_id)
            .order_by(Scene.order, Scene.created_at)
        ).scalars().all()
        return [scene_record_from_row(row) for row in rows]

    def _scene(self, project_id: str, scene_id: str) -> SceneRecord | None:
        row = self._owned(Scene, project_id, scene_id)
        return scene_record_from_row(row) if row is not None else None

    def _scene_text(self, scene_id: str) -> str | None:
        row = self.db.get(SceneContent, scene_id)
        if row is None:
            return None
        return row.text or ""

    def _scenes(self, project_id: str) -> list[SceneRecord]:
        rows = self.db.execute(
            select(Scene).where(Scene.project_id == project_id).order_by(Scene.order, Scene.created_at)
        ).scalars().all()
        return [scene_record_from_row(row) for row in rows]

    async def get_compendium_entry(self, project_id: str, entry_id: str) -> CompendiumRef | None:
        return await asyncio.to_thread(self._compendium_entry, project_id, entry_id)

    async def list_compendium_entries(self, project_id: str) -> list[CompendiumRef]:
        return await asyncio.to_thread(self._compendium_entries, project_id)

    async def list_chapter_scenes(self, project_id: str, chapter_id: str) -> list[SceneRecord]:
        return await asyncio.to_thread(self._chapter_scenes, project_id, chapter_id)

    async def get_scene(self, project_id: str, scene_id: str) -> SceneRecord | None:
        return await asyncio.to_thread(self._scene, project_id, scene_id)

    async def get_scene_text(self, scene_id: str) -> str | None:
        return await asyncio.to_thread(self._scene_text, scene_id)

    async def list_scenes(self, project_id: str) -> list[SceneRecord]:
        return await asyncio.to_thread(self._scenes, project_id)
