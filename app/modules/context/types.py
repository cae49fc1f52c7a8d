from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

ContextMode = Literal["full", "summary"]
CONTEXT_MODES: frozenset[str] = frozenset({"full", "summary"})


@dataclass(frozen=True, slots=True)
class CompendiumRef:
    id: str
    project_id: str
    category: str
    title: str
    body: str
    tags: frozenset[str] = frozenset()
    order: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "category": self.category,
            "title": self.title,
            "body": self.body,
            "tags": sorted(self.tags),
            "order": self.order,
        }


@dataclass(frozen=True, slots=True)
class SceneRecord:
    id: str
    chapter_id: str | None
    title: str
    summary: str = ""
    tags: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class SceneSummaryRef:
    title: str
    summary: str
    scene_id: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {"title": self.title, "summary": self.summary, "scene_id": self.scene_id}


@dataclass(slots=True)
class ContextPanelSelection:
    compendium_ids: list[str] = field(default_factory=list)
    compendium_tags: list[str] = field(default_factory=list)
    chapters: dict[str, str | None] = field(default_factory=dict)
    scenes: dict[str, str | None] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)

    def chapter_mode(self, chapter_id: str | None) -> str | None:
        if chapter_id is None:
            return None
        return self.chapters.get(chapter_id) or None


@dataclass(frozen=True, slots=True)
class ResolvedContext:
    compendium_entries: tuple[CompendiumRef, ...] = ()
    scene_summaries: tuple[SceneSummaryRef, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "compendium_entries": [entry.to_dict() for entry in self.compendium_entries],
            "scene_summaries": [ref.to_dict() for ref in self.scene_summaries],
        }
