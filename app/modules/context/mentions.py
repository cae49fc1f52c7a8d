from __future__ import annotations

import logging
import re
from typing import Protocol

from app.modules.context.lookups import StoryLookups
from app.modules.context.types import CompendiumRef, SceneSummaryRef

logger = logging.getLogger(__name__)

COMPENDIUM_MENTION_RE = re.compile(r"@\[([^\]]+)\]")
SCENE_MENTION_RE = re.compile(r"#\[([^\]]+)\]")


class MentionResolver(Protocol):
    async def resolve_compendium_entries_from_beat(self, text: str) -> list[CompendiumRef]: ...

    async def resolve_scene_summaries_from_beat(self, text: str) -> list[SceneSummaryRef]: ...


def _mention_titles(pattern: re.Pattern[str], text: str) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for match in pattern.finditer(str(text or "")):
        title = " ".join(match.group(1).split()).strip()
        key = title.casefold()
        if not title or key in seen:
            continue
        seen.add(key)
        out.append(title)
    return out


class BeatMentionResolver:
    """Resolves ``@[Title]`` to compendium entries and ``#[Title]`` to scene summaries.

    Titles match case-insensitively within one project. Unknown titles are
    ignored; storage errors are logged and yield an empty list.
    """

    def __init__(self, lookups: StoryLookups, project_id: str):
        self.lookups = lookups
        self.project_id = project_id

    async def resolve_compendium_entries_from_beat(self, text: str) -> list[CompendiumRef]:
        titles = _mention_titles(COMPENDIUM_MENTION_RE, text)
        if not titles:
            return []
        try:
            entries = await self.lookups.list_compendium_entries(self.project_id)
        except Exception:  # noqa: BLE001
            logger.warning("compendium mention lookup failed for project %s", self.project_id, exc_info=True)
            return []
        by_title: dict[str, CompendiumRef] = {}
        for entry in entries:
            by_title.setdefault(entry.title.strip().casefold(), entry)
        return [by_title[key] for key in (t.casefold() for t in titles) if key in by_title]

    async def resolve_scene_summaries_from_beat(self, text: str) -> list[SceneSummaryRef]:
        titles = _mention_titles(SCENE_MENTION_RE, text)
        if not titles:
            return []
        try:
            scenes = await self.lookups.list_scenes(self.project_id)
        except Exception:  # noqa: BLE001
            logger.warning("scene mention lookup failed for project %s", self.project_id, exc_info=True)
            return []
        out: list[SceneSummaryRef] = []
        for title in titles:
            key = title.casefold()
            for scene in scenes:
                if scene.title.strip().casefold() != key or not scene.summary:
                    continue
                out.append(SceneSummaryRef(title=scene.title, summary=scene.summary, scene_id=scene.id))
        return out


class NullMentionResolver:
    async def resolve_compendium_entries_from_beat(self, text: str) -> list[CompendiumRef]:
        return []

    async def resolve_scene_summaries_from_beat(self, text: str) -> list[SceneSummaryRef]:
        return []
