from __future__ import annotations

import logging

from app.modules.context.lookups import StoryLookups
from app.modules.context.mentions import MentionResolver, NullMentionResolver
from app.modules.context.ordered import OrderedRegistry, SceneSummaryRegistry
from app.modules.context.types import (
    CompendiumRef,
    ContextPanelSelection,
    ResolvedContext,
    SceneRecord,
    SceneSummaryRef,
)

logger = logging.getLogger(__name__)


class _ResolutionState:
    def __init__(self) -> None:
        self.compendium: OrderedRegistry[str, CompendiumRef] = OrderedRegistry()
        self.summaries = SceneSummaryRegistry()
        self.visited_scenes: set[str] = set()

    def snapshot(self) -> ResolvedContext:
        return ResolvedContext(
            compendium_entries=self.compendium.values(),
            scene_summaries=self.summaries.values(),
        )


class ContextResolver:
    """Collects prompt context from the context panel and beat mentions.

    Sources are applied in a fixed order (panel ids, panel compendium tags,
    chapters, individual scenes, scene tags, beat mentions). Earlier sources
    win: a later source never duplicates or reorders what is already present.
    A stale reference, or one owned by another project, contributes nothing
    and never aborts resolution.
    """

    def __init__(self, lookups: StoryLookups, mention_resolver: MentionResolver | None = None):
        self.lookups = lookups
        self.mention_resolver = mention_resolver or NullMentionResolver()

    async def resolve(
        self,
        panel: ContextPanelSelection | None,
        beat_text: str,
        *,
        project_id: str,
    ) -> ResolvedContext:
        panel = panel or ContextPanelSelection()
        state = _ResolutionState()

        await self._add_compendium_ids(state, panel.compendium_ids, project_id=project_id)
        await self._add_compendium_tags(state, panel.compendium_tags, project_id=project_id)
        await self._add_chapter_scenes(state, panel, project_id=project_id)
        await self._add_individual_scenes(state, panel, project_id=project_id)
        await self._add_tagged_scenes(state, panel.tags, project_id=project_id)
        await self._add_beat_mentions(state, beat_text)

        return state.snapshot()

    async def _add_compendium_ids(self, state: _ResolutionState, entry_ids: list[str], *, project_id: str) -> None:
        for entry_id in entry_ids:
            try:
                entry = await self.lookups.get_compendium_entry(project_id, entry_id)
            except Exception:  # noqa: BLE001
                logger.warning("failed to load compendium entry %s", entry_id, exc_info=True)
                continue
            if entry is None:
                logger.info("compendium entry %s not found in project %s; skipped", entry_id, project_id)
                continue
            state.compendium.add(entry.id, entry)

    async def _add_compendium_tags(self, state: _ResolutionState, tags: list[str], *, project_id: str) -> None:
        wanted = {str(tag) for tag in tags if str(tag or "").strip()}
        if not wanted:
            return
        try:
            entries = await self.lookups.list_compendium_entries(project_id)
        except Exception:  # noqa: BLE001
            logger.warning("failed to load compendium entries by tag for project %s", project_id, exc_info=True)
            return
        for entry in entries:
            if entry.id in state.compendium:
                continue
            if entry.tags & wanted:
                state.compendium.add(entry.id, entry)

    async def _add_chapter_scenes(
        self,
        state: _ResolutionState,
        panel: ContextPanelSelection,
        *,
        project_id: str,
    ) -> None:
        for chapter_id, mode in panel.chapters.items():
            if not mode:
                continue
            try:
                scenes = await self.lookups.list_chapter_scenes(project_id, chapter_id)
            except Exception:  # noqa: BLE001
                logger.warning("failed to load scenes for chapter %s", chapter_id, exc_info=True)
                continue
            for scene in scenes:
                if scene.id in state.visited_scenes:
                    continue
                state.visited_scenes.add(scene.id)
                await self._add_scene(state, scene, mode)

    async def _add_individual_scenes(
        self,
        state: _ResolutionState,
        panel: ContextPanelSelection,
        *,
        project_id: str,
    ) -> None:
        for scene_id, mode in panel.scenes.items():
            if not mode or scene_id in state.visited_scenes:
                continue
            try:
                scene = await self.lookups.get_scene(project_id, scene_id)
            except Exception:  # noqa: BLE001
                logger.warning("failed to load scene %s", scene_id, exc_info=True)
                continue
            if scene is None:
                continue
            if panel.chapter_mode(scene.chapter_id):
                # chapter-level selection decides for every scene it owns
                continue
            state.visited_scenes.add(scene.id)
            await self._add_scene(state, scene, mode)

    async def _add_tagged_scenes(self, state: _ResolutionState, tags: list[str], *, project_id: str) -> None:
        wanted = [str(tag) for tag in tags if str(tag or "").strip()]
        if not wanted:
            return
        try:
            scenes = await self.lookups.list_scenes(project_id)
        except Exception:  # noqa: BLE001
            logger.warning("failed to load scenes by tag for project %s", project_id, exc_info=True)
            return
        for tag in wanted:
            for scene in scenes:
                if tag not in scene.tags or scene.id in state.visited_scenes:
                    continue
                state.visited_scenes.add(scene.id)
                if scene.summary:
                    state.summaries.add(SceneSummaryRef(title=scene.title, summary=scene.summary, scene_id=scene.id))

    async def _add_scene(self, state: _ResolutionState, scene: SceneRecord, mode: str) -> None:
        if mode == "full":
            try:
                text = await self.lookups.get_scene_text(scene.id)
            except Exception:  # noqa: BLE001
                logger.warning("failed to load scene content %s", scene.id, exc_info=True)
                return
            if text is None:
                return
            state.summaries.add(SceneSummaryRef(title=scene.title, summary=text, scene_id=scene.id))
        elif mode == "summary" and scene.summary:
            state.summaries.add(SceneSummaryRef(title=scene.title, summary=scene.summary, scene_id=scene.id))

    async def _add_beat_mentions(self, state: _ResolutionState, beat_text: str) -> None:
        text = str(beat_text or "")
        try:
            entries = await self.mention_resolver.resolve_compendium_entries_from_beat(text)
        except Exception:  # noqa: BLE001
            logger.warning("compendium mention resolution failed", exc_info=True)
            entries = []
        try:
            summaries = await self.mention_resolver.resolve_scene_summaries_from_beat(text)
        except Exception:  # noqa: BLE001
            logger.warning("scene mention resolution failed", exc_info=True)
            summaries = []

        for entry in entries or []:
            state.compendium.add(entry.id, entry)
        for ref in summaries or []:
            state.summaries.add(ref)
