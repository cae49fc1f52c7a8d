from __future__ import annotations

from dataclasses import dataclass, field

from app.db import session as db_session
from app.modules.compendium.service import create_entry
from app.modules.manuscript.service import create_chapter, create_project, create_scene


@dataclass
class SeededProject:
    project_id: str
    chapter_ids: list[str] = field(default_factory=list)
    scene_ids: dict[str, str] = field(default_factory=dict)
    entry_ids: dict[str, str] = field(default_factory=dict)


def seed_manuscript(
    *,
    chapters: dict[str, list[dict]] | None = None,
    entries: list[dict] | None = None,
    name: str = "Test Novel",
) -> SeededProject:
    """Create a project with chapters, scenes and compendium entries.

    ``chapters`` maps chapter titles to scene kwargs; scene ids are keyed by
    scene title and entry ids by entry title.
    """
    with db_session.SessionLocal() as db:
        project = create_project(db, name=name)
        seeded = SeededProject(project_id=project.id)
        for chapter_title, scenes in (chapters or {}).items():
            chapter = create_chapter(db, project_id=project.id, title=chapter_title)
            seeded.chapter_ids.append(chapter.id)
            for scene_kwargs in scenes:
                scene = create_scene(db, project_id=project.id, chapter_id=chapter.id, **scene_kwargs)
                seeded.scene_ids[scene.title] = scene.id
        for entry_kwargs in entries or []:
            entry = create_entry(db, project_id=project.id, **entry_kwargs)
            seeded.entry_ids[entry.title] = entry.id
        return seeded
