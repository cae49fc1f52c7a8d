from __future__ import annotations

import logging
import re

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models import Chapter, Project, Scene, SceneContent
from app.db.types import utc_now_naive

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\S+")


def count_words(text: str | None) -> int:
    return len(_WORD_RE.findall(str(text or "").strip()))


class RecordNotFoundError(LookupError):
    pass


def _not_found(kind: str, record_id: str) -> RecordNotFoundError:
    return RecordNotFoundError(f"{kind} {record_id} not found")


def require_project(db: Session, project_id: str) -> Project:
    project = db.get(Project, project_id)
    if project is None:
        raise _not_found("project", project_id)
    return project


def require_chapter(db: Session, chapter_id: str) -> Chapter:
    chapter = db.get(Chapter, chapter_id)
    if chapter is None:
        raise _not_found("chapter", chapter_id)
    return chapter


def require_scene(db: Session, scene_id: str) -> Scene:
    scene = db.get(Scene, scene_id)
    if scene is None:
        raise _not_found("scene", scene_id)
    return scene


def create_project(db: Session, *, name: str) -> Project:
    project = Project(name=str(name or "").strip() or "Untitled")
    db.add(project)
    db.commit()
    return project


def list_projects(db: Session) -> list[Project]:
    return list(db.execute(select(Project).order_by(Project.created_at)).scalars().all())


def list_chapters(db: Session, project_id: str) -> list[Chapter]:
    return list(
        db.execute(
            select(Chapter).where(Chapter.project_id == project_id).order_by(Chapter.order, Chapter.created_at)
        ).scalars().all()
    )


def list_chapter_scenes(db: Session, chapter_id: str) -> list[Scene]:
    return list(
        db.execute(select(Scene).where(Scene.chapter_id == chapter_id).order_by(Scene.order, Scene.created_at))
        .scalars()
        .all()
    )


def normalize_orders(db: Session, project_id: str) -> None:
    """Rewrite chapter orders and per-chapter scene orders as 0..n-1."""
    chapters = list_chapters(db, project_id)
    for index, chapter in enumerate(chapters):
        if chapter.order != index:
            chapter.order = index
    for chapter in chapters:
        for index, scene in enumerate(list_chapter_scenes(db, chapter.id)):
            if scene.order != index:
                scene.order = index
    db.commit()


def create_chapter(db: Session, *, project_id: str, title: str) -> Chapter:
    require_project(db, project_id)
    chapter = Chapter(
        project_id=project_id,
        title=str(title or "").strip() or "New Chapter",
        order=len(list_chapters(db, project_id)),
    )
    db.add(chapter)
    db.commit()
    normalize_orders(db, project_id)
    return chapter


def _swap_chapter(db: Session, chapter_id: str, offset: int) -> list[Chapter]:
    chapter = require_chapter(db, chapter_id)
    chapters = list_chapters(db, chapter.project_id)
    idx = next(i for i, item in enumerate(chapters) if item.id == chapter.id)
    target = idx + offset
    if target < 0 or target >= len(chapters):
        return chapters
    other = chapters[target]
    chapter.order, other.order = other.order, chapter.order
    db.commit()
    normalize_orders(db, chapter.project_id)
    return list_chapters(db, chapter.project_id)


def move_chapter_up(db: Session, chapter_id: str) -> list[Chapter]:
    return _swap_chapter(db, chapter_id, -1)


def move_chapter_down(db: Session, chapter_id: str) -> list[Chapter]:
    return _swap_chapter(db, chapter_id, 1)


def delete_chapter(db: Session, chapter_id: str) -> Chapter | None:
    """Delete a chapter, moving its scenes to the previous (else next) chapter.

    With no neighbour the scenes and their content are deleted too. Returns
    the chapter that received the scenes, if any.
    """
    chapter = require_chapter(db, chapter_id)
    project_id = chapter.project_id
    chapters = list_chapters(db, project_id)
    idx = next(i for i, item in enumerate(chapters) if item.id == chapter.id)
    target = chapters[idx - 1] if idx > 0 else (chapters[idx + 1] if idx + 1 < len(chapters) else None)

    scenes = list_chapter_scenes(db, chapter.id)
    if target is not None:
        start_order = len(list_chapter_scenes(db, target.id))
        for offset, scene in enumerate(scenes):
            scene.chapter_id = target.id
            scene.order = start_order + offset
    else:
        for scene in scenes:
            content = db.get(SceneContent, scene.id)
            if content is not None:
                db.delete(content)
            db.delete(scene)
    db.flush()
    db.delete(chapter)
    db.commit()
    normalize_orders(db, project_id)
    return target


def create_scene(
    db: Session,
    *,
    project_id: str,
    chapter_id: str,
    title: str,
    summary: str = "",
    tags: list[str] | None = None,
    text: str = "",
) -> Scene:
    chapter = require_chapter(db, chapter_id)
    if chapter.project_id != project_id:
        raise ValueError(f"chapter {chapter_id} belongs to another project")
    scene = Scene(
        project_id=project_id,
        chapter_id=chapter_id,
        title=str(title or "").strip() or "New Scene",
        order=len(list_chapter_scenes(db, chapter_id)),
        summary=str(summary or ""),
        tags=[str(tag) for tag in (tags or [])],
        word_count=count_words(text),
    )
    db.add(scene)
    db.flush()
    db.add(SceneContent(scene_id=scene.id, text=str(text or ""), word_count=count_words(text)))
    db.commit()
    return scene


def update_scene_meta(
    db: Session,
    scene_id: str,
    *,
    title: str | None = None,
    summary: str | None = None,
    tags: list[str] | None = None,
) -> Scene:
    scene = require_scene(db, scene_id)
    if title is not None:
        scene.title = str(title).strip() or scene.title
    if summary is not None:
        scene.summary = str(summary)
        scene.summary_stale = False
    if tags is not None:
        scene.tags = [str(tag) for tag in tags]
    db.commit()
    return scene


def get_scene_text(db: Session, scene_id: str) -> str:
    content = db.get(SceneContent, scene_id)
    return (content.text or "") if content is not None else ""


def save_scene(
    db: Session,
    scene_id: str,
    *,
    text: str,
    pov_character: str | None = None,
    pov: str | None = None,
    tense: str | None = None,
) -> bool:
    """Persist scene text and metadata; returns False instead of raising.

    A changed text marks an existing summary as stale.
    """
    try:
        scene = db.get(Scene, scene_id)
        if scene is None:
            logger.warning("save_scene: scene %s does not exist", scene_id)
            return False
        text = str(text or "")
        word_count = count_words(text)
        content = db.get(SceneContent, scene_id)
        previous_text = content.text if content is not None else None
        now = utc_now_naive()
        if content is None:
            content = SceneContent(scene_id=scene_id, text=text, word_count=word_count, modified_at=now)
            db.add(content)
        else:
            content.text = text
            content.word_count = word_count
            content.modified_at = now

        scene.word_count = word_count
        if pov_character is not None:
            scene.pov_character = pov_character
        if pov is not None:
            scene.pov = pov
        if tense is not None:
            scene.tense = tense
        if previous_text is not None and (previous_text or "") != text and scene.summary:
            scene.summary_stale = True
        scene.modified_at = now
        db.commit()
        return True
    except Exception:  # noqa: BLE001
        logger.exception("save_scene failed for scene %s", scene_id)
        db.rollback()
        return False


def delete_scene(db: Session, scene_id: str) -> None:
    scene = require_scene(db, scene_id)
    project_id = scene.project_id
    content = db.get(SceneContent, scene_id)
    if content is not None:
        db.delete(content)
    db.delete(scene)
    db.commit()
    normalize_orders(db, project_id)
