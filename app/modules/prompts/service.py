from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models import Project, PromptTemplate
from app.db.types import utc_now_naive
from app.modules.manuscript.service import RecordNotFoundError, require_project

PROMPT_CATEGORIES: tuple[str, ...] = ("prose", "rewrite", "summary", "workshop")
PROSE_CATEGORY = "prose"

SOURCE_DB = "db"
SOURCE_MISSING = "missing"
SOURCE_NONE = "none"


@dataclass(frozen=True, slots=True)
class ProsePromptInfo:
    id: str | None
    text: str | None
    system_text: str | None
    source: str

    def to_dict(self) -> dict[str, str | None]:
        return asdict(self)


def require_prompt(db: Session, prompt_id: str) -> PromptTemplate:
    row = db.get(PromptTemplate, prompt_id)
    if row is None:
        raise RecordNotFoundError(f"prompt {prompt_id} not found")
    return row


def list_prompts(db: Session, project_id: str, *, category: str | None = None) -> list[PromptTemplate]:
    stmt = select(PromptTemplate).where(PromptTemplate.project_id == project_id)
    if category:
        stmt = stmt.where(PromptTemplate.category == category)
    stmt = stmt.order_by(PromptTemplate.modified_at, PromptTemplate.id)
    return list(db.execute(stmt).scalars().all())


def create_prompt(db: Session, *, project_id: str, category: str, title: str | None = None) -> PromptTemplate:
    require_project(db, project_id)
    if category not in PROMPT_CATEGORIES:
        raise ValueError(f"unknown prompt category: {category}")
    now = utc_now_naive()
    row = PromptTemplate(
        project_id=project_id,
        category=category,
        title=str(title or "").strip() or "New Prompt",
        content="",
        system_content="",
        created_at=now,
        modified_at=now,
    )
    db.add(row)
    db.commit()
    return row


def update_prompt(
    db: Session,
    prompt_id: str,
    *,
    title: str | None = None,
    content: str | None = None,
    system_content: str | None = None,
) -> PromptTemplate:
    row = require_prompt(db, prompt_id)
    if title is not None:
        cleaned = str(title).strip()
        if cleaned:
            row.title = cleaned
    if content is not None:
        row.content = content
    if system_content is not None:
        row.system_content = system_content
    row.modified_at = utc_now_naive()
    db.commit()
    return row


def delete_prompt(db: Session, prompt_id: str) -> None:
    row = db.get(PromptTemplate, prompt_id)
    if row is None:
        return
    project = db.get(Project, row.project_id)
    if project is not None and project.selected_prose_prompt_id == prompt_id:
        project.selected_prose_prompt_id = None
    db.delete(row)
    db.commit()


def _swap_position(db: Session, prompt_id: str, offset: int) -> list[PromptTemplate]:
    row = require_prompt(db, prompt_id)
    rows = list_prompts(db, row.project_id, category=row.category)
    idx = next(i for i, item in enumerate(rows) if item.id == row.id)
    target = idx + offset
    if target < 0 or target >= len(rows):
        return rows
    other = rows[target]
    if other.modified_at == row.modified_at:
        # equal timestamps would make the swap a no-op
        row.modified_at = other.modified_at + timedelta(microseconds=offset)
    else:
        row.modified_at, other.modified_at = other.modified_at, row.modified_at
    db.commit()
    return list_prompts(db, row.project_id, category=row.category)


def move_prompt_up(db: Session, prompt_id: str) -> list[PromptTemplate]:
    return _swap_position(db, prompt_id, -1)


def move_prompt_down(db: Session, prompt_id: str) -> list[PromptTemplate]:
    return _swap_position(db, prompt_id, 1)


def select_prose_prompt(db: Session, project_id: str, prompt_id: str | None) -> Project:
    project = require_project(db, project_id)
    if prompt_id is not None:
        row = require_prompt(db, prompt_id)
        if row.category != PROSE_CATEGORY:
            raise ValueError(f"prompt {prompt_id} is not a prose prompt")
    project.selected_prose_prompt_id = prompt_id
    db.commit()
    return project


def resolve_prose_prompt_info(db: Session, project_id: str, prompt_id: str | None = None) -> ProsePromptInfo:
    """Resolve the prose prompt used for generation.

    An explicit ``prompt_id`` wins over the project's selection. A selected
    id whose row is gone (or is not a prose prompt) yields ``source="missing"``.
    """
    selected = prompt_id
    if selected is None:
        project = db.get(Project, project_id)
        selected = project.selected_prose_prompt_id if project is not None else None
    if not selected:
        return ProsePromptInfo(id=None, text=None, system_text=None, source=SOURCE_NONE)

    row = db.get(PromptTemplate, selected)
    if row is None or row.category != PROSE_CATEGORY:
        return ProsePromptInfo(id=selected, text=None, system_text=None, source=SOURCE_MISSING)
    return ProsePromptInfo(
        id=row.id,
        text=row.content or None,
        system_text=row.system_content or None,
        source=SOURCE_DB,
    )
