from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ProjectCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=255)


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    selected_prose_prompt_id: str | None = None
    created_at: datetime
    modified_at: datetime


class ProjectListResponse(BaseModel):
    projects: list[ProjectOut]


class ChapterCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = ""


class ChapterOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    title: str
    order: int


class ChapterListResponse(BaseModel):
    chapters: list[ChapterOut]


class ChapterDeleteResponse(BaseModel):
    deleted_chapter_id: str
    scenes_moved_to: str | None = None


class SceneCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    chapter_id: str = Field(min_length=1)
    title: str = ""
    summary: str = ""
    tags: list[str] = Field(default_factory=list)
    text: str = ""


class SceneMetaUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    summary: str | None = None
    tags: list[str] | None = None


class SceneSaveRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str
    pov_character: str | None = None
    pov: str | None = None
    tense: str | None = None


class SceneOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    chapter_id: str | None = None
    title: str
    order: int
    summary: str
    summary_stale: bool
    tags: list[str]
    pov_character: str
    pov: str
    tense: str
    word_count: int


class SceneDetail(SceneOut):
    text: str = ""


class SceneListResponse(BaseModel):
    scenes: list[SceneOut]
