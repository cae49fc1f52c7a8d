from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class PromptCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: str = "prose"
    title: str | None = None


class PromptUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    content: str | None = None
    system_content: str | None = None


class PromptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    category: str
    title: str
    content: str
    system_content: str
    created_at: datetime
    modified_at: datetime


class PromptListResponse(BaseModel):
    prompts: list[PromptOut]


class ProsePromptSelectRequest(BaseModel):
    prompt_id: str | None = None


class ProsePromptInfoOut(BaseModel):
    id: str | None = None
    text: str | None = None
    system_text: str | None = None
    source: str
