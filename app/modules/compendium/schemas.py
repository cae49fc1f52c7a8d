from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CompendiumEntryCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: str = "lore"
    title: str = ""
    body: str = ""
    tags: list[str] = Field(default_factory=list)


class CompendiumEntryUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: str | None = None
    title: str | None = None
    body: str | None = None
    summary: str | None = None
    tags: list[str] | None = None
    order: int | None = None


class CompendiumEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    category: str
    title: str
    body: str
    summary: str
    tags: list[str]
    order: int
    created_at: datetime
    modified_at: datetime


class CompendiumEntryListResponse(BaseModel):
    entries: list[CompendiumEntryOut]


class CompendiumSummariesRequest(BaseModel):
    ids: list[str] = Field(default_factory=list)


class CompendiumSummariesResponse(BaseModel):
    summaries: dict[str, str]


class CompendiumImportRequest(BaseModel):
    entries: list[dict[str, Any]] = Field(default_factory=list)


class CompendiumExportResponse(BaseModel):
    project_id: str
    entries: list[dict[str, Any]]
