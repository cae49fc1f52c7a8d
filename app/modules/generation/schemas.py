from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.modules.context.types import ContextPanelSelection

ContextModeIn = Literal["full", "summary"]


class ContextPanelIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    compendium_ids: list[str] = Field(default_factory=list)
    compendium_tags: list[str] = Field(default_factory=list)
    chapters: dict[str, ContextModeIn | None] = Field(default_factory=dict)
    scenes: dict[str, ContextModeIn | None] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)

    def to_selection(self) -> ContextPanelSelection:
        return ContextPanelSelection(
            compendium_ids=list(self.compendium_ids),
            compendium_tags=list(self.compendium_tags),
            chapters=dict(self.chapters),
            scenes=dict(self.scenes),
            tags=list(self.tags),
        )


class GenerationStartRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    beat: str = ""
    context: ContextPanelIn = Field(default_factory=ContextPanelIn)
    pov_character: str | None = None
    pov: str | None = None
    tense: str | None = None
    prose_prompt_id: str | None = None


class GenerationStateOut(BaseModel):
    scene_id: str
    state: str
    text: str
    beat_input: str = ""
    last_beat: str | None = None
    session: dict | None = None
    last_outcome: str | None = None
    last_error: str | None = None
    last_save_ok: bool | None = None
    show_generated_highlight: bool = False
    highlight_range: list[int] | None = None


class PromptHistoryItem(BaseModel):
    id: str
    project_id: str | None = None
    scene_id: str | None = None
    timestamp: datetime
    beat: str
    prompt: str


class PromptHistoryResponse(BaseModel):
    entries: list[PromptHistoryItem]
