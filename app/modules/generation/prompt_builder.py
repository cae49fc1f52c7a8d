from __future__ import annotations

from dataclasses import dataclass

from app.modules.context.types import CompendiumRef, SceneSummaryRef

BEAT_MARKER = "BEAT TO EXPAND:"
SCENE_MARKER = "SCENE SO FAR:"
COMPENDIUM_MARKER = "COMPENDIUM:"
SUMMARIES_MARKER = "SCENE SUMMARIES:"


@dataclass(frozen=True, slots=True)
class PromptOptions:
    pov_character: str | None = None
    pov: str | None = None
    tense: str | None = None
    prose_prompt_text: str | None = None
    system_prompt_text: str | None = None
    compendium_entries: tuple[CompendiumRef, ...] = ()
    scene_summaries: tuple[SceneSummaryRef, ...] = ()
    scene_tail_chars: int | None = None


@dataclass(frozen=True, slots=True)
class PromptPayload:
    prompt_text: str
    system_text: str | None = None

    def as_messages(self) -> list[dict[str, str]]:
        messages: list[dict[str, str]] = []
        if self.system_text:
            messages.append({"role": "system", "content": self.system_text})
        messages.append({"role": "user", "content": self.prompt_text})
        return messages


def _clean(value: str | None) -> str:
    return str(value or "").strip()


def scene_tail(text: str, limit: int | None) -> str:
    text = str(text or "")
    if limit is None or limit <= 0 or len(text) <= limit:
        return text.strip()
    tail = text[-limit:]
    if not text[-limit - 1].isspace():
        # drop the partial leading word
        cut = tail.find(" ")
        if 0 <= cut < len(tail) - 1:
            tail = tail[cut + 1 :]
    return tail.strip()


def _compendium_section(entries: tuple[CompendiumRef, ...]) -> str:
    lines = [COMPENDIUM_MARKER]
    for entry in entries:
        lines.append(f"- {entry.title or entry.id}: {entry.body or ''}".rstrip())
    return "\n".join(lines)


def _summaries_section(refs: tuple[SceneSummaryRef, ...]) -> str:
    lines = [SUMMARIES_MARKER]
    for ref in refs:
        lines.append(f"- {ref.title}: {ref.summary or ''}".rstrip())
    return "\n".join(lines)


def _directives_section(options: PromptOptions) -> str:
    lines: list[str] = []
    pov_character = _clean(options.pov_character)
    pov = _clean(options.pov)
    tense = _clean(options.tense)
    if pov_character:
        lines.append(f"POV CHARACTER: {pov_character}")
    if pov:
        lines.append(f"POV: Write in {pov} point of view.")
    if tense:
        lines.append(f"TENSE: Write in {tense} tense.")
    return "\n".join(lines)


def build_prompt(beat_text: str, document_text: str, options: PromptOptions | None = None) -> PromptPayload:
    """Render the generation payload.

    Sections always appear in the same order and a section with no content
    is left out entirely, so identical inputs give byte-identical output.
    """
    options = options or PromptOptions()
    sections: list[str] = []

    prose = _clean(options.prose_prompt_text)
    if prose:
        sections.append(prose)

    beat = _clean(beat_text)
    if beat:
        sections.append(f"{BEAT_MARKER}\n{beat}")

    tail = scene_tail(document_text, options.scene_tail_chars)
    if tail:
        sections.append(f"{SCENE_MARKER}\n{tail}")

    if options.compendium_entries:
        sections.append(_compendium_section(tuple(options.compendium_entries)))

    if options.scene_summaries:
        sections.append(_summaries_section(tuple(options.scene_summaries)))

    directives = _directives_section(options)
    if directives:
        sections.append(directives)

    system_text = _clean(options.system_prompt_text) or None
    return PromptPayload(prompt_text="\n\n".join(sections), system_text=system_text)
