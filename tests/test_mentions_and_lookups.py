from __future__ import annotations

import asyncio

from app.db import session as db_session
from app.modules.context.lookups import SqlStoryLookups
from app.modules.context.mentions import BeatMentionResolver
from app.modules.context.resolver import ContextResolver
from app.modules.context.types import ContextPanelSelection
from app.modules.manuscript.service import save_scene
from tests.support.manuscript_seed import seed_manuscript


def _seed():
    return seed_manuscript(
        chapters={
            "One": [
                {"title": "Arrival", "summary": "Alice arrives at the house.", "tags": ["house"]},
                {"title": "Cellar", "summary": "", "text": "Dark stairs lead down."},
            ],
            "Two": [{"title": "Escape", "summary": "They run.", "tags": ["house"]}],
        },
        entries=[
            {"category": "characters", "title": "Alice", "body": "A curious girl.", "tags": ["hero"]},
            {"category": "places", "title": "Old House", "body": "Creaky.", "tags": ["setting"]},
        ],
    )


def test_beat_mentions_resolve_titles_case_insensitively() -> None:
    seeded = _seed()
    with db_session.SessionLocal() as db:
        resolver = BeatMentionResolver(SqlStoryLookups(db), seeded.project_id)

        entries = asyncio.run(resolver.resolve_compendium_entries_from_beat("@[alice] enters @[OLD  HOUSE]. @[Nobody]"))
        scenes = asyncio.run(resolver.resolve_scene_summaries_from_beat("Like in #[arrival], and #[Cellar]."))

    assert [entry.title for entry in entries] == ["Alice", "Old House"]
    assert [(ref.title, ref.scene_id) for ref in scenes] == [("Arrival", seeded.scene_ids["Arrival"])]


def test_mentions_in_plain_text_resolve_to_nothing() -> None:
    seeded = _seed()
    with db_session.SessionLocal() as db:
        resolver = BeatMentionResolver(SqlStoryLookups(db), seeded.project_id)
        assert asyncio.run(resolver.resolve_compendium_entries_from_beat("Alice @ home [no mention]")) == []
        assert asyncio.run(resolver.resolve_scene_summaries_from_beat("")) == []


def test_resolver_over_sql_lookups_combines_all_sources() -> None:
    seeded = _seed()
    with db_session.SessionLocal() as db:
        lookups = SqlStoryLookups(db)
        resolver = ContextResolver(lookups, BeatMentionResolver(lookups, seeded.project_id))
        panel = ContextPanelSelection(
            compendium_tags=["setting"],
            chapters={seeded.chapter_ids[0]: "full"},
            tags=["house"],
        )
        ctx = asyncio.run(resolver.resolve(panel, "@[Alice] hides.", project_id=seeded.project_id))

    assert [entry.title for entry in ctx.compendium_entries] == ["Old House", "Alice"]
    assert [(ref.title, ref.summary) for ref in ctx.scene_summaries] == [
        ("Arrival", ""),
        ("Cellar", "Dark stairs lead down."),
        ("Escape", "They run."),
    ]


def test_sql_lookups_return_none_for_missing_rows() -> None:
    seeded = _seed()
    with db_session.SessionLocal() as db:
        lookups = SqlStoryLookups(db)
        assert asyncio.run(lookups.get_compendium_entry(seeded.project_id, "missing")) is None
        assert asyncio.run(lookups.get_scene(seeded.project_id, "missing")) is None
        assert asyncio.run(lookups.get_scene_text("missing")) is None
        save_scene(db, seeded.scene_ids["Arrival"], text="Updated text.")
        assert asyncio.run(lookups.get_scene_text(seeded.scene_ids["Arrival"])) == "Updated text."


def test_resolver_ignores_scenes_and_entries_of_another_project() -> None:
    other = seed_manuscript(
        chapters={"Hidden": [{"title": "Secret", "summary": "Not for this book.", "text": "Private prose."}]},
        entries=[{"category": "characters", "title": "Stranger", "body": "From elsewhere."}],
        name="Other Novel",
    )
    seeded = _seed()
    with db_session.SessionLocal() as db:
        lookups = SqlStoryLookups(db)
        assert asyncio.run(lookups.get_scene(seeded.project_id, other.scene_ids["Secret"])) is None
        assert asyncio.run(lookups.get_compendium_entry(seeded.project_id, other.entry_ids["Stranger"])) is None

        resolver = ContextResolver(lookups, BeatMentionResolver(lookups, seeded.project_id))
        panel = ContextPanelSelection(
            compendium_ids=[other.entry_ids["Stranger"]],
            scenes={other.scene_ids["Secret"]: "full"},
        )
        ctx = asyncio.run(resolver.resolve(panel, "Nothing mentioned.", project_id=seeded.project_id))

    assert ctx.compendium_entries == ()
    assert ctx.scene_summaries == ()
