from __future__ import annotations

import pytest

from app.db import session as db_session
from app.db.models import Scene, SceneContent
from app.modules.manuscript.service import (
    RecordNotFoundError,
    count_words,
    create_chapter,
    create_project,
    create_scene,
    delete_chapter,
    delete_scene,
    get_scene_text,
    list_chapter_scenes,
    list_chapters,
    move_chapter_down,
    move_chapter_up,
    normalize_orders,
    save_scene,
    update_scene_meta,
)


def _project_with_chapters(db, titles: list[str]):
    project = create_project(db, name="Novel")
    chapters = [create_chapter(db, project_id=project.id, title=title) for title in titles]
    return project, chapters


def test_chapters_are_appended_in_order() -> None:
    with db_session.SessionLocal() as db:
        project, _ = _project_with_chapters(db, ["One", "Two", "Three"])
        assert [(c.title, c.order) for c in list_chapters(db, project.id)] == [("One", 0), ("Two", 1), ("Three", 2)]


def test_create_chapter_for_unknown_project_raises() -> None:
    with db_session.SessionLocal() as db:
        with pytest.raises(RecordNotFoundError):
            create_chapter(db, project_id="missing", title="x")


def test_move_chapter_up_and_down_swaps_neighbours() -> None:
    with db_session.SessionLocal() as db:
        project, (one, two, three) = _project_with_chapters(db, ["One", "Two", "Three"])
        assert [c.title for c in move_chapter_up(db, three.id)] == ["One", "Three", "Two"]
        assert [c.title for c in move_chapter_down(db, one.id)] == ["Three", "One", "Two"]
        assert [c.title for c in move_chapter_up(db, list_chapters(db, project.id)[0].id)] == ["Three", "One", "Two"]


def test_delete_chapter_moves_scenes_to_previous_chapter() -> None:
    with db_session.SessionLocal() as db:
        project, (one, two) = _project_with_chapters(db, ["One", "Two"])
        create_scene(db, project_id=project.id, chapter_id=one.id, title="A")
        create_scene(db, project_id=project.id, chapter_id=two.id, title="B")
        create_scene(db, project_id=project.id, chapter_id=two.id, title="C")

        target = delete_chapter(db, two.id)

        assert target.id == one.id
        assert [(s.title, s.order) for s in list_chapter_scenes(db, one.id)] == [("A", 0), ("B", 1), ("C", 2)]
        assert [c.title for c in list_chapters(db, project.id)] == ["One"]


def test_delete_first_chapter_moves_scenes_to_next_chapter() -> None:
    with db_session.SessionLocal() as db:
        project, (one, two) = _project_with_chapters(db, ["One", "Two"])
        create_scene(db, project_id=project.id, chapter_id=one.id, title="A")

        target = delete_chapter(db, one.id)

        assert target.id == two.id
        assert [s.title for s in list_chapter_scenes(db, two.id)] == ["A"]
        assert list_chapters(db, project.id)[0].order == 0


def test_delete_only_chapter_deletes_scenes_and_content() -> None:
    with db_session.SessionLocal() as db:
        project, (one,) = _project_with_chapters(db, ["Only"])
        scene = create_scene(db, project_id=project.id, chapter_id=one.id, title="A", text="Some words.")

        assert delete_chapter(db, one.id) is None
        assert db.get(Scene, scene.id) is None
        assert db.get(SceneContent, scene.id) is None


def test_normalize_orders_closes_gaps() -> None:
    with db_session.SessionLocal() as db:
        project, (one, two) = _project_with_chapters(db, ["One", "Two"])
        a = create_scene(db, project_id=project.id, chapter_id=one.id, title="A")
        b = create_scene(db, project_id=project.id, chapter_id=one.id, title="B")
        one.order, two.order = 5, 9
        a.order, b.order = 3, 7
        db.commit()

        normalize_orders(db, project.id)

        assert [c.order for c in list_chapters(db, project.id)] == [0, 1]
        assert [s.order for s in list_chapter_scenes(db, one.id)] == [0, 1]


def test_save_scene_updates_content_word_count_and_metadata() -> None:
    with db_session.SessionLocal() as db:
        project, (one,) = _project_with_chapters(db, ["One"])
        scene = create_scene(db, project_id=project.id, chapter_id=one.id, title="A", summary="Old summary.")

        assert save_scene(db, scene.id, text="Rain fell on the roof.", pov="3rd person limited", tense="past")

        db.refresh(scene)
        assert get_scene_text(db, scene.id) == "Rain fell on the roof."
        assert scene.word_count == 5
        assert scene.pov == "3rd person limited"
        assert scene.tense == "past"
        assert scene.summary_stale is True


def test_save_scene_with_unchanged_text_keeps_summary_fresh() -> None:
    with db_session.SessionLocal() as db:
        project, (one,) = _project_with_chapters(db, ["One"])
        scene = create_scene(db, project_id=project.id, chapter_id=one.id, title="A", summary="S.", text="Same.")

        assert save_scene(db, scene.id, text="Same.")
        db.refresh(scene)
        assert scene.summary_stale is False


def test_save_scene_reports_failure_instead_of_raising() -> None:
    with db_session.SessionLocal() as db:
        assert save_scene(db, "missing-scene", text="x") is False


def test_update_scene_meta_clears_stale_summary() -> None:
    with db_session.SessionLocal() as db:
        project, (one,) = _project_with_chapters(db, ["One"])
        scene = create_scene(db, project_id=project.id, chapter_id=one.id, title="A", summary="S.", text="v1")
        save_scene(db, scene.id, text="v2")

        updated = update_scene_meta(db, scene.id, summary="Fresh summary.", tags=["flashback"])

        assert updated.summary_stale is False
        assert updated.tags == ["flashback"]


def test_delete_scene_renumbers_siblings() -> None:
    with db_session.SessionLocal() as db:
        project, (one,) = _project_with_chapters(db, ["One"])
        a = create_scene(db, project_id=project.id, chapter_id=one.id, title="A")
        create_scene(db, project_id=project.id, chapter_id=one.id, title="B")

        delete_scene(db, a.id)

        assert [(s.title, s.order) for s in list_chapter_scenes(db, one.id)] == [("B", 0)]


def test_count_words() -> None:
    assert count_words("") == 0
    assert count_words(None) == 0
    assert count_words("  one two\nthree  ") == 3
