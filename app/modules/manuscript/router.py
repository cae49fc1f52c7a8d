from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.modules.auth.deps import require_author_token
from app.modules.generation.service import controller_registry
from app.modules.manuscript.schemas import (
    ChapterCreateRequest,
    ChapterDeleteResponse,
    ChapterListResponse,
    ChapterOut,
    ProjectCreateRequest,
    ProjectListResponse,
    ProjectOut,
    SceneCreateRequest,
    SceneDetail,
    SceneListResponse,
    SceneMetaUpdateRequest,
    SceneOut,
    SceneSaveRequest,
)
from app.modules.manuscript.service import (
    RecordNotFoundError,
    create_chapter,
    create_project,
    create_scene,
    delete_chapter,
    delete_scene,
    get_scene_text,
    list_chapter_scenes,
    list_chapters,
    list_projects,
    move_chapter_down,
    move_chapter_up,
    require_project,
    require_scene,
    save_scene,
    update_scene_meta,
)

router = APIRouter(prefix="/api/v1/projects", tags=["manuscript"])


def _not_found(exc: LookupError) -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": str(exc)})


def _scene_detail(db: Session, scene) -> SceneDetail:
    return SceneDetail(**SceneOut.model_validate(scene).model_dump(), text=get_scene_text(db, scene.id))


@router.get("", response_model=ProjectListResponse)
def get_projects(db: Session = Depends(get_db)) -> ProjectListResponse:
    return ProjectListResponse(projects=[ProjectOut.model_validate(row) for row in list_projects(db)])


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
def post_project(
    payload: ProjectCreateRequest,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> ProjectOut:
    return ProjectOut.model_validate(create_project(db, name=payload.name))


@router.get("/{project_id}", response_model=ProjectOut)
def get_project(project_id: str, db: Session = Depends(get_db)) -> ProjectOut:
    try:
        return ProjectOut.model_validate(require_project(db, project_id))
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc


@router.get("/{project_id}/chapters", response_model=ChapterListResponse)
def get_chapters(project_id: str, db: Session = Depends(get_db)) -> ChapterListResponse:
    return ChapterListResponse(chapters=[ChapterOut.model_validate(row) for row in list_chapters(db, project_id)])


@router.post("/{project_id}/chapters", response_model=ChapterOut, status_code=status.HTTP_201_CREATED)
def post_chapter(
    project_id: str,
    payload: ChapterCreateRequest,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> ChapterOut:
    try:
        return ChapterOut.model_validate(create_chapter(db, project_id=project_id, title=payload.title))
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc


@router.post("/{project_id}/chapters/{chapter_id}/move", response_model=ChapterListResponse)
def post_move_chapter(
    project_id: str,
    chapter_id: str,
    direction: str,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> ChapterListResponse:
    if direction not in {"up", "down"}:
        raise HTTPException(status_code=400, detail={"code": "BAD_REQUEST", "message": "direction must be up or down"})
    try:
        rows = move_chapter_up(db, chapter_id) if direction == "up" else move_chapter_down(db, chapter_id)
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
    return ChapterListResponse(chapters=[ChapterOut.model_validate(row) for row in rows])


@router.delete("/{project_id}/chapters/{chapter_id}", response_model=ChapterDeleteResponse)
def remove_chapter(
    project_id: str,
    chapter_id: str,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> ChapterDeleteResponse:
    try:
        target = delete_chapter(db, chapter_id)
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
    return ChapterDeleteResponse(deleted_chapter_id=chapter_id, scenes_moved_to=target.id if target else None)


@router.get("/{project_id}/chapters/{chapter_id}/scenes", response_model=SceneListResponse)
def get_chapter_scenes(project_id: str, chapter_id: str, db: Session = Depends(get_db)) -> SceneListResponse:
    return SceneListResponse(scenes=[SceneOut.model_validate(row) for row in list_chapter_scenes(db, chapter_id)])


@router.post("/{project_id}/scenes", response_model=SceneDetail, status_code=status.HTTP_201_CREATED)
def post_scene(
    project_id: str,
    payload: SceneCreateRequest,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> SceneDetail:
    try:
        scene = create_scene(
            db,
            project_id=project_id,
            chapter_id=payload.chapter_id,
            title=payload.title,
            summary=payload.summary,
            tags=payload.tags,
            text=payload.text,
        )
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail={"code": "BAD_REQUEST", "message": str(exc)}) from exc
    return _scene_detail(db, scene)


@router.get("/{project_id}/scenes/{scene_id}", response_model=SceneDetail)
def get_scene(project_id: str, scene_id: str, db: Session = Depends(get_db)) -> SceneDetail:
    try:
        scene = require_scene(db, scene_id)
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
    return _scene_detail(db, scene)


@router.patch("/{project_id}/scenes/{scene_id}", response_model=SceneOut)
def patch_scene(
    project_id: str,
    scene_id: str,
    payload: SceneMetaUpdateRequest,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> SceneOut:
    try:
        scene = update_scene_meta(db, scene_id, title=payload.title, summary=payload.summary, tags=payload.tags)
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
    return SceneOut.model_validate(scene)


@router.put("/{project_id}/scenes/{scene_id}/content", response_model=SceneDetail)
def put_scene_content(
    project_id: str,
    scene_id: str,
    payload: SceneSaveRequest,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> SceneDetail:
    if controller_registry.is_locked(scene_id):
        raise HTTPException(
            status_code=409,
            detail={"code": "GENERATION_BUSY", "message": "scene text is locked while a generation session is open"},
        )
    try:
        scene = require_scene(db, scene_id)
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
    ok = save_scene(
        db,
        scene_id,
        text=payload.text,
        pov_character=payload.pov_character,
        pov=payload.pov,
        tense=payload.tense,
    )
    if not ok:
        raise HTTPException(status_code=500, detail={"code": "SAVE_FAILED", "message": f"scene {scene_id} was not saved"})
    controller_registry.sync_if_idle(scene_id, payload.text)
    db.refresh(scene)
    return _scene_detail(db, scene)


@router.delete("/{project_id}/scenes/{scene_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_scene(
    project_id: str,
    scene_id: str,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> None:
    try:
        delete_scene(db, scene_id)
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
