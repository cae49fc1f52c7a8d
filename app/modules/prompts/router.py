from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.modules.auth.deps import require_author_token
from app.modules.manuscript.service import RecordNotFoundError
from app.modules.prompts.schemas import (
    PromptCreateRequest,
    PromptListResponse,
    PromptOut,
    PromptUpdateRequest,
    ProsePromptInfoOut,
    ProsePromptSelectRequest,
)
from app.modules.prompts.service import (
    create_prompt,
    delete_prompt,
    list_prompts,
    move_prompt_down,
    move_prompt_up,
    resolve_prose_prompt_info,
    select_prose_prompt,
    update_prompt,
)

router = APIRouter(prefix="/api/v1/projects/{project_id}/prompts", tags=["prompts"])


def _not_found(exc: LookupError) -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": str(exc)})


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": "BAD_REQUEST", "message": str(exc)})


@router.get("", response_model=PromptListResponse)
def get_prompts(project_id: str, category: str | None = None, db: Session = Depends(get_db)) -> PromptListResponse:
    return PromptListResponse(prompts=[PromptOut.model_validate(row) for row in list_prompts(db, project_id, category=category)])


@router.post("", response_model=PromptOut, status_code=status.HTTP_201_CREATED)
def post_prompt(
    project_id: str,
    payload: PromptCreateRequest,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> PromptOut:
    try:
        row = create_prompt(db, project_id=project_id, category=payload.category, title=payload.title)
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return PromptOut.model_validate(row)


@router.get("/prose/selected", response_model=ProsePromptInfoOut)
def get_selected_prose_prompt(project_id: str, db: Session = Depends(get_db)) -> ProsePromptInfoOut:
    return ProsePromptInfoOut(**resolve_prose_prompt_info(db, project_id).to_dict())


@router.put("/prose/selected", response_model=ProsePromptInfoOut)
def put_selected_prose_prompt(
    project_id: str,
    payload: ProsePromptSelectRequest,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> ProsePromptInfoOut:
    try:
        select_prose_prompt(db, project_id, payload.prompt_id)
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return ProsePromptInfoOut(**resolve_prose_prompt_info(db, project_id).to_dict())


@router.patch("/{prompt_id}", response_model=PromptOut)
def patch_prompt(
    project_id: str,
    prompt_id: str,
    payload: PromptUpdateRequest,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> PromptOut:
    try:
        row = update_prompt(
            db,
            prompt_id,
            title=payload.title,
            content=payload.content,
            system_content=payload.system_content,
        )
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
    return PromptOut.model_validate(row)


@router.post("/{prompt_id}/move", response_model=PromptListResponse)
def post_move_prompt(
    project_id: str,
    prompt_id: str,
    direction: str,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> PromptListResponse:
    if direction not in {"up", "down"}:
        raise HTTPException(status_code=400, detail={"code": "BAD_REQUEST", "message": "direction must be up or down"})
    try:
        rows = move_prompt_up(db, prompt_id) if direction == "up" else move_prompt_down(db, prompt_id)
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
    return PromptListResponse(prompts=[PromptOut.model_validate(row) for row in rows])


@router.delete("/{prompt_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_prompt(
    project_id: str,
    prompt_id: str,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> None:
    delete_prompt(db, prompt_id)
