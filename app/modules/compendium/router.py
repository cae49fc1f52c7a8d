from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.modules.auth.deps import require_author_token
from app.modules.compendium.schemas import (
    CompendiumEntryCreateRequest,
    CompendiumEntryListResponse,
    CompendiumEntryOut,
    CompendiumEntryUpdateRequest,
    CompendiumExportResponse,
    CompendiumImportRequest,
    CompendiumSummariesRequest,
    CompendiumSummariesResponse,
)
from app.modules.compendium.service import (
    create_entry,
    delete_entry,
    export_entries,
    import_entries,
    list_by_category,
    require_entry,
    search,
    summaries,
    update_entry,
)
from app.modules.manuscript.service import RecordNotFoundError

router = APIRouter(prefix="/api/v1/projects/{project_id}/compendium", tags=["compendium"])


def _not_found(exc: LookupError) -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": str(exc)})


def _entries(rows) -> CompendiumEntryListResponse:
    return CompendiumEntryListResponse(entries=[CompendiumEntryOut.model_validate(row) for row in rows])


@router.get("", response_model=CompendiumEntryListResponse)
def get_entries(
    project_id: str,
    category: str | None = None,
    q: str | None = None,
    limit: int = Query(default=20, ge=1, le=500),
    db: Session = Depends(get_db),
) -> CompendiumEntryListResponse:
    if category:
        return _entries(list_by_category(db, project_id, category))
    return _entries(search(db, project_id, q, limit=limit))


@router.post("", response_model=CompendiumEntryOut, status_code=status.HTTP_201_CREATED)
def post_entry(
    project_id: str,
    payload: CompendiumEntryCreateRequest,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> CompendiumEntryOut:
    try:
        row = create_entry(
            db,
            project_id=project_id,
            category=payload.category,
            title=payload.title,
            body=payload.body,
            tags=payload.tags,
        )
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
    return CompendiumEntryOut.model_validate(row)


@router.get("/export", response_model=CompendiumExportResponse)
def get_export(project_id: str, db: Session = Depends(get_db)) -> CompendiumExportResponse:
    return CompendiumExportResponse(project_id=project_id, entries=export_entries(db, project_id))


@router.post("/import", response_model=CompendiumEntryListResponse)
def post_import(
    project_id: str,
    payload: CompendiumImportRequest,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> CompendiumEntryListResponse:
    try:
        rows = import_entries(db, project_id, payload.entries)
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
    return _entries(rows)


@router.post("/summaries", response_model=CompendiumSummariesResponse)
def post_summaries(
    project_id: str,
    payload: CompendiumSummariesRequest,
    db: Session = Depends(get_db),
) -> CompendiumSummariesResponse:
    return CompendiumSummariesResponse(summaries=summaries(db, payload.ids))


@router.get("/{entry_id}", response_model=CompendiumEntryOut)
def get_entry(project_id: str, entry_id: str, db: Session = Depends(get_db)) -> CompendiumEntryOut:
    try:
        return CompendiumEntryOut.model_validate(require_entry(db, entry_id))
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc


@router.patch("/{entry_id}", response_model=CompendiumEntryOut)
def patch_entry(
    project_id: str,
    entry_id: str,
    payload: CompendiumEntryUpdateRequest,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> CompendiumEntryOut:
    try:
        row = update_entry(db, entry_id, payload.model_dump(exclude_none=True))
    except RecordNotFoundError as exc:
        raise _not_found(exc) from exc
    return CompendiumEntryOut.model_validate(row)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_entry(
    project_id: str,
    entry_id: str,
    db: Session = Depends(get_db),
    _: str | None = Depends(require_author_token),
) -> None:
    delete_entry(db, entry_id)
