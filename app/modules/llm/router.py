from __future__ import annotations

from fastapi import APIRouter

from app.modules.llm.readiness import backend_monitor

router = APIRouter(prefix="/api/v1/backend", tags=["backend"])


@router.get("/status")
def get_backend_status() -> dict:
    return backend_monitor.status.to_dict()


@router.post("/status/refresh")
async def refresh_backend_status() -> dict:
    status = await backend_monitor.refresh()
    return status.to_dict()
