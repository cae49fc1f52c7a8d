import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import ensure_dev_database_schema, settings
from app.db import session as db_session
from app.db.bootstrap import init_db
from app.logging_config import setup_logging
from app.modules.compendium.router import router as compendium_router
from app.modules.generation.router import router as generation_router
from app.modules.llm.readiness import backend_monitor
from app.modules.llm.router import router as backend_router
from app.modules.manuscript.router import router as manuscript_router
from app.modules.prompts.router import router as prompts_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    setup_logging(settings.log_level)
    if settings.env == "dev":
        ensure_dev_database_schema(str(db_session.engine.url))
    else:
        init_db()
    status = await backend_monitor.refresh()
    logger.info("AI backend status: %s (%s)", status.status, status.text)
    yield


def create_app() -> FastAPI:
    application = FastAPI(title="Writingway Backend", lifespan=_lifespan)

    @application.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    application.include_router(backend_router)
    application.include_router(manuscript_router)
    application.include_router(compendium_router)
    application.include_router(prompts_router)
    application.include_router(generation_router)
    return application


app = create_app()
