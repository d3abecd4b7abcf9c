import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .database import create_engine, init_db, make_session_factory
from .errors import OperationFailure, ValidationError
from .logging_setup import setup_logging
from .routers import categories, tasks
from .store import TaskStore

logger = logging.getLogger(__name__)

RETRY_MESSAGE = "Operation failed, please try again"


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = create_engine(settings.database_url)
        await init_db(engine)
        store = TaskStore(make_session_factory(engine))
        if settings.seed_categories:
            await store.seed_default_categories()
        app.state.store = store
        logger.info("%s ready db=%s", settings.app_name, engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            await engine.dispose()
            logger.info("%s stopped", settings.app_name)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(OperationFailure)
    async def operation_failure(request: Request, exc: OperationFailure):
        logger.error("Operation failed %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": RETRY_MESSAGE})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.error("Unhandled error %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": RETRY_MESSAGE})

    app.include_router(tasks.router)
    app.include_router(categories.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    setup_logging(level=settings.log_level, log_dir=settings.log_dir)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)
