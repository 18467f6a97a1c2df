import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from cardstore.core.config import get_settings
from cardstore.core.errors import (
    ApiError,
    CorruptStoreError,
    StoreWriteError,
    api_error_handler,
    corrupt_store_handler,
    store_write_error_handler,
    validation_error_handler,
)
from cardstore.core.logging import setup_logging
from cardstore.core.middleware import (
    AccessLogMiddleware,
    BodySizeLimitMiddleware,
    SecurityHeadersMiddleware,
)
from cardstore.routers import cards, system
from cardstore.routers.spa import build_spa_router
from cardstore.services.cards import CardService
from cardstore.services.store_file import CardStoreFile, ParseFailurePolicy

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    store = CardStoreFile(
        settings.store_path,
        on_parse_failure=ParseFailurePolicy(settings.STORE_ON_PARSE_FAILURE),
    )
    store.initialize()
    app.state.card_service = CardService(store)
    logger.info("Card store ready (%s)", store.path)
    yield
    await app.state.card_service.close()


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="API de cartes de révision (stockage fichier JSON)",
        lifespan=lifespan,
    )

    # Middleware (le dernier ajouté s'exécute en premier)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.MAX_BODY_MB * 1024 * 1024)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(AccessLogMiddleware)

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StoreWriteError, store_write_error_handler)
    app.add_exception_handler(CorruptStoreError, corrupt_store_handler)

    # Routers
    app.include_router(system.router)
    app.include_router(cards.router, prefix=settings.API_PREFIX)

    public_dir = Path(settings.PUBLIC_DIR)
    if public_dir.is_dir():
        app.include_router(build_spa_router(public_dir))
    else:
        # Pas de front : root → docs
        @app.get("/", include_in_schema=False)
        async def root():
            return RedirectResponse(url="/docs")

    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "cardstore.main:app",
        host=settings.HOST,
        port=settings.PORT,
        server_header=False,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
