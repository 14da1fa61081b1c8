"""FastAPI application entry point for the identity registry."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError

from idreg.settings import settings
from idreg.core.db import init_db
from idreg.util.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler -- configures logging and the schema."""
    setup_logging(settings.LOG_LEVEL)
    init_db()
    logger.info("identity registry ready (capacity %s)", settings.MAX_IDENTITIES)
    yield


app = FastAPI(
    title="Identity Registry",
    description="Content-hash keyed identity records with threshold social recovery.",
    version="1.0.0",
    lifespan=lifespan,
)

# -- CORS ---------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -- Errors -------------------------------------------------------------------

@app.exception_handler(StaleDataError)
async def concurrent_write_handler(request: Request, exc: StaleDataError) -> JSONResponse:
    """Another writer committed to the same row first; the caller may retry."""
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Concurrent modification, retry"},
    )


# -- Routers ------------------------------------------------------------------

from idreg.identities.routes import router as identities_router  # noqa: E402
from idreg.authority.routes import router as registry_router  # noqa: E402

app.include_router(identities_router)
app.include_router(registry_router)


# -- Health check -------------------------------------------------------------

@app.get("/health", tags=["health"])
def health_check() -> dict:
    """Simple liveness probe."""
    return {"status": "healthy"}


def run() -> None:
    """Entry point for the ``idreg`` console script."""
    import uvicorn

    uvicorn.run("idreg.main:app", host="0.0.0.0", port=8000)
