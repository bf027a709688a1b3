"""
Journal Buddy FastAPI application.

Wires the lifespan (tables, Ollama check, cache/tutor/workspace, first
journal session), CORS, request logging and the four routers.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import close_db, init_db, session_scope
from app.dependencies.services import init_app_state
from app.routers import health, journal, sessions, vocabulary
from app.services.journal import JournalWorkspace
from app.services.llm_service import OllamaLLMService
from app.services.session_store import SessionStore, SessionStoreError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Polled by the frontend; not logged
_QUIET_PATHS = ("/", "/api/health", "/api/health/")
_QUIET_SUFFIX = "/annotations"


# ---------------------------------------------------------------------------
# Startup helpers
# ---------------------------------------------------------------------------

async def _check_ollama_model(llm: OllamaLLMService) -> bool:
    """Log whether the tutor model is pulled.  Returns False if Ollama is down."""
    available = await llm.list_models()
    if available is None:
        logger.warning(
            "⚠ Ollama is not running (start it with: ollama serve). "
            "AI Buddy replies fall back to a canned message and no words get tooltips."
        )
        return False

    if llm.has_model(available):
        logger.info("✓ Ollama model '%s' is available", llm.model)
    else:
        logger.warning("⚠ Model '%s' not found — run: ollama pull %s", llm.model, llm.model)
    return True


async def _open_first_session(workspace: JournalWorkspace) -> None:
    """Give the first entry a session to save into."""
    try:
        async with session_scope() as db:
            session_id = await workspace.new_session(SessionStore(db))
    except SessionStoreError as exc:
        logger.warning("⚠ No journal session at startup (%s); entries will not be saved", exc)
        return
    logger.info("✓ Journal session %d ready", session_id)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 60)
    logger.info("  Journal Buddy backend starting")
    logger.info("=" * 60)

    # Tables are required; a failure here aborts startup
    await init_db()

    workspace = init_app_state(app)
    await _check_ollama_model(workspace.tutor.llm)
    await _open_first_session(workspace)

    logger.info("  Listening on http://%s:%d  (docs at /docs)", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield

    logger.info("Shutting down Journal Buddy backend …")
    workspace.board.unmount_all()
    await workspace.board.cancel_pending()
    await close_db()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Journal Buddy API",
    description=(
        "**Journal Buddy**: a children's journal with an AI reading buddy.\n\n"
        "Children write entries, the AI Buddy replies, and simple words in "
        "their entries get richer synonym suggestions shown as tooltips.\n\n"
        "- `POST /api/journal/entries` adds an entry and returns the reply\n"
        "- `GET  /api/journal/entries/{id}/annotations` returns synonym-marked tokens\n"
        "- `POST /api/journal/entries/{id}/hover` places a tooltip\n"
        "- `POST /api/vocabulary/synonyms` looks up synonyms for a sentence\n"
        "- `GET  /api/sessions` lists saved sessions\n"
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status and elapsed ms; set ``X-Process-Time``."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000

    path = request.url.path
    if path not in _QUIET_PATHS and not path.endswith(_QUIET_SUFFIX):
        logger.info(
            "%s %s → %d  (%.2f ms)", request.method, path, response.status_code, elapsed_ms
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms:.2f}ms"
    return response


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error": str(exc),
            "path": request.url.path,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


app.include_router(health.router,      prefix="/api/health",     tags=["Health"])
app.include_router(sessions.router,    prefix="/api/sessions",   tags=["Sessions"])
app.include_router(journal.router,     prefix="/api/journal",    tags=["Journal"])
app.include_router(vocabulary.router,  prefix="/api/vocabulary", tags=["Vocabulary"])


@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    return {
        "name": "Journal Buddy API",
        "version": "0.1.0",
        "description": "Children's journaling backend with synonym tooltips",
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "journal": "/api/journal",
            "sessions": "/api/sessions",
            "vocabulary": "/api/vocabulary",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, reload=True)
