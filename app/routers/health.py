"""
Health check endpoint: session store, Ollama, and synonym cache stats.
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.services import get_synonym_cache, get_tutor
from app.models.schemas import HealthCheckResponse
from app.services.synonym_cache import SynonymCache
from app.services.tutor import TutorService

logger = logging.getLogger(__name__)

router = APIRouter()


async def _database_status(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("Session store health check failed: %s", exc)
        return "error"
    return "ok"


async def _ollama_status(tutor: TutorService) -> str:
    return "ok" if await tutor.llm.check_health() else "error"


@router.get("/", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    tutor: TutorService = Depends(get_tutor),
    cache: SynonymCache = Depends(get_synonym_cache),
) -> HealthCheckResponse:
    """
    ``healthy`` when both the session store and Ollama answer, ``degraded``
    otherwise.  The journal keeps working while degraded: replies fall back
    to a canned message and entries get no tooltips.
    """
    database = await _database_status(db)
    ollama = await _ollama_status(tutor)

    return HealthCheckResponse(
        status="healthy" if database == ollama == "ok" else "degraded",
        database=database,
        ollama=ollama,
        vocabulary_entries=len(cache),
        cache_hits=cache.hits,
        cache_misses=cache.misses,
        timestamp=datetime.utcnow(),
    )
