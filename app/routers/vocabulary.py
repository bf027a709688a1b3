"""
Vocabulary endpoints.

Routes
------
POST   /api/vocabulary/synonyms     — sentence → SynonymMap (cache-checked)
POST   /api/vocabulary/tooltip      — tooltip anchor for given boxes
POST   /api/vocabulary/enhance      — rewrite a sentence with richer words
POST   /api/vocabulary/suggestions  — alternatives for one word in context
POST   /api/vocabulary/explain      — child-friendly word explanation
GET    /api/vocabulary/cache        — export the synonym cache
DELETE /api/vocabulary/cache        — clear the synonym cache
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies.services import get_synonym_cache, get_tutor
from app.models.schemas import (
    EnhanceRequest,
    EnhanceResponse,
    ExplainRequest,
    ExplainResponse,
    SuggestionRequest,
    SuggestionResponse,
    SynonymLookupRequest,
    SynonymLookupResponse,
    TooltipRequest,
    TooltipResponse,
    VocabularyCacheResponse,
)
from app.services.annotation import Rect, estimate_tooltip_width, place_tooltip
from app.services.synonym_cache import SynonymCache
from app.services.tutor import TutorError, TutorService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/synonyms", response_model=SynonymLookupResponse)
async def lookup_synonyms(
    body: SynonymLookupRequest,
    cache: SynonymCache = Depends(get_synonym_cache),
    tutor: TutorService = Depends(get_tutor),
) -> SynonymLookupResponse:
    """
    Simple words in *sentence* with suggested synonyms.

    An empty mapping means "no suggestions" whether the model found nothing
    or could not be reached.
    """
    cached = cache.get_map(body.sentence) is not None
    synonyms = await cache.lookup(body.sentence, tutor.get_synonyms_for_sentence)
    return SynonymLookupResponse(sentence=body.sentence, synonyms=synonyms, cached=cached)


@router.post("/tooltip", response_model=TooltipResponse)
async def compute_tooltip(body: TooltipRequest) -> TooltipResponse:
    word_rect = Rect(**body.word_rect.model_dump())
    container_rect = Rect(**body.container_rect.model_dump())
    position = place_tooltip(word_rect, container_rect, body.viewport_width, body.synonyms)
    return TooltipResponse(
        x=position.x,
        y=position.y,
        estimated_width=estimate_tooltip_width(body.synonyms),
    )


@router.post("/enhance", response_model=EnhanceResponse)
async def enhance_sentence(
    body: EnhanceRequest,
    tutor: TutorService = Depends(get_tutor),
) -> EnhanceResponse:
    try:
        enhanced = await tutor.enhance_vocabulary(body.sentence)
    except TutorError as exc:
        logger.error("enhance_sentence error: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        )
    return EnhanceResponse(original=body.sentence, enhanced=enhanced)


@router.post("/suggestions", response_model=SuggestionResponse)
async def word_suggestions(
    body: SuggestionRequest,
    tutor: TutorService = Depends(get_tutor),
) -> SuggestionResponse:
    suggestions = await tutor.get_vocabulary_suggestions(body.word, body.context)
    return SuggestionResponse(word=body.word, suggestions=suggestions)


@router.post("/explain", response_model=ExplainResponse)
async def explain_word(
    body: ExplainRequest,
    tutor: TutorService = Depends(get_tutor),
) -> ExplainResponse:
    explanation = await tutor.explain_word(body.word)
    return ExplainResponse(word=body.word, explanation=explanation)


@router.get("/cache", response_model=VocabularyCacheResponse)
async def export_cache(
    cache: SynonymCache = Depends(get_synonym_cache),
) -> VocabularyCacheResponse:
    entries = cache.export_all()
    return VocabularyCacheResponse(entries=entries, count=len(entries))


@router.delete("/cache", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
async def clear_cache(
    cache: SynonymCache = Depends(get_synonym_cache),
) -> None:
    cache.clear()
