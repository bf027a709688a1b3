"""
Thin client for Ollama's /api/generate endpoint plus best-effort JSON recovery.

All tutor prompts go through ``OllamaLLMService._call_llm``.  Any transport
problem (timeout, connection error, non-200 response) is logged and turned
into an empty string so callers can degrade instead of failing.

JSON recovery
-------------
Model output is free text even when JSON was requested, so object extraction
runs an explicit chain of named stages (``OBJECT_PARSE_STAGES``).  Each stage
is a plain function ``str -> dict | None``; the first stage that yields a
non-empty dict wins.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from app.config import settings
from app.utils.helpers import truncate_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Object extraction stages
# ---------------------------------------------------------------------------

_NON_GREEDY_OBJECT_RE = re.compile(r"\{[\s\S]*?\}")
_SINGLE_OBJECT_RE = re.compile(r"\{[^{}]*\}")
_FLATTEN_RE = re.compile(r"[\n\r\t]")


def _loads_object(fragment: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(fragment)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def parse_brace_match(text: str) -> Optional[Dict[str, Any]]:
    """Stage 1: first non-greedy ``{...}`` substring."""
    match = _NON_GREEDY_OBJECT_RE.search(text)
    if match is None:
        return None
    return _loads_object(match.group(0))


def parse_flattened_single_object(text: str) -> Optional[Dict[str, Any]]:
    """Stage 2: drop newlines/tabs, then the first brace pair with no nesting."""
    match = _SINGLE_OBJECT_RE.search(_FLATTEN_RE.sub("", text))
    if match is None:
        return None
    return _loads_object(match.group(0))


OBJECT_PARSE_STAGES: List[Tuple[str, Callable[[str], Optional[Dict[str, Any]]]]] = [
    ("brace_match", parse_brace_match),
    ("flattened_single_object", parse_flattened_single_object),
]


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Run the stage chain over *text*.

    Returns the first non-empty dict produced, or ``{}`` when every stage
    fails.  A parsed empty object or a non-object counts as a failure.
    """
    if not text:
        return {}

    for name, stage in OBJECT_PARSE_STAGES:
        parsed = stage(text)
        if parsed:
            logger.debug("extract_json_object: parsed by stage %r", name)
            return parsed

    logger.warning(
        "extract_json_object: no stage produced an object. Preview: %s",
        truncate_text(text, 300),
    )
    return {}


# ---------------------------------------------------------------------------
# Main service class
# ---------------------------------------------------------------------------

class OllamaLLMService:
    """
    Text generation via Ollama /api/generate.

    Limits concurrency to MAX_CONCURRENT simultaneous LLM calls.  Makes a
    single attempt per call; there is no network retry.
    """

    MAX_CONCURRENT: int = 4
    LLM_TIMEOUT: float = float(settings.OLLAMA_TIMEOUT)

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base_url = settings.OLLAMA_BASE_URL
        self.model = settings.OLLAMA_LLM_MODEL
        self.timeout = httpx.Timeout(self.LLM_TIMEOUT, connect=10.0)
        self._transport = transport
        self._semaphore = asyncio.Semaphore(self.MAX_CONCURRENT)

    def _client(self, timeout: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def _call_llm(
        self,
        prompt: str,
        max_tokens: int = 500,
        temperature: float = 0.7,
        json_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        POST to Ollama /api/generate and return the response text.

        When *json_schema* is given it is sent as Ollama's ``format`` so the
        model is constrained to that shape.  Returns empty string on any
        error (timeout, connection failure, non-200 response).
        """
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "num_predict": max_tokens,
                "temperature": temperature,
            },
        }
        if json_schema is not None:
            payload["format"] = json_schema

        async with self._semaphore:
            try:
                async with self._client(self.timeout) as client:
                    resp = await client.post(f"{self.base_url}/api/generate", json=payload)

                if resp.status_code == 200:
                    return resp.json().get("response", "") or ""

                logger.error(
                    "_call_llm: Ollama returned HTTP %d: %s",
                    resp.status_code,
                    resp.text[:300],
                )
                return ""

            except httpx.TimeoutException:
                logger.error(
                    "_call_llm: request timed out after %.0f s", self.LLM_TIMEOUT
                )
                return ""
            except httpx.ConnectError as exc:
                logger.error("_call_llm: connection error — %s", exc)
                return ""
            except Exception as exc:
                logger.error("_call_llm: unexpected error — %s", exc)
                return ""

    async def generate_text(self, prompt: str, max_tokens: int = 500) -> str:
        """Free-text completion, stripped.  Empty string on failure."""
        result = await self._call_llm(prompt, max_tokens=max_tokens)
        return result.strip()

    async def generate_json_object(
        self,
        prompt: str,
        json_schema: Optional[Dict[str, Any]] = None,
        max_tokens: int = 500,
    ) -> Dict[str, Any]:
        """
        Ask for a JSON object and recover it from the response.

        Low temperature for deterministic JSON.  ``{}`` on any failure.
        """
        response_text = await self._call_llm(
            prompt,
            max_tokens=max_tokens,
            temperature=0.1,
            json_schema=json_schema,
        )
        if not response_text:
            return {}
        return extract_json_object(response_text)

    async def list_models(self) -> Optional[List[str]]:
        """Names of the models Ollama has pulled, or ``None`` if unreachable."""
        try:
            async with self._client(10.0) as client:
                resp = await client.get(f"{self.base_url}/api/tags")
        except httpx.HTTPError as exc:
            logger.error("list_models: Ollama unreachable — %s", exc)
            return None

        if resp.status_code != 200:
            logger.warning("list_models: Ollama responded with status %d", resp.status_code)
            return None
        return [m.get("name", "") for m in resp.json().get("models", [])]

    def has_model(self, available: List[str]) -> bool:
        # Partial match so "qwen2.5:3b" also accepts "qwen2.5:latest"
        family = self.model.split(":")[0]
        return any(name == self.model or name.startswith(family) for name in available)

    async def check_health(self) -> bool:
        """Return ``True`` if Ollama is reachable and returns HTTP 200."""
        try:
            async with self._client(5.0) as client:
                resp = await client.get(f"{self.base_url}/api/tags")
                return resp.status_code == 200
        except Exception as exc:
            logger.error("Ollama health check failed: %s", exc)
            return False
