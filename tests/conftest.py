"""
Shared fixtures for Journal Buddy backend tests.

Each test function gets its own SQLite database file (via aiosqlite) and a
fresh cache / tutor / journal workspace on ``app.state``.  The tutor talks to
a scripted stand-in for the Ollama client so no model server is needed.
"""
from __future__ import annotations

import asyncio
import os
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Override DATABASE_URL *before* any app module is imported, so that
# settings.DATABASE_URL and the global engine never point at Postgres.
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:"
)

from app.database import Base, get_db  # noqa: E402
from app.dependencies.services import init_app_state  # noqa: E402
from app.main import app  # noqa: E402
from app.models import database_models  # noqa: E402,F401
from app.services.synonym_cache import SynonymCache  # noqa: E402
from app.services.tutor import TutorService  # noqa: E402


# ---------------------------------------------------------------------------
# Scripted LLM
# ---------------------------------------------------------------------------

class ScriptedLLM:
    """
    Stand-in for OllamaLLMService.

    ``synonyms`` maps a sentence fragment to the object returned when a
    synonym prompt contains that fragment.  Gates, when set, hold the call
    until the test releases them.
    """

    def __init__(self) -> None:
        self.synonyms: Dict[str, Dict[str, Any]] = {}
        self.reply = "That sounds like a wonderful day! What was your favourite part?"
        self.healthy = True
        self.json_prompts: List[str] = []
        self.text_prompts: List[str] = []
        self.json_gate: Optional[asyncio.Event] = None
        self.text_gate: Optional[asyncio.Event] = None

    async def generate_json_object(
        self,
        prompt: str,
        json_schema: Optional[Dict[str, Any]] = None,
        max_tokens: int = 500,
    ) -> Dict[str, Any]:
        self.json_prompts.append(prompt)
        if self.json_gate is not None:
            await self.json_gate.wait()
        for fragment, value in self.synonyms.items():
            if fragment in prompt:
                return dict(value)
        return {}

    async def generate_text(self, prompt: str, max_tokens: int = 500) -> str:
        self.text_prompts.append(prompt)
        if self.text_gate is not None:
            await self.text_gate.wait()
        return self.reply

    async def check_health(self) -> bool:
        return self.healthy


HAPPY_SENTENCE = "I was very happy at the park."
HAPPY_SYNONYMS = {
    "very": ["extremely", "incredibly", "truly"],
    "happy": ["joyful", "cheerful", "delighted"],
}


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def llm() -> ScriptedLLM:
    scripted = ScriptedLLM()
    scripted.synonyms["very happy at the park"] = HAPPY_SYNONYMS
    return scripted


@pytest.fixture
def tutor(llm: ScriptedLLM) -> TutorService:
    return TutorService(llm=llm)


@pytest.fixture
def cache() -> SynonymCache:
    return SynonymCache()


@pytest_asyncio.fixture
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Provide a DB session backed by a throwaway SQLite file."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'journal_test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    await engine.dispose()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    tutor: TutorService,
) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the DB dependency
    overridden to use the per-test session.  The lifespan does not run under
    ASGITransport, so application state is built here.
    """
    workspace = init_app_state(app, tutor=tutor)

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await workspace.board.wait_idle()
    workspace.board.unmount_all()
    app.dependency_overrides.clear()
