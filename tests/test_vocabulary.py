"""Tests for the /api/vocabulary endpoints."""
import pytest
from httpx import AsyncClient


HAPPY_SENTENCE = "I was very happy at the park."


@pytest.mark.asyncio
async def test_synonym_lookup_is_cached(client: AsyncClient, llm):
    resp = await client.post("/api/vocabulary/synonyms", json={"sentence": HAPPY_SENTENCE})
    assert resp.status_code == 200
    data = resp.json()
    assert data["cached"] is False
    assert data["synonyms"]["happy"] == ["joyful", "cheerful", "delighted"]

    resp = await client.post(
        "/api/vocabulary/synonyms", json={"sentence": "  I WAS VERY HAPPY AT THE PARK.  "}
    )
    assert resp.json()["cached"] is True
    assert len(llm.json_prompts) == 1


@pytest.mark.asyncio
async def test_synonym_lookup_with_nothing_to_suggest(client: AsyncClient):
    resp = await client.post(
        "/api/vocabulary/synonyms", json={"sentence": "Photosynthesis fascinates me."}
    )
    assert resp.status_code == 200
    assert resp.json()["synonyms"] == {}


@pytest.mark.asyncio
async def test_blank_sentence_is_rejected(client: AsyncClient):
    resp = await client.post("/api/vocabulary/synonyms", json={"sentence": ""})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_tooltip_endpoint(client: AsyncClient):
    resp = await client.post(
        "/api/vocabulary/tooltip",
        json={
            "word_rect": {"left": 0, "top": 40, "width": 20},
            "container_rect": {"left": 0, "top": 0, "width": 300},
            "viewport_width": 300,
            "synonyms": ["joyful", "cheerful", "delighted"],
        },
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["estimated_width"] == 258.5
    assert data["x"] - data["estimated_width"] / 2 == pytest.approx(10.0)
    assert data["y"] == 30.0


@pytest.mark.asyncio
async def test_cache_export_and_clear(client: AsyncClient):
    await client.post("/api/vocabulary/synonyms", json={"sentence": HAPPY_SENTENCE})

    resp = await client.get("/api/vocabulary/cache")
    assert resp.status_code == 200
    assert resp.json()["count"] == 1
    assert HAPPY_SENTENCE.lower() in resp.json()["entries"]

    resp = await client.delete("/api/vocabulary/cache")
    assert resp.status_code == 204
    assert (await client.get("/api/vocabulary/cache")).json()["count"] == 0


@pytest.mark.asyncio
async def test_enhance(client: AsyncClient, llm):
    llm.reply = "The dog was delighted."
    resp = await client.post("/api/vocabulary/enhance", json={"sentence": "The dog was happy."})
    assert resp.status_code == 200
    assert resp.json() == {"original": "The dog was happy.", "enhanced": "The dog was delighted."}


@pytest.mark.asyncio
async def test_enhance_unavailable(client: AsyncClient, llm):
    llm.reply = ""
    resp = await client.post("/api/vocabulary/enhance", json={"sentence": "The dog was happy."})
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_suggestions(client: AsyncClient, llm):
    llm.reply = "enormous, gigantic, huge"
    resp = await client.post(
        "/api/vocabulary/suggestions",
        json={"word": "big", "context": "It was a big tree."},
    )
    assert resp.status_code == 200
    assert resp.json()["suggestions"] == ["enormous", "gigantic", "huge"]


@pytest.mark.asyncio
async def test_explain(client: AsyncClient, llm):
    llm.reply = "Gleeful means very, very happy!"
    resp = await client.post("/api/vocabulary/explain", json={"word": "gleeful"})
    assert resp.status_code == 200
    assert resp.json()["explanation"] == "Gleeful means very, very happy!"
