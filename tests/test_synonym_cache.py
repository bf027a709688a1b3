"""Tests for the synonym cache and its in-flight lookup guard."""
import asyncio

import pytest

from app.services.synonym_cache import SynonymCache


SAD_MAP = {"sad": ["unhappy", "gloomy", "downhearted"]}


def test_keys_are_normalized(cache: SynonymCache):
    cache.put("  I was SAD.  ", SAD_MAP)
    assert cache.get("i was sad.") == SAD_MAP
    assert "I WAS SAD." in cache
    assert len(cache) == 1


def test_clear_drops_everything(cache: SynonymCache):
    cache.put("one", SAD_MAP)
    cache.put("two", SAD_MAP)
    cache.clear()
    assert len(cache) == 0
    assert cache.get("one") is None


def test_export_is_a_copy(cache: SynonymCache):
    cache.put("i was sad", SAD_MAP)
    exported = cache.export_all()
    exported["i was sad"]["sad"].append("blue")
    assert cache.get("i was sad") == SAD_MAP


def test_restore_accepts_word_level_lists(cache: SynonymCache):
    restored = cache.restore_all({"sad": ["unhappy", "gloomy", "downhearted"]})
    assert restored == 1
    assert cache.get("sad") == ["unhappy", "gloomy", "downhearted"]
    # Word-level entries are not sentence maps
    assert cache.get_map("sad") is None


def test_restore_skips_malformed_entries(cache: SynonymCache):
    restored = cache.restore_all({
        "i was sad": SAD_MAP,
        "broken": "not a map",
        "partial": {"good": ["great"], "bad": "nope"},
    })
    assert restored == 2
    assert cache.get("partial") == {"good": ["great"]}
    assert cache.get("broken") is None


def test_restore_normalizes_word_keys(cache: SynonymCache):
    cache.restore_all({"i was happy": {"Happy": ["joyful"], "...": ["dots"], "SAD!": ["gloomy"]}})
    assert cache.get_map("i was happy") == {"happy": ["joyful"], "sad": ["gloomy"]}


def test_restore_nothing(cache: SynonymCache):
    assert cache.restore_all(None) == 0
    assert cache.restore_all({}) == 0


@pytest.mark.asyncio
async def test_lookup_caches_non_empty_results(cache: SynonymCache):
    calls = []

    async def loader(text):
        calls.append(text)
        return SAD_MAP

    first = await cache.lookup("I was sad", loader)
    second = await cache.lookup("  i was SAD ", loader)

    assert first == SAD_MAP
    assert second == SAD_MAP
    assert len(calls) == 1
    assert cache.hits == 1
    assert cache.misses == 1


@pytest.mark.asyncio
async def test_concurrent_identical_lookups_call_loader_once(cache: SynonymCache):
    gate = asyncio.Event()
    calls = []

    async def loader(text):
        calls.append(text)
        await gate.wait()
        return SAD_MAP

    tasks = [
        asyncio.create_task(cache.lookup("I was sad", loader)),
        asyncio.create_task(cache.lookup("i was sad", loader)),
        asyncio.create_task(cache.lookup("I WAS SAD ", loader)),
    ]
    await asyncio.sleep(0)
    assert cache.is_loading("i was sad")

    gate.set()
    results = await asyncio.gather(*tasks)

    assert len(calls) == 1
    assert all(r == SAD_MAP for r in results)
    assert not cache.is_loading("i was sad")


@pytest.mark.asyncio
async def test_empty_result_is_not_cached(cache: SynonymCache):
    calls = []

    async def loader(text):
        calls.append(text)
        return {}

    assert await cache.lookup("nothing to see", loader) == {}
    assert await cache.lookup("nothing to see", loader) == {}
    assert len(calls) == 2
    assert "nothing to see" not in cache


@pytest.mark.asyncio
async def test_loader_error_degrades_to_empty(cache: SynonymCache):
    async def loader(text):
        raise RuntimeError("model exploded")

    assert await cache.lookup("I was sad", loader) == {}
    assert "i was sad" not in cache


@pytest.mark.asyncio
async def test_blank_text_skips_loader(cache: SynonymCache):
    async def loader(text):
        raise AssertionError("loader should not be called")

    assert await cache.lookup("   ", loader) == {}


@pytest.mark.asyncio
async def test_clear_during_lookup_discards_result(cache: SynonymCache):
    gate = asyncio.Event()

    async def loader(text):
        await gate.wait()
        return SAD_MAP

    task = asyncio.create_task(cache.lookup("I was sad", loader))
    await asyncio.sleep(0)
    cache.clear()
    gate.set()

    # The caller still gets its answer; the cleared cache stays empty
    assert await task == SAD_MAP
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_shared_lookup(cache: SynonymCache):
    gate = asyncio.Event()

    async def loader(text):
        await gate.wait()
        return SAD_MAP

    owner = asyncio.create_task(cache.lookup("I was sad", loader))
    await asyncio.sleep(0)
    waiter = asyncio.create_task(cache.lookup("I was sad", loader))
    await asyncio.sleep(0)

    waiter.cancel()
    gate.set()

    assert await owner == SAD_MAP
    with pytest.raises(asyncio.CancelledError):
        await waiter
