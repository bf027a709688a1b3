"""Tests for the per-entry annotation state machine and tooltip placement."""
import asyncio

import pytest

from app.services.annotation import (
    AnnotationBoard,
    AnnotationPhase,
    EntryAnnotator,
    Rect,
    estimate_tooltip_width,
    place_tooltip,
)
from app.services.synonym_cache import SynonymCache


TEXT = "I was very happy and the day was good."
SYNONYMS = {
    "very": ["extremely", "incredibly", "truly"],
    "happy": ["joyful", "cheerful", "delighted"],
}
CONTAINER = Rect(left=100.0, top=50.0, width=600.0, height=400.0)


class CountingLoader:
    def __init__(self, result=None, gate=None):
        self.result = SYNONYMS if result is None else result
        self.gate = gate
        self.calls = []

    async def __call__(self, text):
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        return self.result


def _interactive_words(annotator: EntryAnnotator):
    return [
        token.text
        for line in annotator.render()
        for token in line
        if token.interactive
    ]


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------

def test_width_has_a_floor():
    assert estimate_tooltip_width(["glad"]) == 140.0


def test_width_grows_with_synonym_text():
    synonyms = ["extraordinarily", "tremendously", "exceptionally"]
    expected = len(" • ".join(synonyms)) * 6.5 + 70
    assert estimate_tooltip_width(synonyms) == expected


def test_tooltip_centred_over_word():
    word = Rect(left=400.0, top=120.0, width=40.0, height=18.0)
    position = place_tooltip(word, CONTAINER, 1200.0, ["glad"])
    assert position.x == 420.0 - CONTAINER.left
    assert position.y == 120.0 - CONTAINER.top - 10.0


def test_tooltip_clamped_at_left_edge():
    container = Rect(left=0.0, top=0.0, width=300.0)
    word = Rect(left=2.0, top=40.0, width=20.0)
    synonyms = ["joyful", "cheerful", "delighted"]
    width = estimate_tooltip_width(synonyms)

    position = place_tooltip(word, container, 300.0, synonyms)
    assert position.x - width / 2 + container.left == pytest.approx(10.0)


def test_tooltip_clamped_at_right_edge():
    container = Rect(left=20.0, top=0.0, width=360.0)
    word = Rect(left=360.0, top=40.0, width=30.0)
    synonyms = ["joyful", "cheerful", "delighted"]
    width = estimate_tooltip_width(synonyms)

    position = place_tooltip(word, container, 400.0, synonyms)
    assert position.x + width / 2 + container.left == pytest.approx(390.0)


@pytest.mark.parametrize("word_left", [0.0, 50.0, 150.0, 250.0, 330.0])
def test_tooltip_stays_inside_viewport(word_left: float):
    container = Rect(left=5.0, top=0.0, width=350.0)
    word = Rect(left=word_left, top=30.0, width=25.0)
    synonyms = ["extremely", "incredibly", "truly"]
    width = estimate_tooltip_width(synonyms)

    position = place_tooltip(word, container, 360.0, synonyms)
    left_edge = position.x - width / 2 + container.left
    right_edge = position.x + width / 2 + container.left
    assert left_edge >= 10.0 - 1e-9
    assert right_edge <= 350.0 + 1e-9


def test_left_edge_wins_when_tooltip_is_too_wide():
    container = Rect(left=0.0, top=0.0, width=100.0)
    word = Rect(left=80.0, top=10.0, width=10.0)
    synonyms = ["magnificent", "spectacular", "extraordinary", "phenomenal"]
    width = estimate_tooltip_width(synonyms)
    assert width > 100.0

    position = place_tooltip(word, container, 100.0, synonyms)
    assert position.x - width / 2 == pytest.approx(10.0)


# ---------------------------------------------------------------------------
# EntryAnnotator
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_mount_loads_then_marks_eligible_words(cache: SynonymCache):
    loader = CountingLoader()
    annotator = EntryAnnotator("e1", TEXT, cache, loader, enabled=True)
    assert annotator.phase is AnnotationPhase.IDLE

    task = annotator.mount()
    assert annotator.phase is AnnotationPhase.LOADING
    await task

    assert annotator.phase is AnnotationPhase.READY
    assert _interactive_words(annotator) == ["very", "happy"]
    assert not annotator.is_interactive("good")
    assert not annotator.is_interactive("the")


@pytest.mark.asyncio
async def test_disabled_entry_never_marks_words(cache: SynonymCache):
    cache.put(TEXT, SYNONYMS)
    annotator = EntryAnnotator("reply", TEXT, cache, CountingLoader(), enabled=False)

    assert annotator.mount() is None
    assert annotator.phase is AnnotationPhase.IDLE
    assert _interactive_words(annotator) == []


@pytest.mark.asyncio
async def test_cache_hit_skips_the_loader(cache: SynonymCache):
    cache.put(TEXT, SYNONYMS)
    loader = CountingLoader()
    annotator = EntryAnnotator("e1", TEXT, cache, loader, enabled=True)

    assert annotator.mount() is None
    assert annotator.phase is AnnotationPhase.READY
    assert loader.calls == []


@pytest.mark.asyncio
async def test_repeated_mount_while_loading_reuses_the_lookup(cache: SynonymCache):
    gate = asyncio.Event()
    loader = CountingLoader(gate=gate)
    annotator = EntryAnnotator("e1", TEXT, cache, loader, enabled=True)

    first = annotator.mount()
    second = annotator.mount()
    assert first is second

    gate.set()
    await first
    assert len(loader.calls) == 1


@pytest.mark.asyncio
async def test_unmount_during_lookup_discards_result(cache: SynonymCache):
    gate = asyncio.Event()
    annotator = EntryAnnotator("e1", TEXT, cache, CountingLoader(gate=gate), enabled=True)

    task = annotator.mount()
    await asyncio.sleep(0)
    annotator.unmount()
    gate.set()
    await task

    assert annotator.synonyms == {}
    assert annotator.phase is AnnotationPhase.LOADING
    assert not annotator.is_alive
    # The cache still learns the sentence for the next entry that needs it
    assert cache.get(TEXT) == SYNONYMS


@pytest.mark.asyncio
async def test_empty_result_settles_ready_with_nothing_marked(cache: SynonymCache):
    annotator = EntryAnnotator("e1", TEXT, cache, CountingLoader(result={}), enabled=True)
    await annotator.mount()

    assert annotator.phase is AnnotationPhase.READY
    assert _interactive_words(annotator) == []


@pytest.mark.asyncio
async def test_settled_empty_result_is_not_looked_up_again(cache: SynonymCache):
    loader = CountingLoader(result={})
    annotator = EntryAnnotator("e1", TEXT, cache, loader, enabled=True)
    await annotator.mount()

    assert annotator.mount() is None
    assert annotator.mount() is None
    assert annotator.phase is AnnotationPhase.READY
    assert len(loader.calls) == 1


@pytest.mark.asyncio
async def test_hover_cycle(cache: SynonymCache):
    cache.put(TEXT, SYNONYMS)
    annotator = EntryAnnotator("e1", TEXT, cache, CountingLoader(), enabled=True)
    annotator.mount()

    word = Rect(left=300.0, top=100.0, width=40.0)
    hover = annotator.pointer_enter("Happy", word, CONTAINER, 1200.0)

    assert hover is not None
    assert hover.hovered_word_key == "happy"
    assert hover.active_synonym_list == ["joyful", "cheerful", "delighted"]
    assert annotator.phase is AnnotationPhase.HOVER_ACTIVE

    annotator.pointer_leave()
    assert annotator.phase is AnnotationPhase.READY
    assert annotator.hover is None


@pytest.mark.asyncio
async def test_hover_on_plain_word_does_nothing(cache: SynonymCache):
    cache.put(TEXT, SYNONYMS)
    annotator = EntryAnnotator("e1", TEXT, cache, CountingLoader(), enabled=True)
    annotator.mount()

    word = Rect(left=300.0, top=100.0, width=40.0)
    assert annotator.pointer_enter("day", word, CONTAINER, 1200.0) is None
    assert annotator.phase is AnnotationPhase.READY


@pytest.mark.asyncio
async def test_hover_before_ready_does_nothing(cache: SynonymCache):
    gate = asyncio.Event()
    annotator = EntryAnnotator("e1", TEXT, cache, CountingLoader(gate=gate), enabled=True)
    task = annotator.mount()

    word = Rect(left=300.0, top=100.0, width=40.0)
    assert annotator.pointer_enter("happy", word, CONTAINER, 1200.0) is None

    gate.set()
    await task


# ---------------------------------------------------------------------------
# AnnotationBoard
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_identical_entries_share_one_lookup(cache: SynonymCache):
    gate = asyncio.Event()
    loader = CountingLoader(gate=gate)
    board = AnnotationBoard(cache, loader)

    first = board.mount("a", TEXT, enabled=True)
    second = board.mount("b", TEXT.upper(), enabled=True)
    await asyncio.sleep(0)
    gate.set()
    await board.wait_idle()

    assert len(loader.calls) == 1
    assert first.synonyms == SYNONYMS
    assert second.synonyms == SYNONYMS
    assert len(board) == 2


@pytest.mark.asyncio
async def test_unmount_all(cache: SynonymCache):
    board = AnnotationBoard(cache, CountingLoader())
    annotator = board.mount("a", TEXT, enabled=True)
    await board.wait_idle()

    board.unmount_all()
    assert len(board) == 0
    assert board.get("a") is None
    assert not annotator.is_alive


@pytest.mark.asyncio
async def test_cancel_pending_stops_running_lookups(cache: SynonymCache):
    loader = CountingLoader(gate=asyncio.Event())
    board = AnnotationBoard(cache, loader)
    board.mount("a", TEXT, enabled=True)
    await asyncio.sleep(0)
    assert board.pending_count == 1

    board.unmount_all()
    assert await board.cancel_pending() == 1

    assert board.pending_count == 0
    assert loader.calls == [TEXT]
    assert not cache.is_loading(TEXT)
    assert cache.get(TEXT) is None
