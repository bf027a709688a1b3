"""
Per-entry synonym annotation state and tooltip placement.

Each displayed journal entry gets an ``EntryAnnotator``:

    idle --mount--> loading --lookup done--> ready <--pointer--> hover_active

Only user-authored entries are annotation-enabled; AI replies stay idle and
never mark words.  Lookups go through the shared ``SynonymCache`` so identical
text across entries reaches the provider once.  Hovering uses the loaded map
only and never calls the provider.

Tooltip placement is a width estimate, not a text measurement:

    width = max(MIN_WIDTH, len(" • ".join(synonyms)) * CHAR_WIDTH + PADDING)

The anchor sits at the word's horizontal midpoint (relative to the entry
container) and VERTICAL_OFFSET pixels above the word.  If the estimated box
would cross ``margin`` or ``viewport_width - margin`` the anchor is shifted
so that edge lines up with the margin.
"""
from __future__ import annotations

import asyncio
import dataclasses
import enum
import logging
from typing import Dict, List, Optional, Set

from app.config import settings
from app.services.synonym_cache import SynonymCache, SynonymLoader, SynonymMap
from app.services.tokenizer import TokenKind, tokenize_text
from app.utils.helpers import normalize_word

logger = logging.getLogger(__name__)

SYNONYM_SEPARATOR = " • "


class AnnotationPhase(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    HOVER_ACTIVE = "hover_active"


@dataclasses.dataclass(frozen=True)
class Rect:
    """Screen-space bounding box, as reported by getBoundingClientRect()."""

    left: float
    top: float
    width: float
    height: float = 0.0

    @property
    def right(self) -> float:
        return self.left + self.width


@dataclasses.dataclass(frozen=True)
class TooltipPosition:
    x: float
    y: float


@dataclasses.dataclass(frozen=True)
class HoverState:
    hovered_word_key: str
    tooltip_position: TooltipPosition
    active_synonym_list: List[str]


@dataclasses.dataclass(frozen=True)
class RenderedToken:
    text: str
    kind: TokenKind
    interactive: bool = False
    normalized: str = ""
    synonyms: List[str] = dataclasses.field(default_factory=list)


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------

def estimate_tooltip_width(synonyms: List[str]) -> float:
    synonym_text = SYNONYM_SEPARATOR.join(synonyms)
    return max(
        settings.TOOLTIP_MIN_WIDTH,
        len(synonym_text) * settings.TOOLTIP_CHAR_WIDTH + settings.TOOLTIP_PADDING,
    )


def place_tooltip(
    word_rect: Rect,
    container_rect: Rect,
    viewport_width: float,
    synonyms: List[str],
) -> TooltipPosition:
    """
    Compute the tooltip anchor for a hovered word.

    ``x`` is the tooltip's horizontal centre and ``y`` its top edge, both
    relative to *container_rect*.  When the tooltip is wider than the usable
    viewport the left margin wins.
    """
    margin = settings.TOOLTIP_VIEWPORT_MARGIN
    width = estimate_tooltip_width(synonyms)
    half = width / 2

    centre = word_rect.left + word_rect.width / 2
    x = centre - container_rect.left
    y = word_rect.top - container_rect.top - settings.TOOLTIP_VERTICAL_OFFSET

    if centre - half < margin:
        x = margin - container_rect.left + half
    elif centre + half > viewport_width - margin:
        x = (viewport_width - margin) - container_rect.left - half
        if x - half + container_rect.left < margin:
            x = margin - container_rect.left + half

    return TooltipPosition(x=x, y=y)


# ---------------------------------------------------------------------------
# Per-entry state machine
# ---------------------------------------------------------------------------

class EntryAnnotator:
    """Annotation state for one displayed entry."""

    def __init__(
        self,
        entry_id: str,
        text: str,
        cache: SynonymCache,
        loader: SynonymLoader,
        enabled: bool = False,
    ) -> None:
        self.entry_id = entry_id
        self.text = text
        self.enabled = enabled
        self.phase = AnnotationPhase.IDLE
        self.hover: Optional[HoverState] = None
        self._cache = cache
        self._loader = loader
        self._synonyms: SynonymMap = {}
        self._loading = False
        self._alive = True
        self._task: Optional[asyncio.Task] = None

    @property
    def synonyms(self) -> SynonymMap:
        return self._synonyms

    @property
    def is_alive(self) -> bool:
        return self._alive

    def mount(self) -> Optional[asyncio.Task]:
        """
        Load synonyms for this entry.

        Returns the lookup task when one was started (or is still running),
        ``None`` when nothing needs to load.
        """
        if not self._alive or not self.enabled or not self.text.strip():
            return None

        # Ready is terminal, including an empty result that was not cached
        if self.phase is not AnnotationPhase.IDLE:
            return self._task if self._loading else None

        cached = self._cache.get_map(self.text)
        if cached is not None:
            self._synonyms = cached
            self.phase = AnnotationPhase.READY
            return None

        self._loading = True
        self.phase = AnnotationPhase.LOADING
        self._task = asyncio.create_task(self._load())
        return self._task

    async def _load(self) -> None:
        try:
            result = await self._cache.lookup(self.text, self._loader)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Entry %s: synonym lookup failed: %s", self.entry_id, exc)
            result = {}

        if not self._alive:
            logger.debug("Entry %s unmounted; discarding synonym result", self.entry_id)
            return

        self._loading = False
        self._synonyms = result or {}
        self.phase = AnnotationPhase.READY
        logger.debug(
            "Entry %s ready with %d annotated words", self.entry_id, len(self._synonyms)
        )

    def unmount(self) -> None:
        """Mark destroyed.  A lookup still in flight finishes but is ignored."""
        self._alive = False
        self.hover = None

    def is_interactive(self, word: str) -> bool:
        if not self.enabled or not word.strip():
            return False
        return normalize_word(word) in self._synonyms

    def render(self) -> List[List[RenderedToken]]:
        """Tokens per line, with eligible words marked interactive."""
        lines: List[List[RenderedToken]] = []
        for line_tokens in tokenize_text(self.text):
            rendered: List[RenderedToken] = []
            for token in line_tokens:
                if token.kind is TokenKind.WORD and self.is_interactive(token.text):
                    rendered.append(RenderedToken(
                        text=token.text,
                        kind=token.kind,
                        interactive=True,
                        normalized=token.normalized,
                        synonyms=list(self._synonyms[token.normalized]),
                    ))
                else:
                    rendered.append(RenderedToken(
                        text=token.text,
                        kind=token.kind,
                        normalized=token.normalized,
                    ))
            lines.append(rendered)
        return lines

    def pointer_enter(
        self,
        word: str,
        word_rect: Rect,
        container_rect: Rect,
        viewport_width: float,
    ) -> Optional[HoverState]:
        """Enter hover_active for an eligible word; ``None`` otherwise."""
        if not self._alive or self.phase not in (
            AnnotationPhase.READY,
            AnnotationPhase.HOVER_ACTIVE,
        ):
            return None
        if not self.is_interactive(word):
            return None

        key = normalize_word(word)
        synonyms = list(self._synonyms[key])
        self.hover = HoverState(
            hovered_word_key=key,
            tooltip_position=place_tooltip(word_rect, container_rect, viewport_width, synonyms),
            active_synonym_list=synonyms,
        )
        self.phase = AnnotationPhase.HOVER_ACTIVE
        return self.hover

    def pointer_leave(self) -> None:
        self.hover = None
        if self.phase is AnnotationPhase.HOVER_ACTIVE:
            self.phase = AnnotationPhase.READY


class AnnotationBoard:
    """Mounted annotators for the entries currently on screen, by entry id."""

    def __init__(self, cache: SynonymCache, loader: SynonymLoader) -> None:
        self.cache = cache
        self.loader = loader
        self._annotators: Dict[str, EntryAnnotator] = {}
        self._tasks: Set[asyncio.Task] = set()

    def mount(self, entry_id: str, text: str, enabled: bool) -> EntryAnnotator:
        annotator = self._annotators.get(entry_id)
        if annotator is None or annotator.text != text:
            if annotator is not None:
                annotator.unmount()
            annotator = EntryAnnotator(entry_id, text, self.cache, self.loader, enabled)
            self._annotators[entry_id] = annotator

        task = annotator.mount()
        if task is not None and task not in self._tasks:
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return annotator

    def get(self, entry_id: str) -> Optional[EntryAnnotator]:
        return self._annotators.get(entry_id)

    def unmount(self, entry_id: str) -> None:
        annotator = self._annotators.pop(entry_id, None)
        if annotator is not None:
            annotator.unmount()

    def unmount_all(self) -> None:
        for annotator in self._annotators.values():
            annotator.unmount()
        self._annotators.clear()

    async def wait_idle(self) -> None:
        """Await every lookup task still running."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_pending(self) -> int:
        """Cancel every running lookup task and wait for it to finish."""
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info("Cancelled %d pending synonym lookups", len(pending))
        return len(pending)

    @property
    def pending_count(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def __len__(self) -> int:
        return len(self._annotators)
