"""
Sentence-level synonym cache with an in-flight lookup guard.

Keys are normalized sentence text (lowercase + trim).  Values are SynonymMaps:
``{normalized_word: [synonym, ...]}``.  One cache object is owned by the
application (created in the lifespan) and handed to whoever needs it, and its
contents follow the journal session: cleared on new/switch, exported on save,
restored on load.

Usage
-----
    cache = SynonymCache()
    synonyms = await cache.lookup(sentence, tutor.get_synonyms_for_sentence)
"""
from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from app.utils.helpers import normalize_sentence, normalize_word

logger = logging.getLogger(__name__)

SynonymMap = Dict[str, List[str]]
SynonymLoader = Callable[[str], Awaitable[SynonymMap]]
# Word-level lookups store a bare synonym list under the word itself
CacheValue = Union[SynonymMap, List[str]]


def _restore_map(value: Mapping[Any, Any]) -> SynonymMap:
    """Rebuild a stored SynonymMap with its word keys normalized."""
    restored: SynonymMap = {}
    for word, synonyms in value.items():
        key = normalize_word(str(word))
        if key and isinstance(synonyms, list):
            restored.setdefault(key, []).extend(str(s) for s in synonyms)
    return restored


class SynonymCache:
    """
    Mapping of normalized sentence -> SynonymMap.

    ``lookup`` shares one pending future per key between every caller, so
    identical text submitted from several entries at once reaches the
    provider exactly once.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, CacheValue] = {}
        self._in_flight: Dict[str, asyncio.Future] = {}
        # Bumped by clear(); lookups started before a clear do not write back
        self._generation = 0
        self.hits = 0
        self.misses = 0

    # ------------------------------------------------------------------
    # Basic mapping operations
    # ------------------------------------------------------------------

    @staticmethod
    def make_key(text: str) -> str:
        return normalize_sentence(text)

    def get(self, key: str) -> Optional[CacheValue]:
        return self._entries.get(self.make_key(key))

    def get_map(self, key: str) -> Optional[SynonymMap]:
        """Sentence-level entry for *key*; word-level lists are not returned."""
        value = self.get(key)
        return value if isinstance(value, dict) else None

    def put(self, key: str, value: CacheValue) -> None:
        self._entries[self.make_key(key)] = value

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        self._generation += 1
        logger.info("Synonym cache cleared (%d entries dropped)", count)

    def export_all(self) -> Dict[str, CacheValue]:
        """Plain ``key -> SynonymMap`` copy suitable for JSON storage."""
        return copy.deepcopy(self._entries)

    def restore_all(self, mapping: Optional[Mapping[str, Any]]) -> int:
        """
        Load entries from a previously exported mapping.

        Existing keys not present in *mapping* are kept; callers restoring a
        saved session call ``clear()`` first.  Returns the number of entries
        restored.
        """
        if not mapping:
            return 0

        restored = 0
        for key, value in mapping.items():
            if not isinstance(key, str):
                logger.warning("restore_all: skipping non-string cache key %r", key)
                continue
            if isinstance(value, dict):
                self.put(key, _restore_map(value))
            elif isinstance(value, list):
                self.put(key, [str(s) for s in value])
            else:
                logger.warning("restore_all: skipping malformed cache entry %r", key)
                continue
            restored += 1

        logger.info("Synonym cache restored %d entries", restored)
        return restored

    def is_loading(self, text: str) -> bool:
        return self.make_key(text) in self._in_flight

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.make_key(key) in self._entries

    # ------------------------------------------------------------------
    # Guarded lookup
    # ------------------------------------------------------------------

    async def lookup(self, text: str, loader: SynonymLoader) -> SynonymMap:
        """
        Return the SynonymMap for *text*, calling *loader* on a miss.

        A second caller for the same key while the first is outstanding
        awaits the first call's result instead of issuing its own.  Loader
        errors degrade to an empty map.  Empty results are returned but not
        cached.
        """
        key = self.make_key(text)
        if not key:
            return {}

        cached = self._entries.get(key)
        if isinstance(cached, dict):
            self.hits += 1
            return cached

        pending = self._in_flight.get(key)
        if pending is not None:
            logger.debug("lookup: joining in-flight request for %r", key[:60])
            # shield: a cancelled waiter must not cancel the shared future
            return await asyncio.shield(pending)

        self.misses += 1
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        generation = self._generation

        try:
            result = await loader(text)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            logger.error("lookup: synonym loader failed for %r: %s", key[:60], exc)
            result = {}
        finally:
            self._in_flight.pop(key, None)

        if not isinstance(result, dict):
            result = {}

        if result and generation == self._generation:
            self._entries[key] = result

        if not future.done():
            future.set_result(result)
        return result
