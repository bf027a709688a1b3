"""
Journal workspace: the live two-notebook state behind the UI.

The left notebook holds the child's entries (annotation-enabled), the right
notebook holds AI Buddy replies (never annotated).  The workspace owns the
synonym cache lifecycle: a new or switched session clears it, saving exports
it into ``vocabulary_data``, loading restores it.

Submitting an entry starts the synonym lookup for it and then waits only for
the chat reply.  The two finish in either order; the entry's annotator picks
up the synonyms whenever they land.
"""
from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.services.annotation import AnnotationBoard, EntryAnnotator
from app.services.session_store import SessionStore, SessionStoreError, default_title
from app.services.synonym_cache import SynonymCache
from app.services.tutor import FALLBACK_CHAT_REPLY, TutorError, TutorService
from app.utils.helpers import parse_timestamp, to_iso, utc_now

logger = logging.getLogger(__name__)


class WorkspaceBusyError(Exception):
    """Raised when an entry is submitted while another is still being answered."""


@dataclasses.dataclass(frozen=True)
class Entry:
    """One journal line, user-authored or an AI reply."""

    id: str
    text: str
    created_at: datetime
    color_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "timestamp": to_iso(self.created_at),
            "colorIndex": self.color_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], position: int = 0) -> "Entry":
        """
        Rebuild a stored entry.

        A missing or malformed timestamp is replaced with the current time so
        one bad entry does not fail the whole load.
        """
        raw_ts = data.get("timestamp", data.get("created_at"))
        created_at = parse_timestamp(raw_ts)
        if created_at is None:
            logger.warning(
                "Entry %r has malformed timestamp %r; using current time",
                data.get("id"),
                raw_ts,
            )
            created_at = utc_now()

        color_index = data.get("colorIndex", data.get("color_index", position))
        try:
            color_index = int(color_index)
        except (TypeError, ValueError):
            color_index = position

        return cls(
            id=str(data.get("id") or uuid.uuid4().hex),
            text=str(data.get("text", "")),
            created_at=created_at,
            color_index=color_index,
        )


@dataclasses.dataclass
class SubmitResult:
    """Returned by JournalWorkspace.submit_entry."""

    user_entry: Entry
    reply_entry: Entry
    reply_failed: bool
    saved: bool


def _new_entry_id() -> str:
    return uuid.uuid4().hex


class JournalWorkspace:
    """In-memory journal state plus its session-store operations."""

    def __init__(self, cache: SynonymCache, tutor: TutorService) -> None:
        self.cache = cache
        self.tutor = tutor
        self.board = AnnotationBoard(cache, tutor.get_synonyms_for_sentence)
        self.current_session_id: Optional[int] = None
        self.title: Optional[str] = None
        self.left_entries: List[Entry] = []
        self.right_entries: List[Entry] = []
        self.conversation_history: List[Dict[str, str]] = []
        self._busy = False

    @property
    def is_busy(self) -> bool:
        return self._busy

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        self.board.unmount_all()
        self.cache.clear()
        self.left_entries = []
        self.right_entries = []
        self.conversation_history = []

    def _mount_all(self) -> None:
        for entry in self.left_entries:
            self.board.mount(entry.id, entry.text, enabled=True)
        for entry in self.right_entries:
            self.board.mount(entry.id, entry.text, enabled=False)

    def find_entry(self, entry_id: str) -> Optional[Entry]:
        for entry in self.left_entries + self.right_entries:
            if entry.id == entry_id:
                return entry
        return None

    def annotator_for(self, entry_id: str) -> Optional[EntryAnnotator]:
        """Annotator for *entry_id*; mounted only if the board has none."""
        annotator = self.board.get(entry_id)
        if annotator is not None:
            return annotator

        entry = self.find_entry(entry_id)
        if entry is None:
            return None
        enabled = any(e.id == entry_id for e in self.left_entries)
        return self.board.mount(entry.id, entry.text, enabled=enabled)

    def to_session_data(self) -> Dict[str, Any]:
        return {
            "title": self.title or default_title(),
            "left_entries": [e.to_dict() for e in self.left_entries],
            "right_entries": [e.to_dict() for e in self.right_entries],
            "conversation_history": list(self.conversation_history),
            "vocabulary_data": self.cache.export_all(),
        }

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def new_session(self, store: SessionStore, title: Optional[str] = None) -> int:
        """
        Persist an empty session and make it current.

        The session is committed first; on SessionStoreError nothing changes.
        """
        title = title or default_title()
        session_id = await store.create({
            "title": title,
            "left_entries": [],
            "right_entries": [],
            "conversation_history": [],
            "vocabulary_data": {},
        })
        await store.commit()

        self._reset()
        self.current_session_id = session_id
        self.title = title
        logger.info("New journal session %d started", session_id)
        return session_id

    async def load_session(self, store: SessionStore, session_id: int) -> bool:
        """
        Switch to a saved session.

        Returns False if it does not exist.  The cache is cleared and then
        restored from the session's vocabulary so results are deterministic.
        """
        data = await store.read(session_id)
        if data is None:
            return False

        left = [Entry.from_dict(d, i) for i, d in enumerate(data["left_entries"]) if isinstance(d, dict)]
        right = [Entry.from_dict(d, i) for i, d in enumerate(data["right_entries"]) if isinstance(d, dict)]

        self._reset()
        restored = self.cache.restore_all(data.get("vocabulary_data") or {})
        self.current_session_id = data["id"]
        self.title = data["title"]
        self.left_entries = left
        self.right_entries = right
        self.conversation_history = [
            turn for turn in data.get("conversation_history") or [] if isinstance(turn, dict)
        ]
        self._mount_all()

        logger.info(
            "Loaded session %d: %d entries, %d vocabulary sentences",
            session_id,
            len(left) + len(right),
            restored,
        )
        return True

    async def save_session(self, store: SessionStore) -> bool:
        """Write the current state to the current session.  False if there is none."""
        if self.current_session_id is None:
            logger.info("No session ID to save to")
            return False

        session_data = self.to_session_data()
        ok = await store.update(self.current_session_id, session_data)
        if ok:
            await store.commit()
            logger.info(
                "Session %d saved with %d vocabulary entries",
                self.current_session_id,
                len(session_data["vocabulary_data"]),
            )
        else:
            logger.warning("Session %d no longer exists; not saved", self.current_session_id)
        return ok

    # ------------------------------------------------------------------
    # Entry submission
    # ------------------------------------------------------------------

    async def submit_entry(self, store: SessionStore, text: str) -> SubmitResult:
        """
        Add a journal entry, get the AI Buddy reply, then save.

        The synonym lookup for the new entry runs on its own and is not
        awaited here.  Save failures are logged and reported via ``saved``.
        """
        message = text.strip()
        if not message:
            raise ValueError("Entry text must not be empty.")
        if self._busy:
            raise WorkspaceBusyError("AI Buddy is still answering the previous entry.")

        self._busy = True
        try:
            user_entry = Entry(
                id=_new_entry_id(),
                text=message,
                created_at=utc_now(),
                color_index=len(self.left_entries),
            )
            self.left_entries.append(user_entry)
            self.board.mount(user_entry.id, user_entry.text, enabled=True)

            reply_failed = False
            try:
                turn = await self.tutor.chat_with_child(self.conversation_history, message)
                self.conversation_history = turn.updated_history
                reply_text = turn.response
            except TutorError as exc:
                logger.error("Error getting AI response: %s", exc)
                reply_text = FALLBACK_CHAT_REPLY
                reply_failed = True

            reply_entry = Entry(
                id=_new_entry_id(),
                text=reply_text,
                created_at=utc_now(),
                color_index=user_entry.color_index,
            )
            self.right_entries.append(reply_entry)
            self.board.mount(reply_entry.id, reply_entry.text, enabled=False)
        finally:
            self._busy = False

        saved = False
        if self.current_session_id is not None:
            try:
                saved = await self.save_session(store)
            except SessionStoreError as exc:
                logger.error("Error saving session after entry: %s", exc)

        return SubmitResult(
            user_entry=user_entry,
            reply_entry=reply_entry,
            reply_failed=reply_failed,
            saved=saved,
        )
