"""
Common utility functions and helpers.
"""
from datetime import datetime, timezone
from typing import Any, Optional
import re


# Characters stripped from a word before it is compared against a SynonymMap
WORD_PUNCTUATION = '.,!?;:"()'
_WORD_PUNCTUATION_RE = re.compile(r'[.,!?;:"()]')


def normalize_word(word: str) -> str:
    """
    Normalize a word for synonym lookups.

    Args:
        word: Raw word token, possibly carrying punctuation

    Returns:
        Lowercased word with punctuation and surrounding whitespace removed
    """
    return _WORD_PUNCTUATION_RE.sub('', word).lower().strip()


def normalize_sentence(text: str) -> str:
    """
    Normalize sentence text into a synonym cache key.

    Args:
        text: Raw sentence or entry text

    Returns:
        Lowercased, trimmed text
    """
    return text.lower().strip()


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialize a datetime to an ISO-8601 string for storage."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp.

    Args:
        value: ISO-8601 string, datetime, or epoch milliseconds

    Returns:
        Aware datetime, or None if the value cannot be interpreted
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        # fromisoformat on older interpreters rejects the trailing "Z"
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def truncate_text(text: str, max_length: int = 200, suffix: str = "...") -> str:
    """
    Truncate text to maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
