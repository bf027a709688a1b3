"""
Punctuation-based tokenizer for journal entries.

Splits a line into sentence spans on runs of ``.``, ``!`` and ``?`` and each
sentence into words on runs of whitespace.  Delimiters and whitespace are kept
as their own tokens so joining every token's text gives back the input.
"""
from __future__ import annotations

import dataclasses
import enum
import re
from typing import List

from app.utils.helpers import normalize_word

_SENTENCE_SPLIT_RE = re.compile(r"([.!?]+)")
_DELIMITER_RE = re.compile(r"^[.!?]+$")
_WHITESPACE_SPLIT_RE = re.compile(r"(\s+)")


class TokenKind(str, enum.Enum):
    WORD = "word"
    SPACE = "space"
    DELIMITER = "delimiter"


@dataclasses.dataclass(frozen=True)
class Token:
    text: str
    kind: TokenKind
    sentence_index: int
    normalized: str = ""


def split_lines(text: str) -> List[str]:
    """Split entry text into display lines."""
    if not text:
        return []
    return text.split("\n")


def split_sentences(line: str) -> List[str]:
    """Split *line* into sentence and delimiter spans, dropping empty pieces."""
    return [span for span in _SENTENCE_SPLIT_RE.split(line) if span]


def tokenize(line: str) -> List[Token]:
    """
    Tokenize one line of text.

    Sentence index counts spans (sentences and delimiter runs alike) so that
    tokens from the same span share an index.
    """
    tokens: List[Token] = []
    for index, span in enumerate(split_sentences(line)):
        if _DELIMITER_RE.match(span):
            tokens.append(Token(span, TokenKind.DELIMITER, index))
            continue
        if not span.strip():
            tokens.append(Token(span, TokenKind.SPACE, index))
            continue

        for piece in _WHITESPACE_SPLIT_RE.split(span):
            if not piece:
                continue
            if piece.isspace():
                tokens.append(Token(piece, TokenKind.SPACE, index))
            else:
                tokens.append(Token(piece, TokenKind.WORD, index, normalize_word(piece)))
    return tokens


def tokenize_text(text: str) -> List[List[Token]]:
    """Tokenize every line of a multi-line entry."""
    return [tokenize(line) for line in split_lines(text)]


def detokenize(tokens: List[Token]) -> str:
    return "".join(token.text for token in tokens)
