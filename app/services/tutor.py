"""
Child-facing tutor operations built on the Ollama client.

Public API
----------
TutorService.get_synonyms_for_sentence(sentence)        -> SynonymMap
TutorService.chat_with_child(history, message)          -> ChatTurn
TutorService.enhance_vocabulary(sentence)               -> str
TutorService.get_vocabulary_suggestions(word, context)  -> List[str]
TutorService.explain_word(word)                         -> str

Synonym lookups never raise: provider and parse failures both come back as an
empty mapping, meaning "no suggestions".  ``chat_with_child`` and
``enhance_vocabulary`` raise ``TutorError`` so the caller can pick a fallback.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, List, Optional

from app.config import settings
from app.services.llm_service import OllamaLLMService
from app.utils.helpers import normalize_word

logger = logging.getLogger(__name__)

SynonymMap = Dict[str, List[str]]


class TutorError(Exception):
    """Raised when the tutor cannot produce a reply."""


@dataclasses.dataclass
class ChatTurn:
    """Returned by TutorService.chat_with_child."""

    response: str
    updated_history: List[Dict[str, str]]


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

_SYNONYM_PROMPT = """\
You are a vocabulary coach for children aged {min_age}-{max_age}.
A child wrote this sentence: "{sentence}"

Find the simple, overused words in the sentence that the child could replace \
with richer vocabulary. Only consider words in these categories:
- intensifiers (very, really, so, super, totally)
- basic emotions (happy, sad, mad, scared, glad)
- simple verbs (go, get, got, make, said, run, look, like)
- generic adjectives (good, bad, nice, big, small, fun, cool, pretty)
- overused filler words (stuff, thing, things, lots, a lot)

Never include:
- function words (the, a, an, and, but, or, is, was)
- pronouns (I, me, you, he, she, it, we, they)
- prepositions (in, on, at, to, with, from)
- words that are already advanced vocabulary

For each word you flag, give exactly {count} age-appropriate synonyms that fit \
the sentence. Use the word exactly as it appears in the sentence, in lowercase.

Respond ONLY with a JSON object. No explanation, no markdown:
{{"word": ["synonym1", "synonym2", "synonym3"]}}
If no words qualify, respond with {{}}\
"""

_CHAT_PROMPT = """\
You are a friendly, patient, and encouraging AI tutor talking with a child \
aged {min_age}-{max_age}.
Your responses should be:
- Warm and encouraging
- Easy to understand
- Educational when appropriate
- Safe and positive
- Ask follow-up questions to keep them engaged
- Help with homework or learning when needed
- Use simple language but introduce new concepts gently

Here's the conversation so far:
{conversation}

Please respond to the child's latest message in a helpful, friendly way. \
Keep your response under 3 sentences and make it engaging for a young learner.\
"""

_ENHANCE_PROMPT = """\
You are a helpful tutor working with elementary school children.
A child wrote this sentence: "{sentence}"

Please rewrite this sentence by replacing some simple words with slightly more \
advanced but age-appropriate vocabulary.
Keep the same meaning and make sure the new words are suitable for children \
aged {min_age}-{max_age}.
Don't make it too complex - just help them learn 2-3 new words maximum.
Only return the improved sentence, nothing else.

Example:
Child: "The dog was very happy and ran fast."
Enhanced: "The dog was delighted and sprinted quickly."\
"""

_SUGGESTION_PROMPT = """\
Given the word "{word}" used in this context: "{context}"

Suggest 3-5 alternative words that:
1. Are slightly more advanced but still appropriate for children aged {min_age}-{max_age}
2. Have the same meaning as the original word
3. Fit grammatically in the sentence

Return only the alternative words as a simple comma-separated list.\
"""

_EXPLAIN_PROMPT = """\
Explain the word "{word}" in a simple, fun way that a {min_age}-{max_age} year \
old child would understand.
Include:
1. What it means
2. An example of how to use it
3. Maybe a fun fact or memory trick.

Keep it short and engaging - no more than 2-3 sentences.\
"""

# Schema sent as Ollama's ``format`` for synonym lookups
SYNONYM_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": {
        "type": "array",
        "items": {"type": "string"},
    },
}

FALLBACK_CHAT_REPLY = (
    "Sorry, I'm having trouble thinking right now. "
    "Can you try asking me something else?"
)


def sanitize_synonym_map(raw: Dict[str, Any], limit: Optional[int] = None) -> SynonymMap:
    """
    Normalize keys and keep only non-empty string synonyms.

    Words whose value is not a list, or whose list ends up empty, are
    dropped.  Each list is capped at *limit* (MAX_SYNONYMS_PER_WORD).
    """
    if limit is None:
        limit = settings.MAX_SYNONYMS_PER_WORD
    cleaned: SynonymMap = {}
    for word, synonyms in raw.items():
        key = normalize_word(str(word))
        if not key or not isinstance(synonyms, list):
            continue

        values: List[str] = []
        for item in synonyms:
            if not isinstance(item, (str, int, float)) or isinstance(item, bool):
                continue
            text = str(item).strip()
            if text and text.lower() != key and text not in values:
                values.append(text)

        values = values[:max(limit, 0)]
        if values:
            cleaned[key] = values
    return cleaned


class TutorService:
    """Prompt construction and response handling for the AI Buddy."""

    SYNONYM_PROMPT = _SYNONYM_PROMPT
    CHAT_PROMPT = _CHAT_PROMPT
    ENHANCE_PROMPT = _ENHANCE_PROMPT
    SUGGESTION_PROMPT = _SUGGESTION_PROMPT
    EXPLAIN_PROMPT = _EXPLAIN_PROMPT

    def __init__(self, llm: Optional[OllamaLLMService] = None) -> None:
        self.llm = llm or OllamaLLMService()
        self.min_age = settings.TUTOR_MIN_AGE
        self.max_age = settings.TUTOR_MAX_AGE

    # ------------------------------------------------------------------
    # Synonyms
    # ------------------------------------------------------------------

    def build_synonym_prompt(self, sentence: str) -> str:
        return self.SYNONYM_PROMPT.format(
            min_age=self.min_age,
            max_age=self.max_age,
            sentence=sentence.strip(),
            count=settings.SYNONYMS_PER_WORD,
        )

    async def get_synonyms_for_sentence(self, sentence: str) -> SynonymMap:
        """
        Flag simple words in *sentence* and suggest synonyms for each.

        Returns ``{}`` for blank input, provider failure, unparsable output
        or when the model finds nothing.
        """
        if not sentence or not sentence.strip():
            return {}

        schema = SYNONYM_SCHEMA if settings.OLLAMA_STRUCTURED_OUTPUT else None
        raw = await self.llm.generate_json_object(
            self.build_synonym_prompt(sentence),
            json_schema=schema,
        )
        synonyms = sanitize_synonym_map(raw)
        logger.info(
            "get_synonyms_for_sentence: %d words flagged", len(synonyms)
        )
        return synonyms

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat_with_child(
        self,
        conversation_history: List[Dict[str, str]],
        child_message: str,
    ) -> ChatTurn:
        """
        Reply to *child_message* given the prior conversation.

        History items are ``{"role": "user"|"assistant", "message": str}``.
        Raises ``TutorError`` when the model returns nothing.
        """
        updated_history = list(conversation_history) + [
            {"role": "user", "message": child_message}
        ]
        conversation = "\n".join(
            f"{'Child' if turn.get('role') == 'user' else 'Assistant'}: {turn.get('message', '')}"
            for turn in updated_history
        )
        prompt = self.CHAT_PROMPT.format(
            min_age=self.min_age,
            max_age=self.max_age,
            conversation=conversation,
        )

        reply = await self.llm.generate_text(prompt, max_tokens=300)
        if not reply:
            raise TutorError("Sorry, I had trouble understanding. Can you try asking again?")

        updated_history.append({"role": "assistant", "message": reply})
        return ChatTurn(response=reply, updated_history=updated_history)

    # ------------------------------------------------------------------
    # Vocabulary helpers
    # ------------------------------------------------------------------

    async def enhance_vocabulary(self, child_sentence: str) -> str:
        prompt = self.ENHANCE_PROMPT.format(
            sentence=child_sentence.strip(),
            min_age=self.min_age,
            max_age=self.max_age,
        )
        enhanced = await self.llm.generate_text(prompt, max_tokens=200)
        if not enhanced:
            raise TutorError("Failed to enhance vocabulary. Please try again.")
        return enhanced

    async def get_vocabulary_suggestions(self, word: str, context: str) -> List[str]:
        """Word-level lookup: 3-5 alternatives for *word* in *context*, ``[]`` on failure."""
        prompt = self.SUGGESTION_PROMPT.format(
            word=word,
            context=context,
            min_age=self.min_age,
            max_age=self.max_age,
        )
        suggestions = await self.llm.generate_text(prompt, max_tokens=100)
        if not suggestions:
            return []
        words = [part.strip().strip(".") for part in suggestions.split(",")]
        return [w for w in words if w][: settings.MAX_SYNONYMS_PER_WORD]

    async def explain_word(self, word: str) -> str:
        prompt = self.EXPLAIN_PROMPT.format(
            word=word,
            min_age=self.min_age,
            max_age=self.max_age,
        )
        explanation = await self.llm.generate_text(prompt, max_tokens=200)
        if not explanation:
            return f'"{word}" is an interesting word! Let me think of a good way to explain it...'
        return explanation
