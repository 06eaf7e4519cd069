"""Deck import: plain-text ``question | answer`` lines or structured cards.

Both input shapes go through the same draft -> card creation path, so
imported cards always start at NEW with freshly generated ids.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from backend.study.deck import Flashcard, FlashcardDeck, new_id
from backend.study.errors import ImportValidationError
from backend.study.levels import DEFAULT_LEVEL

logger = logging.getLogger(__name__)

DELIMITER = "|"

# Limits to prevent abuse
DECK_NAME_MAX = 100
CARDS_PER_DECK_MAX = 500
QUESTION_MAX = 5000
ANSWER_MAX = 10000


@dataclass(frozen=True)
class CardDraft:
    """Question/answer text waiting to become a card."""

    question: str
    answer: str


def parse_line(line: str) -> CardDraft | None:
    """Parse one import line, or return None if it yields no card.

    The first ``|`` splits question from answer; any further pipes belong
    to the answer. A line without a delimiter gets an empty answer.
    """
    trimmed = line.strip()
    if not trimmed:
        return None
    question, _, answer = trimmed.partition(DELIMITER)
    question = question.strip()
    if not question:
        return None
    return CardDraft(question=question, answer=answer.strip())


def parse_questions(text: str) -> list[CardDraft]:
    """Parse newline-delimited ``question | answer`` text into drafts."""
    drafts = []
    dropped = 0
    for line in text.splitlines():
        draft = parse_line(line)
        if draft is not None:
            drafts.append(draft)
        elif line.strip():
            dropped += 1
    if dropped:
        logger.debug("Dropped %d import lines with an empty question", dropped)
    return drafts


def drafts_from_structured(items: Iterable[Mapping[str, Any] | Any]) -> list[CardDraft]:
    """Turn ``{question, answer}`` mappings (or objects) into drafts.

    Entries whose question is empty after trimming are dropped, matching
    the plain-text path.
    """
    drafts = []
    for item in items:
        if isinstance(item, Mapping):
            question = item.get("question") or ""
            answer = item.get("answer") or ""
        else:
            question = getattr(item, "question", "") or ""
            answer = getattr(item, "answer", "") or ""
        question = str(question).strip()
        if not question:
            logger.debug("Dropped structured card with an empty question")
            continue
        drafts.append(CardDraft(question=question, answer=str(answer).strip()))
    return drafts


def validate_deck(name: str, drafts: list[CardDraft]) -> str:
    """Check deck name and card limits. Returns the trimmed name."""
    name = name.strip()
    if not name:
        raise ImportValidationError("Deck name is required")
    if len(name) > DECK_NAME_MAX:
        raise ImportValidationError(f"Deck name must be {DECK_NAME_MAX} characters or less")
    if not drafts:
        raise ImportValidationError("No cards found in import")
    if len(drafts) > CARDS_PER_DECK_MAX:
        raise ImportValidationError(f"Maximum {CARDS_PER_DECK_MAX} cards per deck")
    for draft in drafts:
        validate_card(draft.question, draft.answer)
    return name


def validate_card(question: str, answer: str) -> None:
    if not question.strip():
        raise ImportValidationError("Question is required")
    if len(question) > QUESTION_MAX:
        raise ImportValidationError(f"Question must be {QUESTION_MAX} characters or less")
    if len(answer) > ANSWER_MAX:
        raise ImportValidationError(f"Answer must be {ANSWER_MAX} characters or less")


def build_cards(drafts: Iterable[CardDraft]) -> list[Flashcard]:
    """Create NEW cards with fresh ids from drafts."""
    return [
        Flashcard(id=new_id(), question=d.question, answer=d.answer, level=DEFAULT_LEVEL)
        for d in drafts
    ]


def create_deck(name: str, drafts: list[CardDraft], owner_id: str | None = None) -> FlashcardDeck:
    """Validate drafts and build a new in-memory deck from them."""
    name = validate_deck(name, drafts)
    deck = FlashcardDeck(id=new_id(), name=name, cards=build_cards(drafts), owner_id=owner_id)
    logger.info("Created deck '%s' with %d cards", name, len(deck.cards))
    return deck
