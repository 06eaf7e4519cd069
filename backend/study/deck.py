"""In-memory deck and card store used by study sessions.

The store holds the session's local view of a deck. Every mutation here is
applied immediately; persisting it is the caller's job (see
``backend.study.writes``).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from backend.config import utcnow
from backend.study.errors import NotFound
from backend.study.levels import DEFAULT_LEVEL, CardLevel

logger = logging.getLogger(__name__)

# Smallest step used to keep updated_at strictly increasing within one clock tick
_TOUCH_STEP = timedelta(microseconds=1)


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return str(uuid.uuid4())


@dataclass
class Flashcard:
    """A single question/answer card."""

    id: str
    question: str
    answer: str
    level: CardLevel = DEFAULT_LEVEL


@dataclass
class FlashcardDeck:
    """A named, ordered collection of flashcards.

    ``cards`` is storage order, not study order.
    """

    id: str
    name: str
    cards: list[Flashcard] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    owner_id: str | None = None

    def __len__(self) -> int:
        return len(self.cards)

    def touch(self) -> None:
        """Advance ``updated_at``, strictly, even within the same clock tick."""
        now = utcnow()
        self.updated_at = now if now > self.updated_at else self.updated_at + _TOUCH_STEP

    def levels(self) -> list[CardLevel]:
        """Return the level of each card, by storage index."""
        return [card.level for card in self.cards]

    def index_of(self, card_id: str) -> int:
        for i, card in enumerate(self.cards):
            if card.id == card_id:
                return i
        raise NotFound("card", card_id)

    def card(self, card_id: str) -> Flashcard:
        return self.cards[self.index_of(card_id)]

    def rate(self, card_id: str, level: CardLevel) -> CardLevel:
        """Set one card's level and return the level it had before.

        Raises:
            NotFound: If the card is not in this deck. The deck is untouched.
        """
        card = self.card(card_id)
        previous = card.level
        card.level = level
        self.touch()
        return previous

    def edit(self, card_id: str, question: str, answer: str) -> tuple[str, str]:
        """Replace a card's text, keeping its level. Returns the old text."""
        card = self.card(card_id)
        previous = (card.question, card.answer)
        card.question = question
        card.answer = answer
        self.touch()
        return previous

    def reset_progress(self) -> list[CardLevel]:
        """Set every card back to NEW. Returns the prior levels by index."""
        previous = self.levels()
        for card in self.cards:
            card.level = DEFAULT_LEVEL
        self.touch()
        logger.debug("Reset progress of deck %s (%d cards)", self.id, len(self.cards))
        return previous

    def restore_levels(self, levels: dict[str, CardLevel]) -> None:
        """Undo a reset for cards that are still NEW.

        ``levels`` maps card id to the level to put back. Cards rated since
        the reset, or missing from the mapping, are left alone.
        """
        for card in self.cards:
            if card.id in levels and card.level is DEFAULT_LEVEL:
                card.level = levels[card.id]
        self.touch()

    def add_card(self, question: str, answer: str, card_id: str | None = None) -> Flashcard:
        card = Flashcard(id=card_id or new_id(), question=question, answer=answer)
        self.cards.append(card)
        self.touch()
        return card

    def remove_card(self, card_id: str) -> Flashcard:
        card = self.cards.pop(self.index_of(card_id))
        self.touch()
        return card
