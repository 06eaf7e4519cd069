"""Pydantic schemas for API request/response models."""

from datetime import datetime

from pydantic import BaseModel, Field

from backend.study.deck import Flashcard, FlashcardDeck
from backend.study.importer import ANSWER_MAX, DECK_NAME_MAX, QUESTION_MAX
from backend.study.levels import CardLevel
from backend.study.session import SessionView

# --- Decks ---


class CardIn(BaseModel):
    question: str = Field(min_length=1, max_length=QUESTION_MAX)
    answer: str = Field(default="", max_length=ANSWER_MAX)


class CardOut(BaseModel):
    id: str
    question: str
    answer: str
    level: CardLevel

    @classmethod
    def from_card(cls, card: Flashcard) -> "CardOut":
        return cls(id=card.id, question=card.question, answer=card.answer, level=card.level)


class DeckImportRequest(BaseModel):
    """Plain-text import: one ``question | answer`` per line."""

    owner_id: str
    name: str = Field(min_length=1, max_length=DECK_NAME_MAX)
    text: str


class DeckCreateRequest(BaseModel):
    """Structured import, e.g. the ``cards`` list of an export file."""

    owner_id: str
    name: str = Field(min_length=1, max_length=DECK_NAME_MAX)
    cards: list[dict]


class DeckRenameRequest(BaseModel):
    name: str = Field(min_length=1, max_length=DECK_NAME_MAX)


class DeckSummary(BaseModel):
    id: str
    name: str
    card_count: int
    studied: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_deck(cls, deck: FlashcardDeck) -> "DeckSummary":
        return cls(
            id=deck.id,
            name=deck.name,
            card_count=len(deck.cards),
            studied=sum(1 for c in deck.cards if c.level is not CardLevel.NEW),
            created_at=deck.created_at,
            updated_at=deck.updated_at,
        )


class DeckResponse(DeckSummary):
    cards: list[CardOut]

    @classmethod
    def from_deck(cls, deck: FlashcardDeck) -> "DeckResponse":
        summary = DeckSummary.from_deck(deck)
        return cls(**summary.model_dump(), cards=[CardOut.from_card(c) for c in deck.cards])


# --- Session ---


class SessionStartRequest(BaseModel):
    deck_id: str
    shuffle: bool = False
    level_filter: CardLevel | None = None


class RateRequest(BaseModel):
    level: CardLevel
    restart: bool = False  # answer to the end-of-deck prompt, if rating the last card


class NextRequest(BaseModel):
    restart: bool = False


class GotoRequest(BaseModel):
    position: int


class FilterRequest(BaseModel):
    level: CardLevel | None = None


class SessionViewResponse(BaseModel):
    """Snapshot of a study session for the presentation layer."""

    session_id: str
    deck_id: str
    status: str
    current_card: CardOut | None
    is_revealed: bool
    position: int
    total: int
    active_filter: CardLevel | None
    shuffle_enabled: bool
    elapsed_seconds: int
    break_reminder_pending: bool
    pending_writes: int
    failed_writes: list[str]
    last_action: str | None = None

    @classmethod
    def from_view(
        cls, session_id: str, view: SessionView, last_action: str | None = None
    ) -> "SessionViewResponse":
        card = view.current_card
        return cls(
            session_id=session_id,
            deck_id=view.deck_id,
            status=view.status.value,
            current_card=CardOut.from_card(card) if card is not None else None,
            is_revealed=view.is_revealed,
            position=view.position,
            total=view.total,
            active_filter=view.active_filter,
            shuffle_enabled=view.shuffle_enabled,
            elapsed_seconds=view.elapsed_seconds,
            break_reminder_pending=view.break_reminder_pending,
            pending_writes=view.pending_writes,
            failed_writes=view.failed_writes,
            last_action=last_action,
        )


# --- Stats ---


class LevelCount(BaseModel):
    level: CardLevel
    label: str
    count: int


class DeckStatsResponse(BaseModel):
    """Per-level tallies over the whole deck."""

    deck_id: str
    total: int
    studied: int
    progress: float
    levels: list[LevelCount]
