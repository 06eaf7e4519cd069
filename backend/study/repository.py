"""Database access for decks and cards.

Every card mutation also bumps its deck's ``updated_at``. Missing ids raise
``NotFound``; creating a deck past the owner's cap raises
``CapacityExceeded`` before anything is written.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from backend.config import settings, utcnow
from backend.models.card import Card
from backend.models.deck import Deck
from backend.study.deck import Flashcard, FlashcardDeck
from backend.study.errors import CapacityExceeded, ImportValidationError, NotFound
from backend.study.importer import DECK_NAME_MAX, CardDraft, validate_card, validate_deck
from backend.study.levels import DEFAULT_LEVEL, CardLevel

logger = logging.getLogger(__name__)


def to_flashcard_deck(row: Deck) -> FlashcardDeck:
    """Convert a loaded deck row (cards included) to the in-memory store."""
    return FlashcardDeck(
        id=row.id,
        name=row.name,
        cards=[
            Flashcard(
                id=card.id,
                question=card.question,
                answer=card.answer,
                level=CardLevel.parse(card.level),
            )
            for card in row.cards
        ],
        created_at=row.created_at,
        updated_at=row.updated_at,
        owner_id=row.owner_id,
    )


async def _get_deck_row(db: AsyncSession, deck_id: str, with_cards: bool = False) -> Deck:
    stmt = select(Deck).where(Deck.id == deck_id)
    if with_cards:
        stmt = stmt.options(selectinload(Deck.cards)).execution_options(populate_existing=True)
    row = (await db.execute(stmt)).scalar_one_or_none()
    if row is None:
        raise NotFound("deck", deck_id)
    return row


async def _get_card_row(db: AsyncSession, card_id: str, deck_id: str | None = None) -> Card:
    """Load a card, optionally requiring it to belong to ``deck_id``."""
    card = await db.get(Card, card_id)
    if card is None or (deck_id is not None and card.deck_id != deck_id):
        raise NotFound("card", card_id)
    return card


async def _touch_deck(db: AsyncSession, deck_id: str) -> None:
    await db.execute(update(Deck).where(Deck.id == deck_id).values(updated_at=utcnow()))


async def load_deck(db: AsyncSession, deck_id: str) -> FlashcardDeck:
    return to_flashcard_deck(await _get_deck_row(db, deck_id, with_cards=True))


async def list_decks(db: AsyncSession, owner_id: str) -> list[FlashcardDeck]:
    """Return an owner's decks, most recently updated first."""
    stmt = (
        select(Deck)
        .where(Deck.owner_id == owner_id)
        .order_by(Deck.updated_at.desc())
        .options(selectinload(Deck.cards))
        .execution_options(populate_existing=True)
    )
    rows = (await db.execute(stmt)).scalars().all()
    return [to_flashcard_deck(row) for row in rows]


async def count_decks(db: AsyncSession, owner_id: str) -> int:
    stmt = select(func.count(Deck.id)).where(Deck.owner_id == owner_id)
    return (await db.execute(stmt)).scalar() or 0


async def create_deck(
    db: AsyncSession,
    owner_id: str,
    name: str,
    drafts: list[CardDraft],
    max_decks: int | None = None,
) -> FlashcardDeck:
    """Create a deck with NEW cards from drafts.

    Raises:
        ImportValidationError: Name or cards break the import limits.
        CapacityExceeded: The owner already has ``max_decks`` decks.
    """
    name = validate_deck(name, drafts)
    limit = settings.max_decks_per_owner if max_decks is None else max_decks
    if await count_decks(db, owner_id) >= limit:
        logger.info("Owner %s hit the deck cap (%d)", owner_id, limit)
        raise CapacityExceeded(limit)

    deck = Deck(owner_id=owner_id, name=name)
    deck.cards = [
        Card(position=i, question=d.question, answer=d.answer, level=DEFAULT_LEVEL.value)
        for i, d in enumerate(drafts)
    ]
    db.add(deck)
    await db.commit()

    logger.info("Created deck %s '%s' with %d cards for %s", deck.id, name, len(drafts), owner_id)
    return await load_deck(db, deck.id)


async def delete_deck(db: AsyncSession, deck_id: str) -> None:
    deck = await _get_deck_row(db, deck_id)
    await db.delete(deck)
    await db.commit()
    logger.info("Deleted deck %s", deck_id)


async def rename_deck(db: AsyncSession, deck_id: str, name: str) -> None:
    name = name.strip()
    if not name or len(name) > DECK_NAME_MAX:
        raise ImportValidationError(f"Deck name must be 1-{DECK_NAME_MAX} characters")
    deck = await _get_deck_row(db, deck_id)
    deck.name = name
    deck.updated_at = utcnow()
    await db.commit()


async def rate_card(
    db: AsyncSession, card_id: str, level: CardLevel, deck_id: str | None = None
) -> None:
    card = await _get_card_row(db, card_id, deck_id)
    card.level = level.value
    await _touch_deck(db, card.deck_id)
    await db.commit()


async def edit_card(
    db: AsyncSession, card_id: str, question: str, answer: str, deck_id: str | None = None
) -> None:
    validate_card(question, answer)
    card = await _get_card_row(db, card_id, deck_id)
    card.question = question
    card.answer = answer
    await _touch_deck(db, card.deck_id)
    await db.commit()


async def add_card(db: AsyncSession, deck_id: str, question: str, answer: str) -> Flashcard:
    validate_card(question, answer)
    await _get_deck_row(db, deck_id)
    last = (
        await db.execute(select(func.max(Card.position)).where(Card.deck_id == deck_id))
    ).scalar()
    card = Card(
        deck_id=deck_id,
        position=0 if last is None else last + 1,
        question=question,
        answer=answer,
        level=DEFAULT_LEVEL.value,
    )
    db.add(card)
    await _touch_deck(db, deck_id)
    await db.commit()
    return Flashcard(id=card.id, question=question, answer=answer, level=DEFAULT_LEVEL)


async def delete_card(db: AsyncSession, card_id: str, deck_id: str | None = None) -> None:
    card = await _get_card_row(db, card_id, deck_id)
    deck_id = card.deck_id
    await db.delete(card)
    await _touch_deck(db, deck_id)
    await db.commit()


async def reset_progress(db: AsyncSession, deck_id: str) -> None:
    """Set every card in the deck back to NEW."""
    await _get_deck_row(db, deck_id)
    now = utcnow()
    await db.execute(
        update(Card).where(Card.deck_id == deck_id).values(level=DEFAULT_LEVEL.value, updated_at=now)
    )
    await _touch_deck(db, deck_id)
    await db.commit()
    logger.info("Reset progress of deck %s", deck_id)


async def export_decks(db: AsyncSession, owner_id: str) -> dict[str, Any]:
    """Dump an owner's decks in the backup/migration format."""
    decks = await list_decks(db, owner_id)
    return {
        "decks": [
            {
                "id": deck.id,
                "name": deck.name,
                "cards": [
                    {
                        "id": card.id,
                        "question": card.question,
                        "answer": card.answer,
                        "level": card.level.value,
                    }
                    for card in deck.cards
                ],
                "created_at": deck.created_at.isoformat(),
                "updated_at": deck.updated_at.isoformat(),
            }
            for deck in decks
        ],
        "exported_at": utcnow().isoformat(),
    }


class SqlDeckGateway:
    """Runs each session write in its own short-lived database session.

    With ``deck_id`` set, card writes only touch cards of that deck.
    """

    def __init__(
        self, sessionmaker: async_sessionmaker[AsyncSession], deck_id: str | None = None
    ) -> None:
        self._sessionmaker = sessionmaker
        self.deck_id = deck_id

    async def rate_card(self, card_id: str, level: CardLevel) -> None:
        async with self._sessionmaker() as db:
            await rate_card(db, card_id, level, self.deck_id)

    async def edit_card(self, card_id: str, question: str, answer: str) -> None:
        async with self._sessionmaker() as db:
            await edit_card(db, card_id, question, answer, self.deck_id)

    async def reset_progress(self, deck_id: str) -> None:
        async with self._sessionmaker() as db:
            await reset_progress(db, deck_id)
