"""Tests for deck persistence against a real SQLite database."""

import pytest
from sqlalchemy import func, select

from backend.database import async_session
from backend.models.card import Card
from backend.study import repository
from backend.study.errors import CapacityExceeded, ImportValidationError, NotFound
from backend.study.importer import parse_questions
from backend.study.levels import CardLevel
from backend.study.repository import SqlDeckGateway
from backend.study.session import StudySession
from backend.study.writes import WriteQueue

OWNER = "owner-1"
TEXT = "What is 2+2? | 4\nCapital of France | Paris\nPipe | a | b"


@pytest.mark.asyncio
async def test_create_and_load_deck(db) -> None:
    deck = await repository.create_deck(db, OWNER, "Quiz", parse_questions(TEXT))
    loaded = await repository.load_deck(db, deck.id)
    assert loaded.name == "Quiz"
    assert [c.question for c in loaded.cards] == ["What is 2+2?", "Capital of France", "Pipe"]
    assert loaded.cards[2].answer == "a | b"
    assert all(c.level is CardLevel.NEW for c in loaded.cards)
    assert loaded.owner_id == OWNER


@pytest.mark.asyncio
async def test_load_missing_deck(db) -> None:
    with pytest.raises(NotFound):
        await repository.load_deck(db, "nope")


@pytest.mark.asyncio
async def test_capacity_is_enforced(db) -> None:
    for i in range(3):
        await repository.create_deck(db, OWNER, f"Deck {i}", parse_questions("q | a"), max_decks=3)
    with pytest.raises(CapacityExceeded):
        await repository.create_deck(db, OWNER, "One too many", parse_questions("q | a"), max_decks=3)
    assert len(await repository.list_decks(db, OWNER)) == 3
    # Other owners are unaffected.
    await repository.create_deck(db, "someone-else", "Mine", parse_questions("q | a"), max_decks=3)


@pytest.mark.asyncio
async def test_default_cap_is_five(db) -> None:
    for i in range(5):
        await repository.create_deck(db, OWNER, f"Deck {i}", parse_questions("q | a"))
    with pytest.raises(CapacityExceeded):
        await repository.create_deck(db, OWNER, "Sixth", parse_questions("q | a"))


@pytest.mark.asyncio
async def test_create_rejects_empty_import(db) -> None:
    with pytest.raises(ImportValidationError):
        await repository.create_deck(db, OWNER, "Empty", parse_questions("   \n"))
    assert await repository.count_decks(db, OWNER) == 0


@pytest.mark.asyncio
async def test_rate_edit_and_reset(db) -> None:
    deck = await repository.create_deck(db, OWNER, "Quiz", parse_questions(TEXT))
    first, second = deck.cards[0].id, deck.cards[1].id

    await repository.rate_card(db, first, CardLevel.KNOWN)
    await repository.edit_card(db, second, "Capital of Poland", "Warsaw")
    loaded = await repository.load_deck(db, deck.id)
    assert loaded.cards[0].level is CardLevel.KNOWN
    assert loaded.cards[1].answer == "Warsaw"
    assert loaded.updated_at >= deck.updated_at

    await repository.reset_progress(db, deck.id)
    loaded = await repository.load_deck(db, deck.id)
    assert all(c.level is CardLevel.NEW for c in loaded.cards)


@pytest.mark.asyncio
async def test_missing_card_operations(db) -> None:
    with pytest.raises(NotFound):
        await repository.rate_card(db, "missing", CardLevel.KNOWN)
    with pytest.raises(NotFound):
        await repository.edit_card(db, "missing", "q", "a")
    with pytest.raises(NotFound):
        await repository.reset_progress(db, "missing")


@pytest.mark.asyncio
async def test_card_writes_are_scoped_to_their_deck(db) -> None:
    first = await repository.create_deck(db, OWNER, "First", parse_questions(TEXT))
    second = await repository.create_deck(db, OWNER, "Second", parse_questions("q | a"))
    foreign = first.cards[0].id

    with pytest.raises(NotFound):
        await repository.edit_card(db, foreign, "Hijacked", "x", deck_id=second.id)
    with pytest.raises(NotFound):
        await repository.rate_card(db, foreign, CardLevel.KNOWN, deck_id=second.id)
    with pytest.raises(NotFound):
        await repository.delete_card(db, foreign, deck_id=second.id)

    loaded = await repository.load_deck(db, first.id)
    assert loaded.cards[0].question == "What is 2+2?"
    assert loaded.cards[0].level is CardLevel.NEW
    assert len(loaded.cards) == 3

    gateway = SqlDeckGateway(async_session, second.id)
    with pytest.raises(NotFound):
        await gateway.rate_card(foreign, CardLevel.KNOWN)


@pytest.mark.asyncio
async def test_add_and_delete_card(db) -> None:
    deck = await repository.create_deck(db, OWNER, "Quiz", parse_questions(TEXT))
    card = await repository.add_card(db, deck.id, "New question", "New answer")
    loaded = await repository.load_deck(db, deck.id)
    assert loaded.cards[-1].id == card.id
    assert loaded.cards[-1].level is CardLevel.NEW

    await repository.delete_card(db, card.id)
    loaded = await repository.load_deck(db, deck.id)
    assert len(loaded.cards) == 3


@pytest.mark.asyncio
async def test_rename_and_delete_deck(db) -> None:
    deck = await repository.create_deck(db, OWNER, "Quiz", parse_questions(TEXT))
    await repository.rename_deck(db, deck.id, "  Renamed  ")
    assert (await repository.load_deck(db, deck.id)).name == "Renamed"

    with pytest.raises(ImportValidationError):
        await repository.rename_deck(db, deck.id, " ")

    await repository.delete_deck(db, deck.id)
    with pytest.raises(NotFound):
        await repository.load_deck(db, deck.id)
    remaining = (await db.execute(select(func.count(Card.id)).where(Card.deck_id == deck.id))).scalar()
    assert remaining == 0


@pytest.mark.asyncio
async def test_export_format(db) -> None:
    deck = await repository.create_deck(db, OWNER, "Quiz", parse_questions(TEXT))
    await repository.rate_card(db, deck.cards[0].id, CardLevel.FAIR)
    data = await repository.export_decks(db, OWNER)
    assert "exported_at" in data
    [exported] = data["decks"]
    assert exported["name"] == "Quiz"
    assert exported["cards"][0] == {
        "id": deck.cards[0].id,
        "question": "What is 2+2?",
        "answer": "4",
        "level": "fair",
    }


@pytest.mark.asyncio
async def test_session_writes_reach_database(db) -> None:
    deck = await repository.create_deck(db, OWNER, "Quiz", parse_questions(TEXT))
    session = StudySession(
        deck,
        gateway=SqlDeckGateway(async_session, deck.id),
        writes=WriteQueue(wait_seconds=0),
    )
    session.reveal()
    session.rate(CardLevel.MASTERED)
    session.edit_card(deck.cards[1].id, "Capital of Spain", "Madrid")
    failed = await session.writes.flush()
    assert failed == []

    async with async_session() as fresh:
        loaded = await repository.load_deck(fresh, deck.id)
    assert loaded.cards[0].level is CardLevel.MASTERED
    assert loaded.cards[1].answer == "Madrid"
