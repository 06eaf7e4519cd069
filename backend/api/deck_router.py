"""API routes for deck management: import, edit, reset, export."""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import (
    CardIn,
    CardOut,
    DeckCreateRequest,
    DeckImportRequest,
    DeckRenameRequest,
    DeckResponse,
    DeckSummary,
)
from backend.database import get_session
from backend.study import repository
from backend.study.importer import drafts_from_structured, parse_questions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/decks", tags=["decks"])


@router.get("", response_model=list[DeckSummary])
async def decks_list(owner_id: str, db: AsyncSession = Depends(get_session)) -> list[DeckSummary]:
    """List an owner's decks, most recently updated first."""
    decks = await repository.list_decks(db, owner_id)
    return [DeckSummary.from_deck(d) for d in decks]


@router.get("/export")
async def decks_export(owner_id: str, db: AsyncSession = Depends(get_session)) -> dict:
    """Export all of an owner's decks for backup or migration."""
    return await repository.export_decks(db, owner_id)


@router.post("/import", response_model=DeckResponse, status_code=201)
async def deck_import(
    request: DeckImportRequest,
    db: AsyncSession = Depends(get_session),
) -> DeckResponse:
    """Create a deck from ``question | answer`` lines."""
    drafts = parse_questions(request.text)
    deck = await repository.create_deck(db, request.owner_id, request.name, drafts)
    return DeckResponse.from_deck(deck)


@router.post("", response_model=DeckResponse, status_code=201)
async def deck_create(
    request: DeckCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> DeckResponse:
    """Create a deck from structured ``{question, answer}`` cards."""
    drafts = drafts_from_structured(request.cards)
    deck = await repository.create_deck(db, request.owner_id, request.name, drafts)
    return DeckResponse.from_deck(deck)


@router.get("/{deck_id}", response_model=DeckResponse)
async def deck_get(deck_id: str, db: AsyncSession = Depends(get_session)) -> DeckResponse:
    return DeckResponse.from_deck(await repository.load_deck(db, deck_id))


@router.patch("/{deck_id}", status_code=204)
async def deck_rename(
    deck_id: str,
    request: DeckRenameRequest,
    db: AsyncSession = Depends(get_session),
) -> Response:
    await repository.rename_deck(db, deck_id, request.name)
    return Response(status_code=204)


@router.delete("/{deck_id}", status_code=204)
async def deck_delete(deck_id: str, db: AsyncSession = Depends(get_session)) -> Response:
    await repository.delete_deck(db, deck_id)
    return Response(status_code=204)


@router.post("/{deck_id}/reset", status_code=204)
async def deck_reset(deck_id: str, db: AsyncSession = Depends(get_session)) -> Response:
    """Reset all of the deck's cards to NEW."""
    await repository.reset_progress(db, deck_id)
    return Response(status_code=204)


@router.post("/{deck_id}/cards", response_model=CardOut, status_code=201)
async def card_add(
    deck_id: str,
    request: CardIn,
    db: AsyncSession = Depends(get_session),
) -> CardOut:
    card = await repository.add_card(db, deck_id, request.question.strip(), request.answer.strip())
    return CardOut.from_card(card)


@router.patch("/{deck_id}/cards/{card_id}", status_code=204)
async def card_edit(
    deck_id: str,
    card_id: str,
    request: CardIn,
    db: AsyncSession = Depends(get_session),
) -> Response:
    await repository.edit_card(
        db, card_id, request.question.strip(), request.answer.strip(), deck_id=deck_id
    )
    return Response(status_code=204)


@router.delete("/{deck_id}/cards/{card_id}", status_code=204)
async def card_delete(
    deck_id: str,
    card_id: str,
    db: AsyncSession = Depends(get_session),
) -> Response:
    await repository.delete_card(db, card_id, deck_id=deck_id)
    return Response(status_code=204)
