"""API routes for deck statistics."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import DeckStatsResponse, LevelCount
from backend.database import get_session
from backend.study import repository
from backend.study.stats import summarize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("/{deck_id}", response_model=DeckStatsResponse)
async def get_deck_stats(
    deck_id: str,
    db: AsyncSession = Depends(get_session),
) -> DeckStatsResponse:
    """Get per-level card counts for the whole deck.

    Picking a level here corresponds to ``POST /api/session/{id}/filter``.
    """
    deck = await repository.load_deck(db, deck_id)
    stats = summarize(deck)
    return DeckStatsResponse(
        deck_id=deck.id,
        total=stats.total,
        studied=stats.studied,
        progress=round(stats.progress, 3),
        levels=[
            LevelCount(level=level, label=level.label, count=count)
            for level, count in stats.counts.items()
        ],
    )
