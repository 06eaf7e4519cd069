"""API routes for study sessions.

Each route maps onto exactly one controller operation. Persistence writes
queued by an operation are flushed after the response is sent.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.schemas import (
    FilterRequest,
    GotoRequest,
    NextRequest,
    RateRequest,
    SessionStartRequest,
    SessionViewResponse,
)
from backend.config import settings
from backend.database import async_session, get_session
from backend.study import repository
from backend.study.errors import InvalidGotoTarget
from backend.study.repository import SqlDeckGateway
from backend.study.session import StudySession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])


@dataclass
class ActiveSession:
    """A running session plus the wall-clock bookkeeping around it."""

    session: StudySession
    started: float = field(default_factory=time.monotonic)
    last_seen: float = field(default_factory=time.monotonic)

    def sync(self) -> None:
        now = time.monotonic()
        self.last_seen = now
        self.session.sync_clock(int(now - self.started))


# In-memory session store
_active_sessions: dict[str, ActiveSession] = {}


def _prune_expired(now: float | None = None) -> None:
    now = now if now is not None else time.monotonic()
    expired = [
        sid
        for sid, active in _active_sessions.items()
        if now - active.last_seen > settings.session_ttl_seconds
    ]
    for sid in expired:
        _active_sessions.pop(sid).session.close()
        logger.info("Expired idle session %s", sid)


def _get_active(session_id: str) -> ActiveSession:
    active = _active_sessions.get(session_id)
    if not active:
        raise HTTPException(status_code=404, detail="Session not found")
    active.sync()
    return active


def _respond(
    session_id: str,
    active: ActiveSession,
    background: BackgroundTasks,
    last_action: str | None = None,
) -> SessionViewResponse:
    if active.session.writes.pending:
        background.add_task(active.session.writes.flush)
    return SessionViewResponse.from_view(session_id, active.session.view(), last_action)


@router.post("/start", response_model=SessionViewResponse, status_code=201)
async def session_start(
    request: SessionStartRequest,
    db: AsyncSession = Depends(get_session),
) -> SessionViewResponse:
    """Load a deck and start studying it."""
    _prune_expired()
    deck = await repository.load_deck(db, request.deck_id)
    study = StudySession(
        deck,
        shuffle=request.shuffle,
        level_filter=request.level_filter,
        gateway=SqlDeckGateway(async_session, deck.id),
    )
    session_id = str(uuid.uuid4())
    _active_sessions[session_id] = ActiveSession(session=study)
    return SessionViewResponse.from_view(session_id, study.view())


@router.get("/{session_id}", response_model=SessionViewResponse)
async def session_view(session_id: str) -> SessionViewResponse:
    active = _get_active(session_id)
    return SessionViewResponse.from_view(session_id, active.session.view())


@router.post("/{session_id}/reveal", response_model=SessionViewResponse)
async def session_reveal(session_id: str, background: BackgroundTasks) -> SessionViewResponse:
    active = _get_active(session_id)
    active.session.reveal()
    return _respond(session_id, active, background)


@router.post("/{session_id}/rate", response_model=SessionViewResponse)
async def session_rate(
    session_id: str,
    request: RateRequest,
    background: BackgroundTasks,
) -> SessionViewResponse:
    """Rate the revealed card and advance."""
    active = _get_active(session_id)
    result = active.session.rate(request.level, confirm_restart=lambda: request.restart)
    return _respond(session_id, active, background, result.value)


@router.post("/{session_id}/next", response_model=SessionViewResponse)
async def session_next(
    session_id: str,
    request: NextRequest,
    background: BackgroundTasks,
) -> SessionViewResponse:
    """Advance one card; ``restart`` answers the end-of-deck prompt."""
    active = _get_active(session_id)
    result = active.session.next(confirm_restart=lambda: request.restart)
    return _respond(session_id, active, background, result.value)


@router.post("/{session_id}/prev", response_model=SessionViewResponse)
async def session_prev(session_id: str, background: BackgroundTasks) -> SessionViewResponse:
    active = _get_active(session_id)
    result = active.session.prev()
    return _respond(session_id, active, background, result.value)


@router.post("/{session_id}/goto", response_model=SessionViewResponse)
async def session_goto(
    session_id: str,
    request: GotoRequest,
    background: BackgroundTasks,
) -> SessionViewResponse:
    active = _get_active(session_id)
    if not active.session.goto(request.position):
        error = InvalidGotoTarget(request.position, len(active.session.order))
        raise HTTPException(status_code=422, detail=str(error))
    return _respond(session_id, active, background, "goto")


@router.post("/{session_id}/shuffle", response_model=SessionViewResponse)
async def session_shuffle(session_id: str, background: BackgroundTasks) -> SessionViewResponse:
    active = _get_active(session_id)
    active.session.toggle_shuffle()
    return _respond(session_id, active, background, "shuffle")


@router.post("/{session_id}/filter", response_model=SessionViewResponse)
async def session_filter(
    session_id: str,
    request: FilterRequest,
    background: BackgroundTasks,
) -> SessionViewResponse:
    """Select a level filter, or clear it with ``level: null``."""
    active = _get_active(session_id)
    status = active.session.select_filter(request.level)
    return _respond(session_id, active, background, status.value)


@router.post("/{session_id}/reset-progress", response_model=SessionViewResponse)
async def session_reset_progress(
    session_id: str,
    background: BackgroundTasks,
) -> SessionViewResponse:
    active = _get_active(session_id)
    active.session.reset_progress()
    return _respond(session_id, active, background, "reset")


@router.post("/{session_id}/dismiss-break", response_model=SessionViewResponse)
async def session_dismiss_break(
    session_id: str,
    background: BackgroundTasks,
) -> SessionViewResponse:
    active = _get_active(session_id)
    active.session.dismiss_break_reminder()
    return _respond(session_id, active, background)


@router.post("/{session_id}/end")
async def session_end(session_id: str) -> dict:
    """End a session; queued writes still complete."""
    active = _active_sessions.pop(session_id, None)
    if not active:
        raise HTTPException(status_code=404, detail="Session not found")

    await active.session.writes.flush()
    active.session.close()
    return {
        "status": "ended",
        "deck_id": active.session.deck.id,
        "elapsed_seconds": active.session.clock.elapsed_seconds,
        "failed_writes": [w.description for w in active.session.writes.failed],
    }
