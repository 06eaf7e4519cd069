"""Study session controller.

Drives a pointer through a study order over one deck, tracks whether the
current answer is revealed, applies ratings and edits to the local deck,
and queues their persistence. All transitions run to completion; nothing
here awaits.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from backend.study.clock import SessionClock
from backend.study.deck import Flashcard, FlashcardDeck
from backend.study.errors import EmptyFilterResult, SessionStateError
from backend.study.importer import validate_card
from backend.study.levels import DEFAULT_LEVEL, CardLevel
from backend.study.order import StudyOrder
from backend.study.writes import WriteQueue

logger = logging.getLogger(__name__)

ConfirmRestart = Callable[[], bool]


class RevealState(Enum):
    HIDDEN = "hidden"
    REVEALED = "revealed"


class SessionStatus(Enum):
    ACTIVE = "active"
    EMPTY_DECK = "empty_deck"  # deck has no cards and no filter is set
    EMPTY_FILTER = "empty_filter"  # filter matched nothing; clear it or leave
    CLOSED = "closed"


class NavResult(Enum):
    """Outcome of a navigation request."""

    ADVANCED = "advanced"
    MOVED_BACK = "moved_back"
    RESTARTED = "restarted"
    EXHAUSTED = "exhausted"  # at the last card, restart declined
    AT_START = "at_start"


class Speaker(Protocol):
    """Optional speech output for card text."""

    def speak(self, text: str) -> None: ...


class NullSpeaker:
    def speak(self, text: str) -> None:
        return None


class DeckGateway(Protocol):
    """Persistence calls a session issues for its local mutations."""

    async def rate_card(self, card_id: str, level: CardLevel) -> None: ...

    async def edit_card(self, card_id: str, question: str, answer: str) -> None: ...

    async def reset_progress(self, deck_id: str) -> None: ...


@dataclass
class SessionView:
    """Everything the presentation layer needs to draw the session."""

    deck_id: str
    status: SessionStatus
    current_card: Flashcard | None
    is_revealed: bool
    position: int  # 1-based, 0 when there is no current card
    total: int
    active_filter: CardLevel | None
    shuffle_enabled: bool
    elapsed_seconds: int
    break_reminder_pending: bool
    pending_writes: int = 0
    failed_writes: list[str] = field(default_factory=list)


class StudySession:
    """The state machine behind one learner studying one deck."""

    def __init__(
        self,
        deck: FlashcardDeck,
        *,
        shuffle: bool = False,
        level_filter: CardLevel | None = None,
        gateway: DeckGateway | None = None,
        speaker: Speaker | None = None,
        speech_enabled: bool = False,
        clock: SessionClock | None = None,
        writes: WriteQueue | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.deck = deck
        self.gateway = gateway
        self.speaker: Speaker = speaker if speaker is not None else NullSpeaker()
        self.speech_enabled = speech_enabled
        self.clock = clock if clock is not None else SessionClock()
        self.writes = writes if writes is not None else WriteQueue()
        self.rng = rng if rng is not None else random.Random()
        self.reveal_state = RevealState.HIDDEN
        self.pointer = 0
        self.closed = False
        # Last values known to be in the store; rollbacks restore these.
        self._saved_levels = {card.id: card.level for card in deck.cards}
        self._saved_text = {card.id: (card.question, card.answer) for card in deck.cards}
        self.order = StudyOrder()
        self._regenerate(level_filter, shuffle)
        logger.info(
            "Started session on deck %s: %d of %d cards",
            deck.id,
            len(self.order),
            len(deck.cards),
        )

    # --- State ---

    @property
    def status(self) -> SessionStatus:
        if self.closed:
            return SessionStatus.CLOSED
        if self.order.is_empty_filter:
            return SessionStatus.EMPTY_FILTER
        if not self.order:
            return SessionStatus.EMPTY_DECK
        return SessionStatus.ACTIVE

    @property
    def is_revealed(self) -> bool:
        return self.reveal_state is RevealState.REVEALED

    @property
    def shuffle_enabled(self) -> bool:
        return self.order.shuffle

    @property
    def active_filter(self) -> CardLevel | None:
        return self.order.level_filter

    @property
    def current_card(self) -> Flashcard | None:
        if self.closed or not self.order:
            return None
        index = self.order[self.pointer]
        if index >= len(self.deck.cards):
            return None
        return self.deck.cards[index]

    def view(self) -> SessionView:
        card = self.current_card
        return SessionView(
            deck_id=self.deck.id,
            status=self.status,
            current_card=card,
            is_revealed=self.is_revealed,
            position=self.pointer + 1 if card is not None else 0,
            total=len(self.order),
            active_filter=self.active_filter,
            shuffle_enabled=self.shuffle_enabled,
            elapsed_seconds=self.clock.elapsed_seconds,
            break_reminder_pending=self.clock.reminder_pending,
            pending_writes=len(self.writes),
            failed_writes=[w.description for w in self.writes.failed],
        )

    # --- Transitions ---

    def reveal(self) -> None:
        card = self._require_card()
        if self.reveal_state is RevealState.REVEALED:
            return
        self.reveal_state = RevealState.REVEALED
        self._speak(card.answer)

    def rate(self, level: CardLevel, confirm_restart: ConfirmRestart | None = None) -> NavResult:
        """Rate the revealed card, then move on as ``next`` would."""
        card = self._require_card()
        if self.reveal_state is not RevealState.REVEALED:
            raise SessionStateError("Reveal the answer before rating the card")
        previous = self.deck.rate(card.id, level)
        self._queue_rating(card, level, previous)
        return self.next(confirm_restart)

    def next(self, confirm_restart: ConfirmRestart | None = None) -> NavResult:
        """Advance one card; at the end, ask whether to start over.

        Without a confirmation callback, or if it declines, the session
        stays on the last card unchanged.
        """
        self._require_card()
        if self.pointer < len(self.order) - 1:
            self._move_to(self.pointer + 1)
            return NavResult.ADVANCED
        if confirm_restart is not None and confirm_restart():
            self.restart()
            return NavResult.RESTARTED
        return NavResult.EXHAUSTED

    def prev(self) -> NavResult:
        self._require_card()
        if self.pointer == 0:
            return NavResult.AT_START
        self._move_to(self.pointer - 1)
        return NavResult.MOVED_BACK

    def goto(self, n: int) -> bool:
        """Jump to the ``n``-th card of the order (1-based).

        Targets outside ``1..len(order)`` are ignored and return False.
        """
        self._require_card()
        if not 1 <= n <= len(self.order):
            logger.debug("Ignoring goto %d (order has %d cards)", n, len(self.order))
            return False
        self._move_to(n - 1)
        return True

    def restart(self) -> None:
        """Rebuild the order under the current policy and start from the top."""
        self._require_usable()
        self._regenerate(self.active_filter, self.shuffle_enabled)
        logger.info("Restarted session on deck %s", self.deck.id)

    def toggle_shuffle(self) -> bool:
        """Flip shuffling. Turning it off restores ascending storage order."""
        self._require_usable()
        self._regenerate(self.active_filter, not self.shuffle_enabled)
        return self.shuffle_enabled

    def select_filter(self, level: CardLevel | None) -> SessionStatus:
        """Study only cards at ``level`` (None for all cards).

        Allowed from the empty-filter state; it is how that state is left.
        """
        self._require_open()
        self._regenerate(level, self.shuffle_enabled)
        if self.order.is_empty_filter:
            logger.info("Filter %s matches no cards in deck %s", level.value, self.deck.id)
        return self.status

    def reset_progress(self) -> None:
        """Reset every card to NEW. The order and pointer stay as they are."""
        self._require_usable()
        previous = dict(zip([c.id for c in self.deck.cards], self.deck.reset_progress()))
        if self.gateway is None:
            return
        gateway = self.gateway
        deck_id = self.deck.id

        async def operation() -> None:
            await gateway.reset_progress(deck_id)
            self._saved_levels = {card.id: DEFAULT_LEVEL for card in self.deck.cards}

        def rollback() -> None:
            # Cards rated since the reset keep their newer level.
            self.deck.restore_levels(
                {
                    card_id: self._saved_levels.get(card_id, level)
                    for card_id, level in previous.items()
                }
            )

        self.writes.submit(f"reset progress of deck {deck_id}", operation, rollback=rollback)

    def edit_card(self, card_id: str, question: str, answer: str) -> None:
        """Change a card's text. The order and pointer stay as they are.

        Raises:
            ImportValidationError: The new text breaks the card limits.
        """
        self._require_usable()
        validate_card(question, answer)
        old_text = self.deck.edit(card_id, question, answer)
        if self.gateway is None:
            return
        gateway = self.gateway

        async def operation() -> None:
            await gateway.edit_card(card_id, question, answer)
            self._saved_text[card_id] = (question, answer)

        def rollback() -> None:
            card = self._find(card_id)
            if card is not None and (card.question, card.answer) == (question, answer):
                self.deck.edit(card_id, *self._saved_text.get(card_id, old_text))

        self.writes.submit(f"edit card {card_id}", operation, rollback=rollback)

    def close(self) -> None:
        """Discard ephemeral state. Queued writes are left to finish."""
        if self.closed:
            return
        self.closed = True
        self.order = StudyOrder()
        self.pointer = 0
        self.reveal_state = RevealState.HIDDEN
        logger.info("Closed session on deck %s", self.deck.id)

    # --- Clock ---

    def tick(self, seconds: int = 1) -> bool:
        return self.clock.tick(seconds)

    def sync_clock(self, elapsed_seconds: int) -> bool:
        return self.clock.advance_to(elapsed_seconds)

    def dismiss_break_reminder(self) -> None:
        self.clock.dismiss()

    # --- Internals ---

    def _regenerate(self, level_filter: CardLevel | None, shuffle: bool) -> None:
        self.order = StudyOrder.build(self.deck.levels(), level_filter, shuffle, self.rng)
        self.pointer = 0
        self.reveal_state = RevealState.HIDDEN
        card = self.current_card
        if card is not None:
            self._speak(card.question)

    def _move_to(self, pointer: int) -> None:
        self.pointer = pointer
        self.reveal_state = RevealState.HIDDEN
        card = self.current_card
        if card is not None:
            self._speak(card.question)

    def _queue_rating(self, card: Flashcard, level: CardLevel, previous: CardLevel) -> None:
        if self.gateway is None:
            return
        gateway = self.gateway
        card_id = card.id

        async def operation() -> None:
            await gateway.rate_card(card_id, level)
            self._saved_levels[card_id] = level

        def rollback() -> None:
            current = self._find(card_id)
            if current is not None and current.level == level:
                self.deck.rate(card_id, self._saved_levels.get(card_id, previous))

        self.writes.submit(f"rate card {card_id} as {level.value}", operation, rollback=rollback)

    def _find(self, card_id: str) -> Flashcard | None:
        for card in self.deck.cards:
            if card.id == card_id:
                return card
        return None

    def _speak(self, text: str) -> None:
        if not self.speech_enabled or not text:
            return
        try:
            self.speaker.speak(text)
        except Exception:
            logger.exception("Speech output failed")

    def _require_open(self) -> None:
        if self.closed:
            raise SessionStateError("Session is closed")

    def _require_usable(self) -> None:
        self._require_open()
        if self.order.is_empty_filter:
            raise EmptyFilterResult(self.order.level_filter)

    def _require_card(self) -> Flashcard:
        self._require_usable()
        card = self.current_card
        if card is None:
            raise SessionStateError("Deck has no cards to study")
        return card
