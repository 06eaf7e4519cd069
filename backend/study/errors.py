"""Error taxonomy for the study engine.

Store and controller operations raise these instead of returning sentinel
values; the API and CLI catch them at their boundary and decide whether to
surface, retry or ignore.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from backend.study.levels import CardLevel


class StudyError(Exception):
    """Base class for all study engine errors."""


class NotFound(StudyError):
    """A deck or card id does not exist."""

    def __init__(self, kind: str, ident: str) -> None:
        super().__init__(f"{kind} not found: {ident}")
        self.kind = kind
        self.ident = ident


class CapacityExceeded(StudyError):
    """The owner already has the maximum number of decks."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Maximum {limit} decks per user reached.")
        self.limit = limit


class EmptyFilterResult(StudyError):
    """The active level filter matches no cards.

    Only clearing the filter or leaving the session is possible from here.
    """

    def __init__(self, level: CardLevel) -> None:
        super().__init__(f"No cards match filter '{level.label}'")
        self.level = level


class InvalidGotoTarget(StudyError):
    def __init__(self, target: int, total: int) -> None:
        super().__init__(f"Card {target} is outside 1..{total}")
        self.target = target
        self.total = total


class SessionStateError(StudyError):
    """An operation is not valid in the session's current state."""


class ImportValidationError(StudyError):
    """Imported deck content breaks a size limit or is empty."""
