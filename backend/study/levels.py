"""Mastery levels a learner assigns to a card after revealing its answer.

Levels are ordered by recall confidence, lowest first. There is no
automatic progression: a card only changes level when the learner rates it
or when the whole deck is reset.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CardLevel(Enum):
    """Self-assessed recall confidence for a flashcard."""

    NEW = "new"
    UNKNOWN = "unknown"
    FAIR = "fair"
    KNOWN = "known"
    MASTERED = "mastered"

    @property
    def label(self) -> str:
        """Display label shown to the learner."""
        return LEVEL_LABELS[self]

    @property
    def rank(self) -> int:
        """Position in the fixed display order (NEW is 0)."""
        return ALL_LEVELS.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, CardLevel):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def parse(cls, value: str | CardLevel) -> CardLevel:
        """Resolve a storage value, member name or display label to a level.

        Raises:
            ValueError: If the value names no level.
        """
        if isinstance(value, CardLevel):
            return value
        text = value.strip()
        lowered = text.lower()
        for level in ALL_LEVELS:
            if lowered in (level.value, level.name.lower()) or text == level.label:
                return level
        raise ValueError(f"Unknown card level: {value!r}")


# All card levels in display order
ALL_LEVELS: tuple[CardLevel, ...] = (
    CardLevel.NEW,
    CardLevel.UNKNOWN,
    CardLevel.FAIR,
    CardLevel.KNOWN,
    CardLevel.MASTERED,
)

DEFAULT_LEVEL = CardLevel.NEW

LEVEL_LABELS: dict[CardLevel, str] = {
    CardLevel.NEW: "Nowe",
    CardLevel.UNKNOWN: "Nie umiem",
    CardLevel.FAIR: "W miarę",
    CardLevel.KNOWN: "Umiem",
    CardLevel.MASTERED: "Opanowane 100%",
}


@dataclass(frozen=True)
class Rating:
    """A rating choice offered once the answer is revealed."""

    level: CardLevel
    shortcut: str

    @property
    def label(self) -> str:
        return f"{self.shortcut} - {self.level.label}"


# NEW is not offered; cards only return to it through a progress reset.
RATINGS: tuple[Rating, ...] = (
    Rating(CardLevel.UNKNOWN, "1"),
    Rating(CardLevel.FAIR, "2"),
    Rating(CardLevel.KNOWN, "3"),
    Rating(CardLevel.MASTERED, "4"),
)

RATING_SHORTCUTS: dict[str, CardLevel] = {r.shortcut: r.level for r in RATINGS}
