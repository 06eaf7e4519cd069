"""Per-level card tallies for a deck.

Stats always cover the whole deck, never just the session's filtered
order, so the learner can find cards outside the current filter.
"""

from dataclasses import dataclass

from backend.study.deck import FlashcardDeck
from backend.study.levels import ALL_LEVELS, CardLevel


@dataclass
class DeckStats:
    counts: dict[CardLevel, int]
    total: int
    studied: int  # cards no longer at NEW

    @property
    def progress(self) -> float:
        """Fraction of cards that have been rated at least once."""
        return self.studied / self.total if self.total else 0.0


def compute_stats(deck: FlashcardDeck) -> dict[CardLevel, int]:
    """Count cards per level, in display order, zeros included."""
    counts = {level: 0 for level in ALL_LEVELS}
    for card in deck.cards:
        counts[card.level] += 1
    return counts


def summarize(deck: FlashcardDeck) -> DeckStats:
    counts = compute_stats(deck)
    total = len(deck.cards)
    return DeckStats(counts=counts, total=total, studied=total - counts[CardLevel.NEW])
