"""Study order generation: which card indices are shown, and in what order.

An order is rebuilt only on structural changes (deck, filter, shuffle
toggle, restart). Rating or editing cards never rebuilds it, so the
learner keeps their place.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, field

from backend.study.levels import CardLevel

logger = logging.getLogger(__name__)


def fisher_yates(items: list[int], rng: random.Random | None = None) -> list[int]:
    """Shuffle ``items`` in place with a uniform Fisher-Yates pass and return it."""
    rng = rng or random
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def build_order(
    card_count: int,
    levels_by_index: Sequence[CardLevel],
    level_filter: CardLevel | None = None,
    shuffle: bool = False,
    rng: random.Random | None = None,
) -> list[int]:
    """Build the sequence of card indices to present.

    Args:
        card_count: Number of cards in the deck.
        levels_by_index: Level of each card, by storage index.
        level_filter: Keep only cards at this level (None keeps all).
        shuffle: Permute the result; otherwise ascending index order.
        rng: Random source for the shuffle.

    Returns:
        The filtered, possibly shuffled indices. Empty when the filter
        matches nothing; callers must treat that as its own condition.
    """
    if len(levels_by_index) != card_count:
        raise ValueError(
            f"levels_by_index has {len(levels_by_index)} entries for {card_count} cards"
        )

    indices = list(range(card_count))
    if level_filter is not None:
        indices = [i for i in indices if levels_by_index[i] == level_filter]
    if shuffle:
        fisher_yates(indices, rng)
    return indices


@dataclass
class StudyOrder:
    """A built order together with the policy that produced it."""

    indices: list[int] = field(default_factory=list)
    level_filter: CardLevel | None = None
    shuffle: bool = False

    def __len__(self) -> int:
        return len(self.indices)

    def __getitem__(self, position: int) -> int:
        return self.indices[position]

    @property
    def is_empty_filter(self) -> bool:
        """True when a filter is active and matched no cards."""
        return self.level_filter is not None and not self.indices

    @classmethod
    def build(
        cls,
        levels_by_index: Sequence[CardLevel],
        level_filter: CardLevel | None = None,
        shuffle: bool = False,
        rng: random.Random | None = None,
    ) -> StudyOrder:
        indices = build_order(len(levels_by_index), levels_by_index, level_filter, shuffle, rng)
        logger.debug(
            "Built order: %d of %d cards (filter=%s, shuffle=%s)",
            len(indices),
            len(levels_by_index),
            level_filter.value if level_filter else None,
            shuffle,
        )
        return cls(indices=indices, level_filter=level_filter, shuffle=shuffle)
