"""Tests for the study engine building blocks: levels, import, store, order, stats."""

import random
from collections import Counter

import pytest

from backend.study.deck import Flashcard, FlashcardDeck
from backend.study.errors import ImportValidationError, NotFound
from backend.study.importer import (
    CARDS_PER_DECK_MAX,
    CardDraft,
    build_cards,
    create_deck,
    drafts_from_structured,
    parse_line,
    parse_questions,
)
from backend.study.levels import ALL_LEVELS, RATING_SHORTCUTS, CardLevel
from backend.study.order import StudyOrder, build_order, fisher_yates
from backend.study.stats import compute_stats, summarize


def _make_deck(*levels: CardLevel) -> FlashcardDeck:
    return FlashcardDeck(
        id="deck-1",
        name="Test",
        cards=[
            Flashcard(id=f"c{i}", question=f"q{i}", answer=f"a{i}", level=level)
            for i, level in enumerate(levels)
        ],
    )


# --- Mastery levels ---


class TestCardLevel:
    def test_display_order(self) -> None:
        assert ALL_LEVELS == (
            CardLevel.NEW,
            CardLevel.UNKNOWN,
            CardLevel.FAIR,
            CardLevel.KNOWN,
            CardLevel.MASTERED,
        )
        assert CardLevel.NEW < CardLevel.UNKNOWN < CardLevel.MASTERED

    def test_labels(self) -> None:
        assert CardLevel.NEW.label == "Nowe"
        assert CardLevel.FAIR.label == "W miarę"
        assert CardLevel.MASTERED.label == "Opanowane 100%"

    def test_parse_accepts_value_name_and_label(self) -> None:
        assert CardLevel.parse("known") is CardLevel.KNOWN
        assert CardLevel.parse("KNOWN") is CardLevel.KNOWN
        assert CardLevel.parse("Umiem") is CardLevel.KNOWN
        assert CardLevel.parse(CardLevel.FAIR) is CardLevel.FAIR

    def test_parse_rejects_unknown(self) -> None:
        with pytest.raises(ValueError):
            CardLevel.parse("expert")

    def test_rating_shortcuts_skip_new(self) -> None:
        assert RATING_SHORTCUTS == {
            "1": CardLevel.UNKNOWN,
            "2": CardLevel.FAIR,
            "3": CardLevel.KNOWN,
            "4": CardLevel.MASTERED,
        }


# --- Import ---


class TestImporter:
    def test_simple_line(self) -> None:
        assert parse_questions("Q | A") == [CardDraft("Q", "A")]

    def test_pipe_in_answer_is_preserved(self) -> None:
        assert parse_questions("Q | A | B") == [CardDraft("Q", "A | B")]

    def test_blank_line_yields_nothing(self) -> None:
        assert parse_questions("   ") == []

    def test_no_delimiter_gives_empty_answer(self) -> None:
        assert parse_questions("OnlyQuestion") == [CardDraft("OnlyQuestion", "")]

    def test_empty_question_is_dropped(self) -> None:
        assert parse_line(" | orphan answer") is None
        assert parse_questions("| x\nQ | A") == [CardDraft("Q", "A")]

    def test_two_cards(self) -> None:
        drafts = parse_questions("What is 2+2? | 4\nCapital of France | Paris")
        cards = build_cards(drafts)
        assert [c.answer for c in cards] == ["4", "Paris"]
        assert all(c.level is CardLevel.NEW for c in cards)

    def test_windows_line_endings(self) -> None:
        assert parse_questions("a | 1\r\nb | 2\r\n") == [CardDraft("a", "1"), CardDraft("b", "2")]

    def test_ids_are_fresh(self) -> None:
        drafts = parse_questions("Q | A\nQ | A")
        first = build_cards(drafts)
        second = build_cards(drafts)
        ids = [c.id for c in first + second]
        assert len(set(ids)) == 4

    def test_structured_input(self) -> None:
        drafts = drafts_from_structured(
            [
                {"question": " Q1 ", "answer": " A1 ", "level": "known", "id": "keep-me?"},
                {"question": "", "answer": "dropped"},
                {"question": "Q2"},
            ]
        )
        assert drafts == [CardDraft("Q1", "A1"), CardDraft("Q2", "")]

    def test_create_deck(self) -> None:
        deck = create_deck("  Geography ", parse_questions("Capital of France | Paris"))
        assert deck.name == "Geography"
        assert len(deck) == 1
        assert deck.cards[0].level is CardLevel.NEW

    def test_create_deck_requires_cards(self) -> None:
        with pytest.raises(ImportValidationError):
            create_deck("Empty", parse_questions("\n\n"))

    def test_create_deck_card_limit(self) -> None:
        drafts = [CardDraft(f"q{i}", "a") for i in range(CARDS_PER_DECK_MAX + 1)]
        with pytest.raises(ImportValidationError):
            create_deck("Big", drafts)

    def test_create_deck_name_limit(self) -> None:
        with pytest.raises(ImportValidationError):
            create_deck("x" * 101, [CardDraft("q", "a")])


# --- Deck store ---


class TestDeckStore:
    def test_rate_sets_level_and_touches(self) -> None:
        deck = _make_deck(CardLevel.NEW, CardLevel.NEW)
        before = deck.updated_at
        previous = deck.rate("c1", CardLevel.KNOWN)
        assert previous is CardLevel.NEW
        assert deck.cards[1].level is CardLevel.KNOWN
        assert deck.updated_at > before

    def test_rate_missing_card(self) -> None:
        deck = _make_deck(CardLevel.NEW)
        before = deck.updated_at
        with pytest.raises(NotFound):
            deck.rate("missing", CardLevel.KNOWN)
        assert deck.updated_at == before

    def test_edit_keeps_level(self) -> None:
        deck = _make_deck(CardLevel.FAIR)
        deck.edit("c0", "new q", "new a")
        card = deck.cards[0]
        assert (card.question, card.answer, card.level) == ("new q", "new a", CardLevel.FAIR)

    def test_edit_missing_card(self) -> None:
        with pytest.raises(NotFound):
            _make_deck(CardLevel.NEW).edit("missing", "q", "a")

    def test_reset_progress(self) -> None:
        deck = _make_deck(CardLevel.KNOWN, CardLevel.MASTERED, CardLevel.UNKNOWN)
        before = deck.updated_at
        deck.reset_progress()
        assert all(c.level is CardLevel.NEW for c in deck.cards)
        assert deck.updated_at > before

    def test_repeated_touches_strictly_increase(self) -> None:
        deck = _make_deck(CardLevel.NEW)
        stamps = []
        for _ in range(5):
            deck.reset_progress()
            stamps.append(deck.updated_at)
        assert stamps == sorted(set(stamps))

    def test_add_and_remove_card(self) -> None:
        deck = _make_deck(CardLevel.KNOWN)
        card = deck.add_card("q", "a")
        assert card.level is CardLevel.NEW
        assert deck.cards[-1] is card
        deck.remove_card(card.id)
        assert len(deck) == 1


# --- Order generation ---


class TestBuildOrder:
    def test_unshuffled_is_ascending(self) -> None:
        levels = [CardLevel.NEW] * 5
        assert build_order(5, levels) == [0, 1, 2, 3, 4]

    def test_filter_keeps_matching_indices(self) -> None:
        levels = [CardLevel.KNOWN, CardLevel.NEW, CardLevel.KNOWN, CardLevel.FAIR]
        assert build_order(4, levels, CardLevel.KNOWN) == [0, 2]

    def test_filter_with_no_match_is_empty(self) -> None:
        levels = [CardLevel.NEW, CardLevel.FAIR]
        assert build_order(2, levels, CardLevel.MASTERED) == []

    def test_length_mismatch(self) -> None:
        with pytest.raises(ValueError):
            build_order(3, [CardLevel.NEW])

    @pytest.mark.parametrize("seed", range(10))
    def test_shuffle_is_a_permutation_of_filtered_set(self, seed: int) -> None:
        rng = random.Random(seed)
        levels = [rng.choice(ALL_LEVELS) for _ in range(30)]
        for level_filter in (None, *ALL_LEVELS):
            plain = build_order(30, levels, level_filter)
            shuffled = build_order(30, levels, level_filter, shuffle=True, rng=rng)
            assert Counter(shuffled) == Counter(plain)
            expected = {i for i, lv in enumerate(levels) if level_filter in (None, lv)}
            assert set(shuffled) == expected
            assert len(shuffled) == len(expected)

    def test_shuffle_actually_permutes(self) -> None:
        rng = random.Random(7)
        orders = {tuple(build_order(8, [CardLevel.NEW] * 8, shuffle=True, rng=rng)) for _ in range(20)}
        assert len(orders) > 1

    def test_fisher_yates_is_roughly_uniform(self) -> None:
        rng = random.Random(1234)
        counts = Counter(tuple(fisher_yates([0, 1, 2], rng)) for _ in range(6000))
        assert len(counts) == 6
        assert all(800 < n < 1200 for n in counts.values())

    def test_study_order_empty_filter_flag(self) -> None:
        levels = [CardLevel.NEW, CardLevel.NEW]
        assert StudyOrder.build(levels, CardLevel.KNOWN).is_empty_filter
        assert not StudyOrder.build([], None).is_empty_filter


# --- Stats ---


class TestStats:
    def test_counts_include_every_level(self) -> None:
        deck = _make_deck(CardLevel.NEW, CardLevel.KNOWN, CardLevel.KNOWN)
        counts = compute_stats(deck)
        assert list(counts) == list(ALL_LEVELS)
        assert counts[CardLevel.NEW] == 1
        assert counts[CardLevel.KNOWN] == 2
        assert counts[CardLevel.MASTERED] == 0

    def test_summary_progress(self) -> None:
        stats = summarize(_make_deck(CardLevel.NEW, CardLevel.FAIR, CardLevel.MASTERED, CardLevel.NEW))
        assert stats.total == 4
        assert stats.studied == 2
        assert stats.progress == 0.5

    def test_empty_deck_progress(self) -> None:
        assert summarize(_make_deck()).progress == 0.0
