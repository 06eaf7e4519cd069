"""CLI interface for Flashdeck.

Usage:
    python -m flashdeck import questions.txt       Create a deck from "question | answer" lines
    python -m flashdeck decks                      List your decks
    python -m flashdeck study DECK_ID              Start a study session
    python -m flashdeck stats DECK_ID              Show per-level card counts
    python -m flashdeck reset DECK_ID              Reset a deck's progress to "Nowe"
    python -m flashdeck export -o backup.json      Export all decks as JSON
    python -m flashdeck delete DECK_ID             Delete a deck
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

from backend.config import settings
from backend.database import async_session, engine
from backend.models import Base
from backend.study import repository
from backend.study.clock import run_clock
from backend.study.errors import EmptyFilterResult, SessionStateError, StudyError
from backend.study.importer import CardDraft, drafts_from_structured, parse_questions
from backend.study.levels import ALL_LEVELS, RATING_SHORTCUTS, RATINGS, CardLevel
from backend.study.repository import SqlDeckGateway
from backend.study.session import NavResult, SessionStatus, SessionView, StudySession
from backend.study.stats import summarize

logger = logging.getLogger(__name__)

HELP = (
    "  Keys: Enter=reveal  1-4=rate  n=next  p=prev  g N=go to card  s=shuffle\n"
    "        f LEVEL=filter (f alone clears)  r=reset progress  d=dismiss break  q=quit"
)


async def ensure_db() -> None:
    """Create tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def parse_command(line: str) -> tuple[str, str]:
    """Split a study-loop input line into (command, argument).

    An empty line or a lone space means reveal; a rating digit maps to
    ``rate``. Everything else is ``command [argument]``.
    """
    raw = line.strip()
    if not raw:
        return "reveal", ""
    if raw in RATING_SHORTCUTS:
        return "rate", raw
    command, _, argument = raw.partition(" ")
    return command.lower(), argument.strip()


def render_view(view: SessionView) -> str:
    """Format a session snapshot for the terminal."""
    lines = []
    if view.status is SessionStatus.EMPTY_FILTER:
        label = view.active_filter.label if view.active_filter else ""
        lines.append(f"  No cards match filter '{label}'. Use 'f' to clear it or 'q' to quit.")
        return "\n".join(lines)
    if view.status is SessionStatus.EMPTY_DECK or view.current_card is None:
        return "  This deck has no cards."

    card = view.current_card
    flags = []
    if view.shuffle_enabled:
        flags.append("shuffle")
    if view.active_filter is not None:
        flags.append(f"filter: {view.active_filter.label}")
    suffix = f"  ({', '.join(flags)})" if flags else ""
    lines.append(f"  [{view.position}/{view.total}] {card.level.label}{suffix}")
    lines.append(f"  Q: {card.question}")
    if view.is_revealed:
        lines.append(f"  A: {card.answer}")
        lines.append("  " + "  ".join(r.label for r in RATINGS))
    if view.break_reminder_pending:
        minutes = view.elapsed_seconds // 60
        lines.append(f"  You've been studying for {minutes} minutes. Time for a break? (d to dismiss)")
    if view.failed_writes:
        lines.append("  Some changes could not be saved. Check your connection.")
    return "\n".join(lines)


def format_stats(deck_name: str, counts: dict[CardLevel, int], progress: float) -> str:
    lines = [f"\n  {deck_name}"]
    for level in ALL_LEVELS:
        lines.append(f"  {level.label + ':':<20} {counts[level]}")
    lines.append(f"  {'Progress:':<20} {progress * 100:.0f}%")
    return "\n".join(lines)


async def _ask(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


async def _confirm(prompt: str) -> bool:
    return (await _ask(prompt)).strip().lower() in ("y", "yes")


async def _handle_end_of_deck(study: StudySession, result: NavResult) -> None:
    if result is NavResult.EXHAUSTED and await _confirm("  End of deck. Restart? [y/N] "):
        study.restart()


async def apply_command(study: StudySession, command: str, argument: str) -> bool:
    """Run one study-loop command. Returns False when the learner quits."""
    if command in ("q", "quit"):
        return False
    if command == "reveal":
        study.reveal()
    elif command == "rate":
        result = study.rate(RATING_SHORTCUTS[argument])
        await _handle_end_of_deck(study, result)
    elif command == "n":
        await _handle_end_of_deck(study, study.next())
    elif command == "p":
        study.prev()
    elif command == "g":
        if not argument.isdigit() or not study.goto(int(argument)):
            print(f"  No card {argument!r} in this order (1-{len(study.order)}).")
    elif command == "s":
        enabled = study.toggle_shuffle()
        print(f"  Shuffle {'on' if enabled else 'off'}.")
    elif command == "f":
        level = CardLevel.parse(argument) if argument else None
        study.select_filter(level)
    elif command == "r":
        if await _confirm("  Reset all progress to 'Nowe'? [y/N] "):
            study.reset_progress()
    elif command == "d":
        study.dismiss_break_reminder()
    else:
        print(HELP)
    return True


async def cmd_import(args: argparse.Namespace) -> None:
    """Create a deck from a text or JSON file."""
    await ensure_db()
    path = Path(args.file)
    try:
        content = path.read_text(encoding="utf-8")
        if path.suffix.lower() == ".json":
            sources = read_json_decks(json.loads(content), args.name or path.stem)
        else:
            sources = [(args.name or path.stem, parse_questions(content))]
    except (OSError, ValueError) as exc:
        # JSONDecodeError is a ValueError
        print(f"  Could not read {path}: {exc}")
        return

    async with async_session() as db:
        for name, drafts in sources:
            try:
                deck = await repository.create_deck(db, args.owner, name, drafts)
            except StudyError as exc:
                print(f"  {name}: {exc}")
                continue
            print(f"  Created deck '{deck.name}' ({len(deck.cards)} cards), id={deck.id}")


def read_json_decks(data: object, default_name: str) -> list[tuple[str, list[CardDraft]]]:
    """Pull (name, drafts) pairs out of an export file or a bare card list.

    A single deck takes ``default_name``; several keep their exported names.
    """
    if isinstance(data, list):
        return [(default_name, drafts_from_structured(data))]
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object or list of cards")
    if "decks" not in data:
        return [(default_name, drafts_from_structured(data.get("cards", [])))]
    decks = data["decks"]
    if not isinstance(decks, list) or not all(isinstance(deck, dict) for deck in decks):
        raise ValueError("'decks' must be a list of deck objects")
    if len(decks) == 1:
        return [(default_name, drafts_from_structured(decks[0].get("cards", [])))]
    return [
        (deck.get("name") or default_name, drafts_from_structured(deck.get("cards", [])))
        for deck in decks
    ]


async def cmd_decks(args: argparse.Namespace) -> None:
    await ensure_db()
    async with async_session() as db:
        decks = await repository.list_decks(db, args.owner)
    if not decks:
        print("\n  No decks yet. Import one with: python -m flashdeck import FILE\n")
        return
    print()
    for deck in decks:
        stats = summarize(deck)
        print(f"  {deck.id}  {deck.name:<30} {stats.total:>4} cards  {stats.progress * 100:>3.0f}%")
    print()


async def cmd_study(args: argparse.Namespace) -> None:
    """Run an interactive study session."""
    try:
        level_filter = CardLevel.parse(args.filter) if args.filter else None
    except ValueError as exc:
        print(f"  {exc}")
        return

    await ensure_db()
    async with async_session() as db:
        try:
            deck = await repository.load_deck(db, args.deck_id)
        except StudyError as exc:
            print(f"  {exc}")
            return

    study = StudySession(
        deck,
        shuffle=args.shuffle,
        level_filter=level_filter,
        gateway=SqlDeckGateway(async_session, deck.id),
    )
    stop = asyncio.Event()
    clock_task = asyncio.create_task(run_clock(study.clock, stop))
    flushes: set[asyncio.Task] = set()

    print(f"\n  Studying '{deck.name}'\n")
    print(HELP)
    try:
        while True:
            print()
            print(render_view(study.view()))
            command, argument = parse_command(await _ask("\n  > "))
            try:
                if not await apply_command(study, command, argument):
                    break
            except EmptyFilterResult as exc:
                print(f"  {exc}. Use 'f' to clear the filter or 'q' to quit.")
            except (SessionStateError, ValueError) as exc:
                print(f"  {exc}")

            if study.writes.pending:
                task = asyncio.create_task(study.writes.flush())
                flushes.add(task)
                task.add_done_callback(flushes.discard)
    finally:
        stop.set()
        await clock_task
        study.close()
        await asyncio.gather(*flushes)
        await study.writes.flush()

    minutes, seconds = divmod(study.clock.elapsed_seconds, 60)
    print(f"\n  Session ended after {minutes}m {seconds:02d}s.")
    if study.writes.failed:
        print(f"  {len(study.writes.failed)} change(s) could not be saved.")
    print()


async def cmd_stats(args: argparse.Namespace) -> None:
    """Show per-level card counts for a deck."""
    await ensure_db()
    async with async_session() as db:
        try:
            deck = await repository.load_deck(db, args.deck_id)
        except StudyError as exc:
            print(f"  {exc}")
            return
    stats = summarize(deck)
    print(format_stats(deck.name, stats.counts, stats.progress))
    print()


async def cmd_reset(args: argparse.Namespace) -> None:
    await ensure_db()
    async with async_session() as db:
        try:
            await repository.reset_progress(db, args.deck_id)
        except StudyError as exc:
            print(f"  {exc}")
            return
    print("  Progress reset.")


async def cmd_export(args: argparse.Namespace) -> None:
    """Export all decks for backup or migration."""
    await ensure_db()
    async with async_session() as db:
        data = await repository.export_decks(db, args.owner)
    if not data["decks"]:
        print("  No decks to export.")
        return
    payload = json.dumps(data, ensure_ascii=False, indent=2)
    if args.output:
        Path(args.output).write_text(payload, encoding="utf-8")
        print(f"  Exported {len(data['decks'])} deck(s) to {args.output}")
    else:
        print(payload)


async def cmd_delete(args: argparse.Namespace) -> None:
    await ensure_db()
    async with async_session() as db:
        try:
            await repository.delete_deck(db, args.deck_id)
        except StudyError as exc:
            print(f"  {exc}")
            return
    print("  Deck deleted.")


def main() -> None:
    """Entry point for the Flashdeck CLI application."""
    parser = argparse.ArgumentParser(
        prog="flashdeck",
        description="Flashcard decks and study sessions",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--owner", default=settings.default_owner, help="Deck owner id")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # import
    import_parser = subparsers.add_parser("import", help="Create a deck from a file")
    import_parser.add_argument("file", help='Text file with "question | answer" lines, or a JSON export')
    import_parser.add_argument("-n", "--name", default="", help="Deck name (default: file name)")

    # decks
    subparsers.add_parser("decks", help="List your decks")

    # study
    study_parser = subparsers.add_parser("study", help="Start a study session")
    study_parser.add_argument("deck_id")
    study_parser.add_argument("--shuffle", action="store_true", help="Shuffle the cards")
    study_parser.add_argument("--filter", default="", help="Only study cards at this level")

    # stats
    stats_parser = subparsers.add_parser("stats", help="Show per-level card counts")
    stats_parser.add_argument("deck_id")

    # reset
    reset_parser = subparsers.add_parser("reset", help="Reset a deck's progress")
    reset_parser.add_argument("deck_id")

    # export
    export_parser = subparsers.add_parser("export", help="Export all decks as JSON")
    export_parser.add_argument("-o", "--output", default="", help="Output file (default: stdout)")

    # delete
    delete_parser = subparsers.add_parser("delete", help="Delete a deck")
    delete_parser.add_argument("deck_id")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return

    cmd_map = {
        "import": cmd_import,
        "decks": cmd_decks,
        "study": cmd_study,
        "stats": cmd_stats,
        "reset": cmd_reset,
        "export": cmd_export,
        "delete": cmd_delete,
    }

    asyncio.run(cmd_map[args.command](args))


if __name__ == "__main__":
    main()
