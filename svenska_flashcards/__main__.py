"""CLI entry point for svenska-flashcards.

Usage:
  python -m svenska_flashcards serve [--port PORT] [--host HOST] [--no-auto-import]
  python -m svenska_flashcards stop
  python -m svenska_flashcards restart [--port PORT]
  python -m svenska_flashcards status
  python -m svenska_flashcards import
  python -m svenska_flashcards stats
  python -m svenska_flashcards study [--proxy URL]
"""
from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from svenska_flashcards.config import Settings
    from svenska_flashcards.session import Session

PID_FILE = Path(__file__).resolve().parent.parent / ".server.pid"

STUDY_HELP = """\
  Enter  reveal the translation, then move on to a new word
  p / n  previous / next word
  e      show examples (again for more)
  l      listen to the word
  1-9    listen to an example
  + WORD add your own word
  q      quit"""


def main():
    args = sys.argv[1:]
    command = args[0] if args else "study"

    if command == "serve":
        _serve(args[1:])
    elif command == "stop":
        _stop()
    elif command == "restart":
        _restart(args[1:])
    elif command == "status":
        _status()
    elif command == "import":
        _import_vocab()
    elif command == "stats":
        _stats()
    elif command == "study":
        _study(args[1:])
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, stop, restart, status, import, stats, study")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _read_pid() -> int | None:
    """Read PID from file, return None if stale or missing."""
    if not PID_FILE.exists():
        return None
    try:
        pid = int(PID_FILE.read_text().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None


def _stop() -> bool:
    """Stop a running server. Returns True if a server was stopped."""
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
        return False
    try:
        os.kill(pid, signal.SIGTERM)
        print(f"Stopped server (PID {pid}).")
        return True
    except ProcessLookupError:
        print("Server was not running (stale PID file removed).")
        return False
    finally:
        PID_FILE.unlink(missing_ok=True)


def _status():
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
    else:
        print(f"Server is running (PID {pid}).")


def _restart(args: list[str]):
    import time
    _stop()
    time.sleep(1)
    _serve(args)


def _serve(args: list[str]):
    import uvicorn

    existing = _read_pid()
    if existing is not None:
        print(f"Server already running (PID {existing}). Use 'restart' or 'stop' first.")
        sys.exit(1)

    if "--no-auto-import" in args:
        os.environ["SVENSKA_NO_AUTO_IMPORT"] = "1"

    port = int(_parse_flag(args, "--port", "3000"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    PID_FILE.write_text(str(os.getpid()))

    print(f"Flashcard backend on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    try:
        uvicorn.run(
            "svenska_flashcards.app:app",
            host=host,
            port=port,
            reload=False,
            timeout_graceful_shutdown=5,
        )
    finally:
        PID_FILE.unlink(missing_ok=True)
        os.environ.pop("SVENSKA_NO_AUTO_IMPORT", None)


def _import_vocab():
    from svenska_flashcards.app import import_vocab_files
    from svenska_flashcards.config import load_settings
    from svenska_flashcards.db import Database

    settings = load_settings()
    db = Database(settings.db_full_path)
    files = settings.resolved_vocab_files()
    if not files:
        print(f"No vocabulary files found in {settings.data_dir}")
    n = import_vocab_files(db, settings)
    print(f"Imported {n} new words; {db.get_word_count()} words in DB")
    db.close()


def _stats():
    from svenska_flashcards.config import load_settings
    from svenska_flashcards.db import Database

    settings = load_settings()
    db = Database(settings.db_full_path)
    stats = db.get_stats()

    print("Svenska Flashcards Stats")
    print("=" * 40)
    print(f"Total words:        {stats['total_words']}")
    print(f"Words seen:         {stats['words_seen']}")
    print(f"With examples:      {stats['words_with_examples']}")
    print(f"With speech:        {stats['words_with_speech']}")
    print(f"Total reads:        {stats['total_reads']}")
    db.close()


# ── Interactive study ─────────────────────────────────────────────────────

def _study(args: list[str]):
    from svenska_flashcards.config import load_settings

    logging.basicConfig(level=logging.WARNING, format="%(name)s | %(message)s")
    settings = load_settings()
    settings.proxy_url = _parse_flag(args, "--proxy", settings.proxy_url)
    try:
        asyncio.run(_study_loop(settings))
    except KeyboardInterrupt:
        pass


def _alert(message: str) -> None:
    print(f"\n!! {message}\n")


def _render(session: Session) -> None:
    from svenska_flashcards.session import ExamplesState

    word = session.current_word
    if word is None:
        print("\n(no words yet: is the backend running and vocabulary imported?)")
        return
    position = f"{session.cursor + 1}/{len(session.history)}"
    print(f"\n[{position}]  {word.original}")
    print(f"        {word.translation if session.revealed else '…'}")
    if session.examples_state is ExamplesState.SHOWN:
        for i, ex in enumerate(session.examples, 1):
            line = f"  {i}. {ex.swedish}"
            if session.revealed:
                line += f"  ({ex.english})"
            print(line)


async def _study_loop(settings: Settings) -> None:
    from svenska_flashcards.session import create_session

    session = create_session(settings, notify=_alert)
    await session.start()
    print(STUDY_HELP)
    try:
        while True:
            _render(session)
            raw = (await asyncio.to_thread(input, "> ")).strip()
            cmd = raw.lower()
            if cmd in ("q", "quit", "exit"):
                break
            elif cmd == "":
                await session.on_word_activate()
            elif cmd == "p":
                session.go_previous()
            elif cmd == "n":
                session.go_next()
            elif cmd == "e":
                await session.generate_examples()
            elif cmd == "l":
                await session.play_word()
            elif cmd.isdigit():
                await session.play_example(int(cmd) - 1)
            elif raw.startswith("+"):
                text = raw[1:].strip() or await asyncio.to_thread(input, "Swedish word: ")
                await session.submit_custom_word(text)
            else:
                print(STUDY_HELP)
    except EOFError:
        pass
    finally:
        await session.close()


if __name__ == "__main__":
    main()
