from __future__ import annotations

import json
import logging
from pathlib import Path

from svenska_flashcards.models import Word, word_from_dict

log = logging.getLogger("svenska_flashcards.word_cache")


class LocalWordCache:
    """Last-known vocabulary on disk, so a session can start before the backend answers."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> list[Word] | None:
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text())
            words = [word_from_dict(w) for w in raw]
        except (OSError, ValueError, TypeError, AttributeError) as e:
            log.warning("Ignoring unreadable word cache %s: %s", self.path, e)
            return None
        return words or None

    def save(self, words: list[Word]) -> None:
        try:
            self.path.write_text(
                json.dumps([w.to_dict() for w in words], ensure_ascii=False, indent=1)
            )
        except OSError as e:
            log.warning("Could not save word cache %s: %s", self.path, e)
