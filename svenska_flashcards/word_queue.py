"""Randomized, non-repeating draw order over the vocabulary."""
from __future__ import annotations

import logging
import random
from collections.abc import Iterable

from svenska_flashcards.errors import EmptyQueueError
from svenska_flashcards.models import Word

log = logging.getLogger("svenska_flashcards.queue")


def shuffle(words: Iterable[Word], rng: random.Random | None = None) -> list[Word]:
    """Return a new uniformly shuffled list (Fisher-Yates); *words* is untouched."""
    rng = rng or random
    shuffled = list(words)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class WordQueue:
    """Each word is drawn once per cycle; the order is reshuffled on exhaustion."""

    def __init__(self, words: Iterable[Word] = (), rng: random.Random | None = None):
        self._rng = rng or random.Random()
        self._words: list[Word] = list(words)
        self.order: list[Word] = shuffle(self._words, self._rng)
        self.pointer = 0
        self.reshuffles = 0

    def __len__(self) -> int:
        return len(self.order)

    @property
    def has_words(self) -> bool:
        return bool(self._words)

    @property
    def remaining(self) -> int:
        return len(self.order) - self.pointer

    def load(self, words: Iterable[Word]) -> None:
        """Replace the word set and start a fresh cycle."""
        self._words = list(words)
        self.order = shuffle(self._words, self._rng)
        self.pointer = 0

    def add(self, word: Word) -> None:
        """Add to the word set; it joins the draw order at the next reshuffle."""
        self._words.append(word)

    def reshuffle(self) -> None:
        self.order = shuffle(self._words, self._rng)
        self.pointer = 0
        self.reshuffles += 1
        log.debug("Reshuffled %d words (cycle %d)", len(self.order), self.reshuffles)

    def next(self) -> Word:
        if not self._words:
            raise EmptyQueueError("No words to draw from")
        if self.pointer >= len(self.order):
            self.reshuffle()
        word = self.order[self.pointer]
        self.pointer += 1
        return word

    def insert_at_cursor(self, word: Word) -> None:
        """Make *word* the very next draw without disturbing drawn order."""
        self.order.insert(self.pointer, word)
        self._words.append(word)
