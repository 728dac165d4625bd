"""Flashcard session: current word, reveal state, examples and history.

All mutable state of one study session lives on a :class:`Session`.
Operations are plain methods meant to be bound to whatever input surface
drives the session (the CLI ``study`` loop, tests).

Everything runs on one event loop. Example generation is the only
long-running foreground operation; while it is in flight the examples
state is ``LOADING`` and navigation, word activation, custom words and
further generation requests are ignored. Read-count increments and audio
write-backs run as detached tasks whose failures are only logged.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from svenska_flashcards.audio_cache import AudioCache
from svenska_flashcards.errors import FlashcardError, PlaybackError
from svenska_flashcards.examples import ExampleService, merge_examples
from svenska_flashcards.models import Example, HistoryEntry, Word
from svenska_flashcards.word_queue import WordQueue

if TYPE_CHECKING:
    from svenska_flashcards.config import Settings
    from svenska_flashcards.playback import AudioPlayer
    from svenska_flashcards.proxy_client import ProxyClient
    from svenska_flashcards.word_cache import LocalWordCache

log = logging.getLogger("svenska_flashcards.session")
_bg_log = logging.getLogger("svenska_flashcards.bg")

PROXY_HINT = "Make sure your proxy server is running."


class ExamplesState(Enum):
    NONE = "none"
    LOADING = "loading"
    SHOWN = "shown"


@dataclass
class NavigationState:
    history: list[HistoryEntry] = field(default_factory=list)
    cursor: int = -1

    @property
    def current(self) -> HistoryEntry | None:
        if 0 <= self.cursor < len(self.history):
            return self.history[self.cursor]
        return None

    @property
    def at_live_edge(self) -> bool:
        return self.cursor == len(self.history) - 1

    def push(self, entry: HistoryEntry) -> None:
        """Append after the cursor, dropping any forward branch."""
        del self.history[self.cursor + 1:]
        self.history.append(entry)
        self.cursor = len(self.history) - 1

    def back(self) -> HistoryEntry | None:
        if self.cursor <= 0:
            return None
        self.cursor -= 1
        return self.history[self.cursor]

    def forward(self) -> HistoryEntry | None:
        if self.at_live_edge:
            return None
        self.cursor += 1
        return self.history[self.cursor]


def _log_notify(message: str) -> None:
    log.warning("User alert: %s", message)


class Session:
    def __init__(
        self,
        client: ProxyClient,
        audio: AudioCache,
        queue: WordQueue | None = None,
        example_service: ExampleService | None = None,
        word_cache: LocalWordCache | None = None,
        notify: Callable[[str], None] | None = None,
        source_lang: str = "sv",
        target_lang: str = "en",
    ):
        self.client = client
        self.audio = audio
        self.queue = queue if queue is not None else WordQueue()
        self.example_service = example_service or ExampleService(client)
        self.word_cache = word_cache
        self.notify = notify or _log_notify
        self.source_lang = source_lang
        self.target_lang = target_lang

        self.nav = NavigationState()
        self.current_word: Word | None = None
        self.revealed = False
        self.examples_state = ExamplesState.NONE
        self.examples: list[Example] = []
        self._background: set[asyncio.Task] = set()

    # ── Derived state ─────────────────────────────────────────────────────

    @property
    def history(self) -> list[HistoryEntry]:
        return self.nav.history

    @property
    def cursor(self) -> int:
        return self.nav.cursor

    @property
    def controls_enabled(self) -> bool:
        return self.examples_state is not ExamplesState.LOADING

    @property
    def can_go_previous(self) -> bool:
        return self.nav.cursor > 0 and self.controls_enabled

    # ── Startup ───────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Show a word as early as possible, then refresh the vocabulary."""
        self._spawn(self._wake_backend())

        cached = self.word_cache.load() if self.word_cache else None
        if cached:
            self.queue.load(cached)
            self.display_new_word()

        try:
            fresh = await self.client.get_all_words()
        except FlashcardError as e:
            log.warning("Could not fetch words: %s", e)
            return
        log.info("Fetched %d words", len(fresh))
        if self.word_cache and fresh:
            self.word_cache.save(fresh)
        if not cached and fresh:
            self.queue.load(fresh)
            self.display_new_word()
        elif cached:
            known = {w.original for w in cached}
            for word in fresh:
                if word.original not in known:
                    self.queue.add(word)

    # ── Display ───────────────────────────────────────────────────────────

    def display_word(self, word: Word, add_to_history: bool = True) -> None:
        self.current_word = word
        self.revealed = False
        self.examples_state = ExamplesState.NONE
        self.examples = []

        if add_to_history:
            self.nav.push(HistoryEntry(word=word))
            if word.id:
                self._spawn(self._increment_read_count(word))
        else:
            entry = self.nav.current
            if entry is not None and entry.examples:
                self.examples = list(entry.examples)
                self.examples_state = ExamplesState.SHOWN
                for example in self.examples:
                    self.audio.preload(example)

        self.audio.preload(word)

    def display_new_word(self) -> Word | None:
        if not self.queue.has_words:
            log.warning("No words loaded yet")
            return None
        word = self.queue.next()
        self.display_word(word, add_to_history=True)
        return word

    # ── User actions ──────────────────────────────────────────────────────

    async def on_word_activate(self) -> None:
        if self.current_word is None or not self.controls_enabled:
            return
        if not self.revealed:
            self.revealed = True
            await self.play_word()
        else:
            self.display_new_word()

    def go_previous(self) -> bool:
        if not self.controls_enabled:
            return False
        entry = self.nav.back()
        if entry is None:
            return False
        self.display_word(entry.word, add_to_history=False)
        return True

    def go_next(self) -> bool:
        if not self.controls_enabled:
            return False
        entry = self.nav.forward()
        if entry is not None:
            self.display_word(entry.word, add_to_history=False)
        else:
            self.display_new_word()
        return True

    async def generate_examples(self) -> None:
        word = self.current_word
        if word is None or not self.controls_enabled:
            return

        if self.examples_state is not ExamplesState.SHOWN and word.examples:
            # Already generated in an earlier session.
            self.examples = list(word.examples)
            self.examples_state = ExamplesState.SHOWN
            for example in self.examples:
                self.audio.preload(example)
            return

        previous_state = self.examples_state
        shown = list(self.examples) if previous_state is ExamplesState.SHOWN else []
        entry = self.nav.current
        self.examples_state = ExamplesState.LOADING
        try:
            generated = await self.example_service.fetch(word, shown)
            merged = merge_examples(generated, shown)

            word.examples = merged
            if entry is not None:
                entry.examples = list(merged)
            await self._persist_examples(word)
            for example in generated:
                self.audio.preload(example)

            if self.current_word is word:
                self.examples = list(merged)
                self.examples_state = ExamplesState.SHOWN
        except FlashcardError as e:
            log.error("Example generation for %r failed: %s", word.original, e)
            self.examples_state = previous_state
            self.notify(f"Failed to generate examples: {e}\n\n{PROXY_HINT}")
        finally:
            if self.examples_state is ExamplesState.LOADING:
                self.examples_state = previous_state

    async def play_word(self) -> bool:
        word = self.current_word
        if word is None:
            return False
        try:
            return await self.audio.play(word, owner=word)
        except PlaybackError as e:
            log.error("Word playback failed: %s", e)
            self.notify(f"Failed to play audio: {e}\n\n{PROXY_HINT}")
            return False

    async def play_example(self, index: int) -> bool:
        if not 0 <= index < len(self.examples):
            return False
        try:
            return await self.audio.play(self.examples[index], owner=self.current_word)
        except PlaybackError as e:
            log.error("Example playback failed: %s", e)
            self.notify(f"Failed to play example audio: {e}\n\n{PROXY_HINT}")
            return False

    async def submit_custom_word(self, text: str) -> Word | None:
        text = text.strip()
        if not text:
            self.notify("Vänligen fyll i ett svenskt ord / Please enter a Swedish word")
            return None
        if not self.controls_enabled:
            return None

        try:
            translation = await self.client.translate(text, self.source_lang, self.target_lang)
            word = await self.client.create_word(text, translation)
        except FlashcardError as e:
            log.error("Custom word %r failed: %s", text, e)
            self.notify(f"Failed to fetch translation: {e}\n\n{PROXY_HINT}")
            return None

        self.queue.insert_at_cursor(word)
        if not self.controls_enabled:
            # Examples started loading meanwhile; the word is simply up next.
            log.info("Queued %r as the next word", word.original)
            return word
        self.display_word(self.queue.next(), add_to_history=True)
        return word

    # ── Background work ───────────────────────────────────────────────────

    async def _persist_examples(self, word: Word) -> None:
        if not word.id:
            return
        try:
            await self.client.update_word(
                word.id, word.original, word.translation, word.examples,
                speech=word.speech_ref,
            )
        except FlashcardError as e:
            log.warning("Could not save examples for %r: %s", word.original, e)

    async def _increment_read_count(self, word: Word) -> None:
        try:
            await self.client.increment_read_count(word.id)
        except Exception as e:
            _bg_log.warning("Read count for %r not recorded: %s", word.original, e)

    async def _wake_backend(self) -> None:
        try:
            await self.client.health()
        except Exception as e:
            _bg_log.warning("Backend health check failed: %s", e)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for detached tasks (read counts, write-backs) to finish."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        await self.audio.drain()

    async def close(self) -> None:
        await self.drain()
        await self.audio.close()


def create_session(
    settings: Settings,
    notify: Callable[[str], None] | None = None,
    player: AudioPlayer | None = None,
    client: ProxyClient | None = None,
) -> Session:
    from svenska_flashcards.playback import SubprocessPlayer
    from svenska_flashcards.proxy_client import ProxyClient
    from svenska_flashcards.word_cache import LocalWordCache

    client = client or ProxyClient(settings.proxy_url, timeout=settings.request_timeout)
    audio = AudioCache(client, player or SubprocessPlayer(settings.audio_player))
    return Session(
        client,
        audio,
        word_cache=LocalWordCache(settings.word_cache_full_path),
        notify=notify,
        source_lang=settings.source_lang,
        target_lang=settings.target_lang,
    )
