"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import random
from pathlib import Path

import pytest

from svenska_flashcards.audio import speech_filename
from svenska_flashcards.audio_cache import AudioCache
from svenska_flashcards.db import Database
from svenska_flashcards.errors import PlaybackError
from svenska_flashcards.models import Example, Word
from svenska_flashcards.playback import AudioPlayer
from svenska_flashcards.session import Session
from svenska_flashcards.word_queue import WordQueue


class FakeBackend:
    """Stands in for ProxyClient: vocabulary, translation, examples, speech."""

    def __init__(self, words: list[Word] | None = None):
        self.words = list(words or [])
        self.words_error: Exception | None = None

        self.example_batches: list = []
        self.generate_error: Exception | None = None
        self.generate_gate: asyncio.Event | None = None
        self.generate_calls: list[dict] = []

        self.updates: list[dict] = []
        self.update_error: Exception | None = None
        self.read_counts: list[str] = []
        self.read_count_error: Exception | None = None

        self.created: list[Word] = []
        self.translate_error: Exception | None = None

        self.synth_calls: list[str] = []
        self.synth_error: Exception | None = None
        self.synth_gates: dict[str, asyncio.Event] = {}
        self.fetch_calls: list[str] = []
        self.health_calls = 0

    async def health(self) -> bool:
        self.health_calls += 1
        return True

    async def get_all_words(self) -> list[Word]:
        if self.words_error:
            raise self.words_error
        return list(self.words)

    async def create_word(self, original, translation, examples=None) -> Word:
        word = Word(original=original, translation=translation, id=f"new-{len(self.created) + 1}")
        self.created.append(word)
        return word

    async def update_word(self, word_id, original, translation, examples, speech=None) -> Word:
        if self.update_error:
            raise self.update_error
        self.updates.append({
            "id": word_id,
            "examples": [e.to_dict() for e in examples],
            "speech": speech,
        })
        return Word(original=original, translation=translation, id=word_id)

    async def increment_read_count(self, word_id) -> None:
        if self.read_count_error:
            raise self.read_count_error
        self.read_counts.append(word_id)

    async def translate(self, text, source_lang="sv", target_lang="en") -> str:
        if self.translate_error:
            raise self.translate_error
        return f"{text} (en)"

    async def generate_examples(self, word, translation, existing=None, word_id=None):
        self.generate_calls.append({
            "word": word,
            "existing": [e.swedish for e in existing or []],
            "word_id": word_id,
        })
        if self.generate_gate is not None:
            await self.generate_gate.wait()
        if self.generate_error:
            raise self.generate_error
        return self.example_batches.pop(0)

    def speech_url(self, filename: str) -> str:
        return f"http://proxy.test/api/speech/{filename}"

    async def synthesize(self, text: str):
        self.synth_calls.append(text)
        gate = self.synth_gates.get(text)
        if gate is not None:
            await gate.wait()
        if self.synth_error:
            raise self.synth_error
        return f"mp3:{text}".encode(), speech_filename(text)

    async def fetch_speech(self, filename: str) -> bytes:
        self.fetch_calls.append(filename)
        return f"stored:{filename}".encode()


class FakePlayer(AudioPlayer):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.current: Path | None = None
        self.events: list[tuple[str, str]] = []

    @property
    def is_playing(self) -> bool:
        return self.current is not None

    def stop(self) -> None:
        if self.current is not None:
            self.events.append(("stop", self.current.name))
        self.current = None

    async def start(self, path: Path) -> None:
        if self.fail:
            raise PlaybackError("could not decode audio")
        self.current = path
        self.events.append(("start", path.name))


@pytest.fixture
def sample_words():
    """A small vocabulary with backend ids."""
    return [
        Word("hund", "dog", id="w1"),
        Word("katt", "cat", id="w2"),
        Word("hus", "house", id="w3"),
        Word("bil", "car", id="w4"),
        Word("bok", "book", id="w5"),
    ]


@pytest.fixture
def sample_examples():
    return [
        Example("Hunden springer.", "The dog runs."),
        Example("Jag har en hund.", "I have a dog."),
        Example("Hunden sover.", "The dog sleeps."),
    ]


@pytest.fixture
def backend(sample_words):
    return FakeBackend(sample_words)


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def audio_cache(backend, player, tmp_path):
    return AudioCache(backend, player, cache_dir=tmp_path / "audio")


@pytest.fixture
def alerts():
    return []


@pytest.fixture
def session(backend, audio_cache, sample_words, alerts):
    queue = WordQueue(sample_words, rng=random.Random(7))
    return Session(backend, audio_cache, queue=queue, notify=alerts.append)


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()
