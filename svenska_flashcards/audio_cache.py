"""Session audio cache: local files, backend speech files, lazy synthesis.

A cache key is the subject's speech reference when it has one, otherwise
its text. Handles are either a local file path or the backend URL of a
stored speech file; remote handles are downloaded on first play and
replaced by the local copy.
"""
from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Union

from svenska_flashcards.audio import speech_filename
from svenska_flashcards.errors import FlashcardError, PlaybackError
from svenska_flashcards.models import Example, Word

if TYPE_CHECKING:
    from svenska_flashcards.playback import AudioPlayer
    from svenska_flashcards.proxy_client import ProxyClient

log = logging.getLogger("svenska_flashcards.audio")

Subject = Union[Word, Example]


class CacheStore(ABC):
    @abstractmethod
    def resolve(self, key: str) -> str | None:
        ...

    @abstractmethod
    def store(self, key: str, handle: str) -> None:
        ...


class MemoryCacheStore(CacheStore):
    """Unbounded for the lifetime of the session."""

    def __init__(self):
        self._entries: dict[str, str] = {}

    def resolve(self, key: str) -> str | None:
        return self._entries.get(key)

    def store(self, key: str, handle: str) -> None:
        self._entries[key] = handle

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _is_remote(handle: str) -> bool:
    return handle.startswith(("http://", "https://"))


class AudioCache:
    def __init__(
        self,
        client: ProxyClient,
        player: AudioPlayer,
        store: CacheStore | None = None,
        cache_dir: Path | None = None,
    ):
        self.client = client
        self.player = player
        self.store = store or MemoryCacheStore()
        self._owns_dir = cache_dir is None
        self.cache_dir = cache_dir or Path(tempfile.mkdtemp(prefix="svenska-audio-"))
        self._play_seq = 0
        self._background: set[asyncio.Task] = set()

    def resolve(self, key: str) -> str | None:
        return self.store.resolve(key)

    def preload(self, subject: Subject) -> None:
        """Register the backend file of an already-synthesized subject.

        Subjects without a speech reference are left for :meth:`play`, so
        browsing never pays for synthesis.
        """
        if not subject.speech_ref:
            return
        url = self.client.speech_url(subject.speech_ref)
        for key in (subject.speech_ref, subject.text):
            if self.store.resolve(key) is None:
                self.store.store(key, url)

    async def play(self, subject: Subject, owner: Word | None = None) -> bool:
        """Play *subject*, preempting whatever is playing.

        Returns False when a later play() superseded this one before its
        audio was ready. Raises :class:`PlaybackError` on any failure.
        """
        self.player.stop()
        self._play_seq += 1
        seq = self._play_seq
        try:
            path = await self._materialize(subject, owner)
        except (FlashcardError, OSError) as e:
            raise PlaybackError(f"Could not load audio for {subject.text!r}: {e}") from e
        if seq != self._play_seq:
            log.debug("Playback of %r superseded", subject.text)
            return False
        await self.player.start(path)
        return True

    async def _materialize(self, subject: Subject, owner: Word | None) -> Path:
        handle = self.store.resolve(subject.cache_key())
        if handle is None and subject.speech_ref:
            self.preload(subject)
            handle = self.store.resolve(subject.cache_key())

        if handle is not None and not _is_remote(handle):
            return Path(handle)

        if handle is not None:
            filename = handle.rsplit("/", 1)[-1]
            data = await self.client.fetch_speech(filename)
            path = self._write(filename, data)
            self.store.store(filename, str(path))
            self.store.store(subject.text, str(path))
            return path

        data, filename = await self.client.synthesize(subject.text)
        path = self._write(filename or speech_filename(subject.text), data)
        self.store.store(subject.text, str(path))
        if filename:
            self.store.store(filename, str(path))
            if subject.speech_ref != filename:
                subject.speech_ref = filename
                if owner is not None and owner.id:
                    self._spawn(self._write_back(owner))
        return path

    def _write(self, filename: str, data: bytes) -> Path:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self.cache_dir / Path(filename).name
        path.write_bytes(data)
        return path

    async def _write_back(self, owner: Word) -> None:
        try:
            await self.client.update_word(
                owner.id, owner.original, owner.translation, owner.examples,
                speech=owner.speech_ref,
            )
            log.info("Saved speech reference for %r", owner.original)
        except Exception as e:
            log.warning("Speech write-back for %r failed: %s", owner.original, e)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self) -> None:
        self.player.stop()
        await self.drain()
        if self._owns_dir:
            shutil.rmtree(self.cache_dir, ignore_errors=True)
