"""Tests for the session audio cache and playback preemption."""
from __future__ import annotations

import asyncio

import pytest

from svenska_flashcards.audio import speech_filename
from svenska_flashcards.audio_cache import AudioCache, MemoryCacheStore
from svenska_flashcards.errors import PlaybackError, ProviderError
from svenska_flashcards.models import Example, Word


class TestMemoryCacheStore:
    def test_resolve_missing(self):
        store = MemoryCacheStore()
        assert store.resolve("hund") is None
        assert "hund" not in store

    def test_store_and_resolve(self):
        store = MemoryCacheStore()
        store.store("hund", "/tmp/a.mp3")
        assert store.resolve("hund") == "/tmp/a.mp3"
        assert len(store) == 1


class TestPreload:
    def test_registers_speech_ref_under_both_keys(self, audio_cache):
        word = Word("hund", "dog", id="w1", speech_ref="aaaaaaaaaaaaaaaa.mp3")
        audio_cache.preload(word)
        url = "http://proxy.test/api/speech/aaaaaaaaaaaaaaaa.mp3"
        assert audio_cache.resolve("aaaaaaaaaaaaaaaa.mp3") == url
        assert audio_cache.resolve("hund") == url

    def test_without_speech_ref_is_noop(self, audio_cache, backend):
        audio_cache.preload(Example("Hunden sover.", "The dog sleeps."))
        assert len(audio_cache.store) == 0
        assert backend.synth_calls == []

    def test_keeps_existing_local_entry(self, audio_cache):
        audio_cache.store.store("hund", "/local/hund.mp3")
        audio_cache.preload(Word("hund", "dog", speech_ref="bbbbbbbbbbbbbbbb.mp3"))
        assert audio_cache.resolve("hund") == "/local/hund.mp3"


class TestPlay:
    @pytest.mark.asyncio
    async def test_miss_synthesizes_and_caches(self, audio_cache, backend, player):
        word = Word("hund", "dog", id="w1")

        assert await audio_cache.play(word, owner=word)
        await audio_cache.drain()

        filename = speech_filename("hund")
        assert backend.synth_calls == ["hund"]
        assert word.speech_ref == filename
        assert audio_cache.resolve("hund") == audio_cache.resolve(filename)
        assert player.current.read_bytes() == b"mp3:hund"
        assert backend.updates == [{"id": "w1", "examples": [], "speech": filename}]

    @pytest.mark.asyncio
    async def test_second_play_hits_cache(self, audio_cache, backend):
        word = Word("hund", "dog", id="w1")
        await audio_cache.play(word, owner=word)
        await audio_cache.play(word, owner=word)
        assert backend.synth_calls == ["hund"]

    @pytest.mark.asyncio
    async def test_stored_speech_is_fetched_not_synthesized(self, audio_cache, backend, player):
        word = Word("hund", "dog", id="w1", speech_ref="cccccccccccccccc.mp3")
        audio_cache.preload(word)

        await audio_cache.play(word, owner=word)

        assert backend.synth_calls == []
        assert backend.fetch_calls == ["cccccccccccccccc.mp3"]
        assert player.current.read_bytes() == b"stored:cccccccccccccccc.mp3"
        # downloaded copy replaces the remote handle
        assert not audio_cache.resolve("cccccccccccccccc.mp3").startswith("http")

    @pytest.mark.asyncio
    async def test_speech_ref_without_preload(self, audio_cache, backend):
        word = Word("hund", "dog", speech_ref="dddddddddddddddd.mp3")
        await audio_cache.play(word)
        assert backend.fetch_calls == ["dddddddddddddddd.mp3"]
        assert backend.synth_calls == []

    @pytest.mark.asyncio
    async def test_no_write_back_without_persisted_owner(self, audio_cache, backend):
        example = Example("Hunden sover.", "The dog sleeps.")
        await audio_cache.play(example, owner=Word("hund", "dog"))
        await audio_cache.drain()
        assert example.speech_ref == speech_filename("Hunden sover.")
        assert backend.updates == []

    @pytest.mark.asyncio
    async def test_write_back_failure_is_only_logged(self, audio_cache, backend, player):
        backend.update_error = ProviderError(500)
        word = Word("hund", "dog", id="w1")
        assert await audio_cache.play(word, owner=word)
        await audio_cache.drain()
        assert player.is_playing

    @pytest.mark.asyncio
    async def test_generation_failure_raises_playback_error(self, audio_cache, backend, player):
        backend.synth_error = ProviderError(502, "TTS error")
        with pytest.raises(PlaybackError):
            await audio_cache.play(Word("hund", "dog"))
        assert not player.is_playing
        assert len(audio_cache.store) == 0

    @pytest.mark.asyncio
    async def test_player_failure_raises_playback_error(self, audio_cache, player):
        player.fail = True
        with pytest.raises(PlaybackError):
            await audio_cache.play(Word("hund", "dog"))

    @pytest.mark.asyncio
    async def test_new_play_stops_current_stream(self, audio_cache, player):
        await audio_cache.play(Word("hund", "dog"))
        await audio_cache.play(Word("katt", "cat"))
        assert player.events == [
            ("start", speech_filename("hund")),
            ("stop", speech_filename("hund")),
            ("start", speech_filename("katt")),
        ]

    @pytest.mark.asyncio
    async def test_slow_earlier_play_never_starts(self, audio_cache, backend, player):
        backend.synth_gates["hund"] = asyncio.Event()
        first = asyncio.create_task(audio_cache.play(Word("hund", "dog")))
        await asyncio.sleep(0)

        assert await audio_cache.play(Word("katt", "cat"))
        backend.synth_gates["hund"].set()

        assert await first is False
        assert player.events == [("start", speech_filename("katt"))]
        assert player.current.name == speech_filename("katt")


class TestClose:
    @pytest.mark.asyncio
    async def test_close_removes_owned_directory(self, backend, player):
        cache = AudioCache(backend, player)
        await cache.play(Word("hund", "dog"))
        assert cache.cache_dir.exists()
        await cache.close()
        assert not cache.cache_dir.exists()
        assert not player.is_playing

    @pytest.mark.asyncio
    async def test_close_keeps_given_directory(self, audio_cache):
        await audio_cache.play(Word("hund", "dog"))
        await audio_cache.close()
        assert audio_cache.cache_dir.exists()
