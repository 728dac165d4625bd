"""Tests for the FastAPI application routes."""
from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from svenska_flashcards import app as app_module
from svenska_flashcards.app import app, import_vocab_files
from svenska_flashcards.audio import speech_filename, text_hash
from svenska_flashcards.config import Settings
from svenska_flashcards.db import Database
from svenska_flashcards.models import Word
from svenska_flashcards.proxy_client import SPEECH_FILE_HEADER


class FakeLLM:
    """Returns example JSON for generation prompts and a bare word otherwise."""

    def __init__(self):
        self.response = json.dumps([
            {"swedish": "Hunden springer.", "english": "The dog runs."},
            {"swedish": "Jag har en hund.", "english": "I have a dog."},
        ])
        self.error: Exception | None = None
        self.prompts: list[str] = []

    async def generate(self, prompt: str, temperature: float = 0.7, system: str | None = None) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        if system is None:
            return "ice cream"
        return self.response

    def name(self) -> str:
        return "fake-llm"


class FakeTTS:
    def __init__(self):
        self.calls: list[str] = []
        self.error: Exception | None = None

    async def synthesize(self, text: str, output_path: Path) -> Path:
        self.calls.append(text)
        if self.error:
            raise self.error
        output_path.write_bytes(b"ID3" + text.encode())
        return output_path

    def name(self) -> str:
        return "fake-tts"


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_tts():
    return FakeTTS()


@pytest.fixture
def test_app(tmp_path, fake_llm, fake_tts):
    """Set up test app with temporary database and settings."""
    db = Database(tmp_path / "test.db")
    settings = Settings(
        db_path=str(tmp_path / "test.db"),
        audio_cache_dir=str(tmp_path / "speech"),
        vocab_files=[],
    )

    # Set globals BEFORE creating TestClient so startup() is a no-op
    app_module._db = db
    app_module._settings = settings

    with patch("svenska_flashcards.app.save_settings"), \
         patch("svenska_flashcards.app._get_llm", return_value=fake_llm), \
         patch("svenska_flashcards.app._get_tts", return_value=fake_tts):
        client = TestClient(app, raise_server_exceptions=False)
        yield client, db, settings
        client.close()

    db.close()
    app_module._db = None
    app_module._settings = None


@pytest.fixture
def test_app_with_data(test_app):
    client, db, settings = test_app
    db.import_words([Word("hund", "dog"), Word("katt", "cat")], "basics.csv")
    return client, db, settings


class TestHealth:
    def test_health(self, test_app):
        client, _, _ = test_app
        assert client.get("/health").json() == {"status": "ok"}


class TestWordsAPI:
    def test_list(self, test_app_with_data):
        client, _, _ = test_app_with_data
        words = client.get("/api/words").json()["words"]
        assert {w["original"] for w in words} == {"hund", "katt"}
        assert all(w["id"] for w in words)

    def test_get_missing(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/words/nope").status_code == 404

    def test_create(self, test_app):
        client, db, _ = test_app
        resp = client.post("/api/words", json={"original": "glass", "translation": "ice cream"})
        assert resp.status_code == 200
        assert resp.json()["original"] == "glass"
        assert db.get_word_count() == 1

    def test_create_missing_fields(self, test_app):
        client, _, _ = test_app
        assert client.post("/api/words", json={"original": "glass"}).status_code == 400

    def test_create_rejects_non_object(self, test_app):
        client, _, _ = test_app
        assert client.post("/api/words", json=["glass"]).status_code == 400

    def test_update_examples_and_speech(self, test_app_with_data):
        client, db, _ = test_app_with_data
        word = db.get_word_by_original("hund")
        speech = speech_filename("hund")
        resp = client.put(f"/api/words/{word['id']}", json={
            "original": "hund",
            "translation": "dog",
            "examples": [{"swedish": "Hunden sover.", "english": "The dog sleeps."}],
            "speech": speech,
        })
        assert resp.status_code == 200
        stored = db.get_word(word["id"])
        assert stored["examples"][0]["swedish"] == "Hunden sover."
        assert stored["speech"] == speech

    def test_update_rejects_bad_speech_name(self, test_app_with_data):
        client, db, _ = test_app_with_data
        word = db.get_word_by_original("hund")
        resp = client.put(f"/api/words/{word['id']}", json={
            "original": "hund", "translation": "dog", "speech": "../../etc/passwd",
        })
        assert resp.status_code == 400

    def test_update_missing(self, test_app):
        client, _, _ = test_app
        resp = client.put("/api/words/nope", json={"original": "a", "translation": "b"})
        assert resp.status_code == 404

    def test_delete(self, test_app_with_data):
        client, db, _ = test_app_with_data
        word = db.get_word_by_original("katt")
        assert client.delete(f"/api/words/{word['id']}").status_code == 200
        assert client.delete(f"/api/words/{word['id']}").status_code == 404

    def test_increment_read(self, test_app_with_data):
        client, db, _ = test_app_with_data
        word = db.get_word_by_original("hund")
        client.post(f"/api/words/{word['id']}/increment-read")
        resp = client.post(f"/api/words/{word['id']}/increment-read")
        assert resp.json() == {"id": word["id"], "read_count": 2}

    def test_increment_read_missing(self, test_app):
        client, _, _ = test_app
        assert client.post("/api/words/nope/increment-read").status_code == 404

    def test_stats(self, test_app_with_data):
        client, _, _ = test_app_with_data
        stats = client.get("/api/stats").json()
        assert stats["total_words"] == 2
        assert stats["words_seen"] == 0


class TestImport:
    def test_import_endpoint(self, test_app, tmp_path):
        client, _, settings = test_app
        vocab = tmp_path / "basics.csv"
        vocab.write_text("swedish,english\nhund,dog\nkatt,cat\n", encoding="utf-8")
        settings.vocab_files = [str(vocab)]

        resp = client.post("/api/import")
        assert resp.json() == {"words_imported": 2, "total_words": 2}

    def test_only_changed_skips_unmodified_files(self, tmp_db, tmp_path):
        vocab = tmp_path / "basics.csv"
        vocab.write_text("hund,dog\n", encoding="utf-8")
        settings = Settings(vocab_files=[str(vocab)])

        assert import_vocab_files(tmp_db, settings, only_changed=True) == 1
        tmp_db.delete_word(tmp_db.get_word_by_original("hund")["id"])
        assert import_vocab_files(tmp_db, settings, only_changed=True) == 0
        assert tmp_db.get_word_count() == 0

    def test_changed_file_keeps_word_identity(self, tmp_db, tmp_path):
        vocab = tmp_path / "basics.csv"
        vocab.write_text("hund,dgo\nkatt,cat\nhus,house\n", encoding="utf-8")
        settings = Settings(vocab_files=[str(vocab)])
        import_vocab_files(tmp_db, settings, only_changed=True)
        hund = tmp_db.get_word_by_original("hund")
        tmp_db.increment_read_count(hund["id"])

        vocab.write_text("hund,dog\nkatt,cat\nbok,book\n", encoding="utf-8")
        assert import_vocab_files(tmp_db, settings) == 1

        after = tmp_db.get_word_by_original("hund")
        assert after["id"] == hund["id"]
        assert after["read_count"] == 1
        assert after["translation"] == "dog"
        assert {w["original"] for w in tmp_db.get_all_words()} == {"hund", "katt", "bok"}

    def test_missing_files_skipped(self, tmp_db, tmp_path):
        settings = Settings(vocab_files=[str(tmp_path / "missing.csv")])
        assert import_vocab_files(tmp_db, settings) == 0


class TestGenerateExamples:
    def test_success(self, test_app, fake_llm):
        client, _, _ = test_app
        resp = client.post("/api/generate-examples", json={
            "swedishWord": "hund",
            "englishTranslation": "dog",
            "existingExamples": [{"swedish": "Hunden sover.", "english": "The dog sleeps."}],
            "wordId": "w1",
        })
        assert resp.status_code == 200
        assert [e["swedish"] for e in resp.json()["examples"]] == [
            "Hunden springer.", "Jag har en hund.",
        ]
        assert "Hunden sover." in fake_llm.prompts[0]

    def test_missing_fields(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/generate-examples", json={"swedishWord": "hund"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Missing required fields"

    def test_unparseable_output(self, test_app, fake_llm):
        client, _, _ = test_app
        fake_llm.response = "I cannot do that."
        resp = client.post("/api/generate-examples", json={
            "swedishWord": "hund", "englishTranslation": "dog",
        })
        assert resp.status_code == 500
        assert resp.json()["detail"] == "Failed to parse examples from LLM response"

    def test_provider_failure(self, test_app, fake_llm):
        client, _, _ = test_app
        fake_llm.error = RuntimeError("rate limited")
        resp = client.post("/api/generate-examples", json={
            "swedishWord": "hund", "englishTranslation": "dog",
        })
        assert resp.status_code == 502
        assert "rate limited" in resp.json()["detail"]


class TestTranslate:
    def test_success(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/translate", json={"text": "glass"})
        assert resp.json() == {"translation": "ice cream"}

    def test_empty_text(self, test_app):
        client, _, _ = test_app
        assert client.post("/api/translate", json={"text": "  "}).status_code == 400

    def test_provider_failure(self, test_app, fake_llm):
        client, _, _ = test_app
        fake_llm.error = RuntimeError("offline")
        assert client.post("/api/translate", json={"text": "glass"}).status_code == 502


class TestSpeech:
    def test_tts_returns_audio_and_filename(self, test_app, fake_tts):
        client, db, _ = test_app
        resp = client.post("/api/tts", json={"text": "hund"})
        assert resp.status_code == 200
        assert resp.content == b"ID3hund"
        assert resp.headers[SPEECH_FILE_HEADER] == speech_filename("hund")
        assert db.get_speech(text_hash("hund")) == speech_filename("hund")

    def test_tts_reuses_stored_file(self, test_app, fake_tts):
        client, _, _ = test_app
        client.post("/api/tts", json={"text": "hund"})
        client.post("/api/tts", json={"text": "hund"})
        assert fake_tts.calls == ["hund"]

    def test_tts_empty_text(self, test_app):
        client, _, _ = test_app
        assert client.post("/api/tts", json={"text": ""}).status_code == 400

    def test_tts_failure(self, test_app, fake_tts):
        client, _, _ = test_app
        fake_tts.error = RuntimeError("quota exceeded")
        resp = client.post("/api/tts", json={"text": "hund"})
        assert resp.status_code == 502
        assert "quota exceeded" in resp.json()["detail"]

    def test_fetch_stored_speech(self, test_app):
        client, _, _ = test_app
        name = client.post("/api/tts", json={"text": "katt"}).headers[SPEECH_FILE_HEADER]
        resp = client.get(f"/api/speech/{name}")
        assert resp.status_code == 200
        assert resp.content == b"ID3katt"

    def test_fetch_unknown_speech(self, test_app):
        client, _, _ = test_app
        assert client.get(f"/api/speech/{speech_filename('nope')}").status_code == 404

    def test_fetch_rejects_foreign_names(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/speech/config.json").status_code == 404


class TestSettingsAPI:
    def test_get(self, test_app):
        client, _, _ = test_app
        data = client.get("/api/settings").json()
        assert data["tts_provider"] == "edge-tts"
        assert len(data) == 16

    def test_update(self, test_app):
        client, _, settings = test_app
        resp = client.put("/api/settings", json={"llm_model": "gpt-4o", "bogus": 1})
        assert resp.json()["llm_model"] == "gpt-4o"
        assert settings.llm_model == "gpt-4o"
        assert not hasattr(settings, "bogus")
