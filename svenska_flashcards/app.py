"""FastAPI backend: vocabulary store plus LLM and TTS proxy."""
from __future__ import annotations

import logging
import os

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from svenska_flashcards.audio import get_or_create_speech, is_speech_filename
from svenska_flashcards.config import Settings, load_settings, save_settings
from svenska_flashcards.db import Database
from svenska_flashcards.errors import MalformedResponseError
from svenska_flashcards.example_generator import generate_examples, translate
from svenska_flashcards.parsers.vocabulary_parser import parse_vocabulary_file
from svenska_flashcards.proxy_client import SPEECH_FILE_HEADER

app = FastAPI(title="Svenska Flashcards")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[SPEECH_FILE_HEADER],
)

# Global state (initialized in startup)
_db: Database | None = None
_settings: Settings | None = None

log = logging.getLogger("svenska_flashcards.api")


def get_db() -> Database:
    assert _db is not None
    return _db


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


def _get_llm():
    s = get_settings()
    if s.llm_provider == "openai":
        from svenska_flashcards.providers.llm_openai import OpenAIProvider
        return OpenAIProvider(model=s.llm_model)
    elif s.llm_provider == "anthropic":
        from svenska_flashcards.providers.llm_anthropic import AnthropicProvider
        return AnthropicProvider(model=s.llm_model)
    elif s.llm_provider == "ollama":
        from svenska_flashcards.providers.llm_ollama import OllamaProvider
        return OllamaProvider(base_url=s.ollama_url, model=s.llm_model)
    raise ValueError(f"Unknown LLM provider: {s.llm_provider}")


def _get_tts():
    s = get_settings()
    if s.tts_provider == "edge-tts":
        from svenska_flashcards.providers.tts_edge import EdgeTTSProvider
        return EdgeTTSProvider(voice=s.tts_voice)
    elif s.tts_provider == "elevenlabs":
        from svenska_flashcards.providers.tts_elevenlabs import ElevenLabsProvider
        return ElevenLabsProvider(voice_id=s.tts_voice, model_id=s.elevenlabs_model)
    raise ValueError(f"Unknown TTS provider: {s.tts_provider}")


def import_vocab_files(db: Database, settings: Settings, only_changed: bool = False) -> int:
    """Import CSV vocabulary files; with *only_changed*, skip files whose mtime is unchanged."""
    total = 0
    for vf in settings.resolved_vocab_files():
        if not vf.exists():
            continue
        mtime = vf.stat().st_mtime_ns
        if only_changed and db.get_file_mtime(str(vf)) == mtime:
            continue
        words = parse_vocabulary_file(vf)
        db.prune_source(vf.name, {w.original for w in words})
        n = db.import_words(words, source_file=vf.name)
        log.info("Imported %d words from %s", n, vf.name)
        total += n
        db.set_file_mtime(str(vf), mtime)
    return total


@app.on_event("startup")
async def startup():
    global _db, _settings
    if _db is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    _db = Database(_settings.db_full_path)
    if not os.environ.get("SVENSKA_NO_AUTO_IMPORT"):
        import_vocab_files(_db, _settings, only_changed=True)


@app.on_event("shutdown")
async def shutdown():
    if _db:
        _db.close()


async def _json_body(request: Request) -> dict:
    body = await request.json() if await request.body() else {}
    if not isinstance(body, dict):
        raise HTTPException(400, "Expected a JSON object")
    return body


@app.get("/health")
async def health():
    return {"status": "ok"}


# ── API: Words ────────────────────────────────────────────────────────────

@app.get("/api/words")
async def api_words():
    return {"words": get_db().get_all_words()}


@app.get("/api/words/{word_id}")
async def api_word(word_id: str):
    word = get_db().get_word(word_id)
    if word is None:
        raise HTTPException(404, "Word not found")
    return word


@app.post("/api/words")
async def api_create_word(request: Request):
    body = await _json_body(request)
    original = str(body.get("original", "")).strip()
    translation = str(body.get("translation", "")).strip()
    if not original or not translation:
        raise HTTPException(400, "Missing required fields")
    return get_db().create_word(original, translation, body.get("examples") or [])


@app.put("/api/words/{word_id}")
async def api_update_word(word_id: str, request: Request):
    body = await _json_body(request)
    original = str(body.get("original", "")).strip()
    translation = str(body.get("translation", "")).strip()
    if not original or not translation:
        raise HTTPException(400, "Missing required fields")
    speech = body.get("speech")
    if speech is not None and not is_speech_filename(speech):
        raise HTTPException(400, "Invalid speech filename")
    word = get_db().update_word(
        word_id, original, translation, body.get("examples") or [], speech=speech,
    )
    if word is None:
        raise HTTPException(404, "Word not found")
    return word


@app.delete("/api/words/{word_id}")
async def api_delete_word(word_id: str):
    if not get_db().delete_word(word_id):
        raise HTTPException(404, "Word not found")
    return {"deleted": word_id}


@app.post("/api/words/{word_id}/increment-read")
async def api_increment_read(word_id: str):
    word = get_db().increment_read_count(word_id)
    if word is None:
        raise HTTPException(404, "Word not found")
    return {"id": word_id, "read_count": word["read_count"]}


@app.get("/api/stats")
async def api_stats():
    return get_db().get_stats()


@app.post("/api/import")
async def api_import():
    db = get_db()
    imported = import_vocab_files(db, get_settings())
    return {"words_imported": imported, "total_words": db.get_word_count()}


# ── API: Generation ───────────────────────────────────────────────────────

@app.post("/api/generate-examples")
async def api_generate_examples(request: Request):
    body = await _json_body(request)
    word = str(body.get("swedishWord", "")).strip()
    translation = str(body.get("englishTranslation", "")).strip()
    if not word or not translation:
        raise HTTPException(400, "Missing required fields")
    existing = body.get("existingExamples") or []

    try:
        llm = _get_llm()
        examples = await generate_examples(
            llm, word, translation, existing, count=get_settings().examples_per_request,
        )
    except MalformedResponseError as e:
        log.warning("Unparseable examples for %r: %s", word, e)
        raise HTTPException(500, "Failed to parse examples from LLM response")
    except Exception as e:
        log.warning("Example generation for %r failed: %s", word, e)
        raise HTTPException(502, f"LLM error: {e}")
    return {"examples": examples}


@app.post("/api/translate")
async def api_translate(request: Request):
    body = await _json_body(request)
    text = str(body.get("text", "")).strip()
    if not text:
        raise HTTPException(400, "No text provided")
    s = get_settings()
    try:
        translation = await translate(
            _get_llm(), text,
            body.get("sourceLang") or s.source_lang,
            body.get("targetLang") or s.target_lang,
        )
    except Exception as e:
        log.warning("Translation of %r failed: %s", text, e)
        raise HTTPException(502, f"Translation error: {e}")
    return {"translation": translation}


# ── API: Speech ───────────────────────────────────────────────────────────

@app.post("/api/tts")
async def api_tts(request: Request):
    """Synthesize *text* (or reuse the stored file); filename in X-Speech-File."""
    body = await _json_body(request)
    text = str(body.get("text", "")).strip()
    if not text:
        raise HTTPException(400, "No text provided")
    try:
        path = await get_or_create_speech(
            text, _get_tts(), get_db(), get_settings().audio_cache_full_path,
        )
    except Exception as e:
        log.warning("TTS for %r failed: %s", text[:40], e)
        raise HTTPException(502, f"TTS error: {e}")
    return FileResponse(
        path, media_type="audio/mpeg", headers={SPEECH_FILE_HEADER: path.name},
    )


@app.get("/api/speech/{filename}")
async def api_speech(filename: str):
    if not is_speech_filename(filename):
        raise HTTPException(404, "Audio not found")
    path = get_settings().audio_cache_full_path / filename
    if not path.exists():
        raise HTTPException(404, "Audio not found")
    return FileResponse(path, media_type="audio/mpeg")


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    body = await _json_body(request)
    s = get_settings()
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    for k, v in body.items():
        if k in known:
            setattr(s, k, v)
    save_settings(s)
    return s.to_dict()
