"""Async HTTP client for the flashcard backend.

One object covers every remote collaborator the session needs: the
vocabulary store, the translator, the example generator and speech
synthesis. Transport failures become :class:`NetworkError`; non-2xx
responses become :class:`ProviderError` carrying the backend's message.
"""
from __future__ import annotations

import logging
import time

import httpx

from svenska_flashcards.errors import MalformedResponseError, NetworkError, ProviderError
from svenska_flashcards.models import Example, Word, word_from_dict

log = logging.getLogger("svenska_flashcards.proxy")

SPEECH_FILE_HEADER = "X-Speech-File"


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return ""
    if isinstance(data, dict):
        return str(data.get("detail") or data.get("error") or "")
    return ""


class ProxyClient:
    def __init__(
        self,
        base_url: str = "http://127.0.0.1:3000",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(f"Request to {self.base_url}{path} failed: {e}") from e
        log.debug("%s %s -> %d (%.2fs)", method, path, resp.status_code, time.monotonic() - t0)
        if resp.is_error:
            raise ProviderError(resp.status_code, _error_message(resp))
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> dict:
        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedResponseError(f"Response is not JSON: {resp.text[:80]!r}") from e
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Expected a JSON object, got {type(data).__name__}")
        return data

    # ── Health ────────────────────────────────────────────────────────────

    async def health(self) -> bool:
        resp = await self._request("GET", "/health")
        return self._json(resp).get("status") == "ok"

    # ── Vocabulary ────────────────────────────────────────────────────────

    async def get_all_words(self) -> list[Word]:
        words = self._json(await self._request("GET", "/api/words")).get("words", [])
        if not isinstance(words, list) or not all(isinstance(w, dict) for w in words):
            raise MalformedResponseError("Word list is not a list of objects")
        return [word_from_dict(w) for w in words]

    async def create_word(
        self, original: str, translation: str, examples: list[Example] | None = None
    ) -> Word:
        resp = await self._request("POST", "/api/words", json={
            "original": original,
            "translation": translation,
            "examples": [e.to_dict() for e in examples or []],
        })
        return word_from_dict(self._json(resp))

    async def update_word(
        self,
        word_id: str,
        original: str,
        translation: str,
        examples: list[Example],
        speech: str | None = None,
    ) -> Word:
        body = {
            "original": original,
            "translation": translation,
            "examples": [e.to_dict() for e in examples],
        }
        if speech:
            body["speech"] = speech
        resp = await self._request("PUT", f"/api/words/{word_id}", json=body)
        return word_from_dict(self._json(resp))

    async def increment_read_count(self, word_id: str) -> None:
        await self._request("POST", f"/api/words/{word_id}/increment-read")

    # ── Generation ────────────────────────────────────────────────────────

    async def translate(self, text: str, source_lang: str = "sv", target_lang: str = "en") -> str:
        resp = await self._request("POST", "/api/translate", json={
            "text": text,
            "sourceLang": source_lang,
            "targetLang": target_lang,
        })
        translation = self._json(resp).get("translation")
        if not isinstance(translation, str) or not translation.strip():
            raise MalformedResponseError("Translation missing from response")
        return translation.strip()

    async def generate_examples(
        self,
        word: str,
        translation: str,
        existing: list[Example] | None = None,
        word_id: str | None = None,
    ):
        """Return the raw generation payload; interpretation is the caller's job."""
        body: dict = {"swedishWord": word, "englishTranslation": translation}
        if existing:
            body["existingExamples"] = [
                {"swedish": e.swedish, "english": e.english} for e in existing
            ]
        if word_id:
            body["wordId"] = word_id
        resp = await self._request("POST", "/api/generate-examples", json=body)
        try:
            return resp.json()
        except ValueError:
            return resp.text

    # ── Speech ────────────────────────────────────────────────────────────

    def speech_url(self, filename: str) -> str:
        return f"{self.base_url}/api/speech/{filename}"

    async def synthesize(self, text: str) -> tuple[bytes, str | None]:
        resp = await self._request("POST", "/api/tts", json={"text": text})
        if not resp.content:
            raise MalformedResponseError("Empty audio payload")
        return resp.content, resp.headers.get(SPEECH_FILE_HEADER) or None

    async def fetch_speech(self, filename: str) -> bytes:
        resp = await self._request("GET", f"/api/speech/{filename}")
        return resp.content
