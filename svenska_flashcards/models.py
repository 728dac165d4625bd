from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Example:
    swedish: str
    english: str
    speech_ref: str | None = None

    @property
    def text(self) -> str:
        return self.swedish

    def cache_key(self) -> str:
        return self.speech_ref or self.swedish

    def to_dict(self) -> dict:
        d = {"swedish": self.swedish, "english": self.english}
        if self.speech_ref:
            d["speech"] = self.speech_ref
        return d


@dataclass
class Word:
    original: str
    translation: str
    id: str | None = None
    examples: list[Example] = field(default_factory=list)
    speech_ref: str | None = None

    @property
    def text(self) -> str:
        return self.original

    def cache_key(self) -> str:
        return self.speech_ref or self.original

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "original": self.original,
            "translation": self.translation,
            "examples": [e.to_dict() for e in self.examples],
            "speech": self.speech_ref,
        }


@dataclass
class HistoryEntry:
    word: Word
    examples: list[Example] | None = None  # None until generated for this entry


def example_from_dict(data: dict) -> Example:
    return Example(
        swedish=str(data.get("swedish", "")).strip(),
        english=str(data.get("english", "")).strip(),
        speech_ref=data.get("speech") or data.get("speechRef") or None,
    )


def word_from_dict(data: dict) -> Word:
    """Normalize a word record from any source (backend, local cache, CSV).

    Backends disagree on the identifier field (``id`` vs ``_id``) and the
    audio field (``speech`` vs ``speechRef``); everything past this point
    only sees :class:`Word`.
    """
    raw_id = data.get("id") or data.get("_id")
    return Word(
        id=str(raw_id) if raw_id else None,
        original=str(data.get("original", "")).strip(),
        translation=str(data.get("translation", "")).strip(),
        examples=[example_from_dict(e) for e in data.get("examples") or []],
        speech_ref=data.get("speech") or data.get("speechRef") or None,
    )
