"""Drive the LLM for example sentences and custom-word translations."""
from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING

from svenska_flashcards.examples import extract_example_array
from svenska_flashcards.prompts import (
    EXAMPLES_PROMPT,
    EXAMPLES_SYSTEM_PROMPT,
    TRANSLATE_PROMPT,
    format_existing,
    language_name,
)

if TYPE_CHECKING:
    from svenska_flashcards.providers.base import LLMProvider

_log = logging.getLogger("svenska_flashcards.llm")


async def generate_examples(
    llm: LLMProvider,
    word: str,
    translation: str,
    existing: list[dict] | None = None,
    count: int = 3,
) -> list[dict]:
    """Ask the LLM for *count* sentence pairs; raises MalformedResponseError on bad output."""
    prompt = EXAMPLES_PROMPT.format(
        count=count,
        word=word,
        translation=translation,
        existing_section=format_existing(existing or []),
    )
    _log.info("── EXAMPLES PROMPT (%s) ──\n%s", llm.name(), prompt)
    t0 = time.monotonic()
    raw = await llm.generate(prompt, temperature=0.7, system=EXAMPLES_SYSTEM_PROMPT)
    _log.info("── RESPONSE (%.1fs) ──\n%s", time.monotonic() - t0, raw)
    return extract_example_array(raw)


def _clean_translation(raw: str) -> str:
    text = re.sub(r"<think>.*?</think>", "", raw, flags=re.DOTALL).strip()
    first = text.splitlines()[0] if text else ""
    return first.strip().strip("\"'").strip()


async def translate(llm: LLMProvider, text: str, source_lang: str = "sv", target_lang: str = "en") -> str:
    prompt = TRANSLATE_PROMPT.format(
        source=language_name(source_lang),
        target=language_name(target_lang),
        text=text,
    )
    raw = await llm.generate(prompt, temperature=0.0)
    translation = _clean_translation(raw)
    _log.info("Translated %r -> %r", text, translation)
    if not translation:
        raise ValueError(f"Empty translation for {text!r}")
    return translation
