"""Example-sentence generation: request, interpretation, merge helpers."""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator
from typing import TYPE_CHECKING

from svenska_flashcards.errors import MalformedResponseError
from svenska_flashcards.models import Example, Word

if TYPE_CHECKING:
    from svenska_flashcards.proxy_client import ProxyClient

log = logging.getLogger("svenska_flashcards.examples")


def _iter_bracketed(text: str) -> Iterator[str]:
    """Yield balanced ``[…]`` substrings of *text* in order of their opening bracket."""
    for start, ch in enumerate(text):
        if ch != "[":
            continue
        depth = 0
        in_str = False
        escape = False
        for j in range(start, len(text)):
            c = text[j]
            if escape:
                escape = False
                continue
            if c == "\\":
                escape = True
                continue
            if c == '"':
                in_str = not in_str
                continue
            if in_str:
                continue
            if c == "[":
                depth += 1
            elif c == "]":
                depth -= 1
                if depth == 0:
                    yield text[start : j + 1]
                    break


def _as_pairs(items) -> list[dict] | None:
    if not isinstance(items, list):
        return None
    pairs = []
    for item in items:
        if not isinstance(item, dict):
            return None
        sv, en = item.get("swedish"), item.get("english")
        if not isinstance(sv, str) or not isinstance(en, str) or not sv.strip():
            return None
        pairs.append({"swedish": sv.strip(), "english": en.strip()})
    return pairs


def extract_example_array(text: str) -> list[dict]:
    """Pull the first well-formed ``[{swedish, english}, …]`` out of free text.

    LLMs wrap the array in prose or code fences; reasoning models may emit
    ``<think>`` blocks first, which are dropped before scanning.
    """
    text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL)
    for candidate in _iter_bracketed(text):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        pairs = _as_pairs(parsed)
        if pairs:
            return pairs
    raise MalformedResponseError(f"No example list found in response: {text[:80]!r}")


def parse_examples(payload) -> list[Example]:
    """Interpret a generation payload as an ordered list of :class:`Example`."""
    if isinstance(payload, dict):
        payload = payload.get("examples")
    if isinstance(payload, str):
        pairs = extract_example_array(payload)
    else:
        pairs = _as_pairs(payload)
    if not pairs:
        raise MalformedResponseError("Response did not contain any examples")
    return [Example(swedish=p["swedish"], english=p["english"]) for p in pairs]


def merge_examples(generated: list[Example], shown: list[Example]) -> list[Example]:
    """Newly generated examples go in front of the ones already on screen."""
    return list(generated) + list(shown)


class ExampleService:
    def __init__(self, client: ProxyClient):
        self.client = client

    async def fetch(self, word: Word, existing: list[Example] | None = None) -> list[Example]:
        """One generation request for *word*; never retried here.

        Raises ``NetworkError``/``ProviderError`` from the client, or
        ``MalformedResponseError`` when the payload is not an example list.
        """
        log.info("Generating examples for %r (%d existing)", word.original, len(existing or []))
        payload = await self.client.generate_examples(
            word.original, word.translation, existing or [], word.id,
        )
        examples = parse_examples(payload)
        log.info("Received %d examples for %r", len(examples), word.original)
        return examples
