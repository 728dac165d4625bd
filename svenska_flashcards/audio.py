"""Server-side speech files: one synthesized mp3 per distinct text."""
from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from svenska_flashcards.db import Database
    from svenska_flashcards.providers.base import TTSProvider

log = logging.getLogger("svenska_flashcards.tts")

_FILENAME_RE = re.compile(r"^[0-9a-f]{16}\.mp3$")


def text_hash(text: str) -> str:
    return hashlib.sha256(text.strip().encode()).hexdigest()[:16]


def speech_filename(text: str) -> str:
    return f"{text_hash(text)}.mp3"


def is_speech_filename(name: str) -> bool:
    """Guard for filenames arriving over HTTP (no paths, only our own names)."""
    return bool(_FILENAME_RE.match(name))


async def get_or_create_speech(
    text: str,
    tts: TTSProvider,
    db: Database,
    cache_dir: Path,
) -> Path:
    """Return the stored speech file for *text*, synthesizing it on first use.

    Synthesis failures propagate to the caller.
    """
    cache_dir.mkdir(parents=True, exist_ok=True)
    h = text_hash(text)

    cached = db.get_speech(h)
    if cached:
        p = cache_dir / cached
        if p.exists():
            return p

    output_path = cache_dir / speech_filename(text)
    await tts.synthesize(text, output_path)
    db.set_speech(h, output_path.name, tts.name())
    log.info("Synthesized %s for %r via %s", output_path.name, text[:40], tts.name())
    return output_path
