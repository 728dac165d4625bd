"""Parse vocabulary CSV files into Word objects.

One word per line, ``swedish,english``. Lines without both columns are
skipped, as is a leading ``swedish,english`` header. Quoted fields may
contain commas.
"""
from __future__ import annotations

import csv
import io
from pathlib import Path

from svenska_flashcards.models import Word

HEADER = ("swedish", "english")


def parse_vocabulary_text(text: str) -> list[Word]:
    words: list[Word] = []
    for row in csv.reader(io.StringIO(text.strip())):
        if len(row) < 2:
            continue
        swedish, english = row[0].strip(), row[1].strip()
        if not swedish or not english:
            continue
        if (swedish.lower(), english.lower()) == HEADER:
            continue
        words.append(Word(original=swedish, translation=english))
    return words


def parse_vocabulary_file(path: Path) -> list[Word]:
    return parse_vocabulary_text(path.read_text(encoding="utf-8"))
