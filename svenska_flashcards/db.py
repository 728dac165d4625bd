from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path

from svenska_flashcards.models import Word

SCHEMA = """
CREATE TABLE IF NOT EXISTS words (
    id TEXT PRIMARY KEY,
    original TEXT NOT NULL UNIQUE,
    translation TEXT NOT NULL,
    examples_json TEXT NOT NULL DEFAULT '[]',
    speech TEXT,
    read_count INTEGER NOT NULL DEFAULT 0,
    source_file TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS speech_cache (
    text_hash TEXT PRIMARY KEY,
    filename TEXT NOT NULL,
    tts_provider TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS file_mtimes (
    file_path TEXT PRIMARY KEY,
    mtime_ns INTEGER NOT NULL
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_word(row: sqlite3.Row) -> dict:
    return {
        "id": row["id"],
        "original": row["original"],
        "translation": row["translation"],
        "examples": json.loads(row["examples_json"] or "[]"),
        "speech": row["speech"],
        "read_count": row["read_count"],
    }


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ── Import ────────────────────────────────────────────────────────────

    def prune_source(self, source_file: str, keep: set[str]) -> int:
        """Remove words of *source_file* whose text is no longer in *keep*.

        Words that already carry examples or speech are kept so editing a
        vocabulary file does not throw away generated content.
        """
        rows = self.conn.execute(
            "SELECT id, original FROM words WHERE source_file = ? "
            "AND examples_json = '[]' AND speech IS NULL",
            (source_file,),
        ).fetchall()
        stale = [(r["id"],) for r in rows if r["original"] not in keep]
        self.conn.executemany("DELETE FROM words WHERE id = ?", stale)
        self.conn.commit()
        return len(stale)

    def import_words(self, words: list[Word], source_file: str) -> int:
        """Upsert *words* keyed on their text; returns the number of new rows.

        Existing rows keep their id, read count, examples and speech; only
        the translation and source file are refreshed.
        """
        before = self.get_word_count()
        now = _now()
        for w in words:
            self.conn.execute(
                "INSERT INTO words "
                "(id, original, translation, source_file, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(original) DO UPDATE SET "
                "translation=excluded.translation, source_file=excluded.source_file, "
                "updated_at=excluded.updated_at",
                (uuid.uuid4().hex, w.original, w.translation, source_file, now, now),
            )
        self.conn.commit()
        return self.get_word_count() - before

    # ── File mtimes ─────────────────────────────────────────────────────

    def get_file_mtime(self, file_path: str) -> int | None:
        row = self.conn.execute(
            "SELECT mtime_ns FROM file_mtimes WHERE file_path = ?", (file_path,)
        ).fetchone()
        return row[0] if row else None

    def set_file_mtime(self, file_path: str, mtime_ns: int) -> None:
        self.conn.execute(
            "INSERT OR REPLACE INTO file_mtimes (file_path, mtime_ns) VALUES (?, ?)",
            (file_path, mtime_ns),
        )
        self.conn.commit()

    # ── Words ─────────────────────────────────────────────────────────────

    def get_word_count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM words").fetchone()
        return row[0]

    def get_all_words(self) -> list[dict]:
        rows = self.conn.execute(
            "SELECT * FROM words ORDER BY created_at, original"
        ).fetchall()
        return [_row_to_word(r) for r in rows]

    def get_word(self, word_id: str) -> dict | None:
        row = self.conn.execute(
            "SELECT * FROM words WHERE id = ?", (word_id,)
        ).fetchone()
        return _row_to_word(row) if row else None

    def get_word_by_original(self, original: str) -> dict | None:
        row = self.conn.execute(
            "SELECT * FROM words WHERE original = ?", (original,)
        ).fetchone()
        return _row_to_word(row) if row else None

    def create_word(self, original: str, translation: str, examples: list[dict] | None = None) -> dict:
        """Insert a word; an existing word with the same text is returned as-is."""
        existing = self.get_word_by_original(original)
        if existing:
            return existing
        word_id = uuid.uuid4().hex
        now = _now()
        self.conn.execute(
            "INSERT INTO words (id, original, translation, examples_json, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (word_id, original, translation, json.dumps(examples or [], ensure_ascii=False), now, now),
        )
        self.conn.commit()
        return self.get_word(word_id)

    def update_word(
        self,
        word_id: str,
        original: str,
        translation: str,
        examples: list[dict],
        speech: str | None = None,
    ) -> dict | None:
        cur = self.conn.execute(
            "UPDATE words SET original=?, translation=?, examples_json=?, "
            "speech=COALESCE(?, speech), updated_at=? WHERE id=?",
            (original, translation, json.dumps(examples, ensure_ascii=False), speech, _now(), word_id),
        )
        self.conn.commit()
        if cur.rowcount == 0:
            return None
        return self.get_word(word_id)

    def delete_word(self, word_id: str) -> bool:
        cur = self.conn.execute("DELETE FROM words WHERE id = ?", (word_id,))
        self.conn.commit()
        return cur.rowcount > 0

    def increment_read_count(self, word_id: str) -> dict | None:
        cur = self.conn.execute(
            "UPDATE words SET read_count = read_count + 1 WHERE id = ?", (word_id,)
        )
        self.conn.commit()
        if cur.rowcount == 0:
            return None
        return self.get_word(word_id)

    def get_stats(self) -> dict:
        row = self.conn.execute(
            "SELECT COUNT(*) AS total, "
            "COALESCE(SUM(examples_json != '[]'), 0) AS with_examples, "
            "COALESCE(SUM(speech IS NOT NULL), 0) AS with_speech, "
            "COALESCE(SUM(read_count), 0) AS reads, "
            "COALESCE(SUM(read_count > 0), 0) AS seen "
            "FROM words"
        ).fetchone()
        return {
            "total_words": row["total"],
            "words_with_examples": row["with_examples"],
            "words_with_speech": row["with_speech"],
            "words_seen": row["seen"],
            "total_reads": row["reads"],
        }

    # ── Speech cache ──────────────────────────────────────────────────────

    def get_speech(self, text_hash: str) -> str | None:
        row = self.conn.execute(
            "SELECT filename FROM speech_cache WHERE text_hash = ?",
            (text_hash,),
        ).fetchone()
        return row["filename"] if row else None

    def set_speech(self, text_hash: str, filename: str, tts_provider: str) -> None:
        self.conn.execute(
            "INSERT OR REPLACE INTO speech_cache "
            "(text_hash, filename, tts_provider, created_at) VALUES (?, ?, ?, ?)",
            (text_hash, filename, tts_provider, _now()),
        )
        self.conn.commit()
