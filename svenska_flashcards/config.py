from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "llm_provider": "openai",
    "llm_model": "gpt-4o-mini",
    "tts_provider": "edge-tts",
    "tts_voice": "sv-SE-SofieNeural",
    "elevenlabs_model": "eleven_multilingual_v2",
    "vocab_files": [],
    "audio_cache_dir": "speech",
    "db_path": "flashcards.db",
    "ollama_url": "http://localhost:11434",
    "proxy_url": "http://127.0.0.1:3000",
    "source_lang": "sv",
    "target_lang": "en",
    "examples_per_request": 3,
    "word_cache_path": "words_cache.json",
    "request_timeout": 60.0,
    "audio_player": "ffplay",
}


@dataclass
class Settings:
    llm_provider: str = DEFAULTS["llm_provider"]
    llm_model: str = DEFAULTS["llm_model"]
    tts_provider: str = DEFAULTS["tts_provider"]
    tts_voice: str = DEFAULTS["tts_voice"]
    elevenlabs_model: str = DEFAULTS["elevenlabs_model"]
    vocab_files: list[str] = field(default_factory=lambda: list(DEFAULTS["vocab_files"]))
    audio_cache_dir: str = DEFAULTS["audio_cache_dir"]
    db_path: str = DEFAULTS["db_path"]
    ollama_url: str = DEFAULTS["ollama_url"]
    proxy_url: str = DEFAULTS["proxy_url"]
    source_lang: str = DEFAULTS["source_lang"]
    target_lang: str = DEFAULTS["target_lang"]
    examples_per_request: int = DEFAULTS["examples_per_request"]
    word_cache_path: str = DEFAULTS["word_cache_path"]
    request_timeout: float = DEFAULTS["request_timeout"]
    audio_player: str = DEFAULTS["audio_player"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def data_dir(self) -> Path:
        return self.project_root / "data"

    @property
    def db_full_path(self) -> Path:
        return self.project_root / self.db_path

    @property
    def audio_cache_full_path(self) -> Path:
        return self.project_root / self.audio_cache_dir

    @property
    def word_cache_full_path(self) -> Path:
        return self.project_root / self.word_cache_path

    def resolved_vocab_files(self) -> list[Path]:
        if self.vocab_files:
            root = self.project_root
            return [root / f for f in self.vocab_files]
        return sorted(self.data_dir.glob("*.csv"))

    def to_dict(self) -> dict:
        return {
            "llm_provider": self.llm_provider,
            "llm_model": self.llm_model,
            "tts_provider": self.tts_provider,
            "tts_voice": self.tts_voice,
            "elevenlabs_model": self.elevenlabs_model,
            "vocab_files": self.vocab_files,
            "audio_cache_dir": self.audio_cache_dir,
            "db_path": self.db_path,
            "ollama_url": self.ollama_url,
            "proxy_url": self.proxy_url,
            "source_lang": self.source_lang,
            "target_lang": self.target_lang,
            "examples_per_request": self.examples_per_request,
            "word_cache_path": self.word_cache_path,
            "request_timeout": self.request_timeout,
            "audio_player": self.audio_player,
        }


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        # Older configs called the backend address "api_base_url"
        if "api_base_url" in raw:
            raw.setdefault("proxy_url", raw["api_base_url"])
            del raw["api_base_url"]
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
