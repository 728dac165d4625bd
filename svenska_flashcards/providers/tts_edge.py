from __future__ import annotations

from pathlib import Path

from svenska_flashcards.providers.base import TTSProvider


class EdgeTTSProvider(TTSProvider):
    def __init__(self, voice: str = "sv-SE-SofieNeural", rate: str = "-10%"):
        self.voice = voice
        self.rate = rate

    async def synthesize(self, text: str, output_path: Path) -> Path:
        import edge_tts

        communicate = edge_tts.Communicate(text, self.voice, rate=self.rate)
        await communicate.save(str(output_path))
        if not output_path.exists() or output_path.stat().st_size == 0:
            raise RuntimeError(f"edge-tts produced no audio for {text[:40]!r}")
        return output_path

    def name(self) -> str:
        return f"edge-tts/{self.voice}"
