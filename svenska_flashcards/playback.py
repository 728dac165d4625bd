from __future__ import annotations

import asyncio
import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from svenska_flashcards.errors import PlaybackError

log = logging.getLogger("svenska_flashcards.audio")

PLAYER_ARGS = {
    "ffplay": ["-nodisp", "-autoexit", "-loglevel", "quiet"],
    "mpv": ["--no-video", "--really-quiet"],
    "afplay": [],
}


class AudioPlayer(ABC):
    """At most one stream at a time; :meth:`stop` must be synchronous."""

    @abstractmethod
    def stop(self) -> None:
        ...

    @abstractmethod
    async def start(self, path: Path) -> None:
        ...

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        ...


class SubprocessPlayer(AudioPlayer):
    def __init__(self, command: str = "ffplay"):
        self.command = command
        self._proc: asyncio.subprocess.Process | None = None
        self._generation = 0

    @property
    def is_playing(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    def stop(self) -> None:
        # Also invalidates a start() still waiting on its subprocess.
        self._generation += 1
        if self.is_playing:
            _terminate(self._proc)
        self._proc = None

    async def start(self, path: Path) -> None:
        exe = shutil.which(self.command)
        if exe is None:
            raise PlaybackError(f"Audio player '{self.command}' not found on PATH")
        self.stop()
        generation = self._generation
        try:
            proc = await asyncio.create_subprocess_exec(
                exe, *PLAYER_ARGS.get(self.command, []), str(path),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise PlaybackError(f"Could not start {self.command}: {e}") from e
        if generation != self._generation:
            _terminate(proc)
            return
        self._proc = proc
        log.debug("Playing %s (pid %s)", path.name, proc.pid)


def _terminate(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.terminate()
    except ProcessLookupError:
        pass
