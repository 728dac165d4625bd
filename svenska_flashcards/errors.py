"""Exception taxonomy shared by the session engine and its collaborators."""
from __future__ import annotations


class FlashcardError(Exception):
    pass


class NetworkError(FlashcardError):
    """The backend could not be reached at all."""


class ProviderError(FlashcardError):
    def __init__(self, status: int, message: str = ""):
        self.status = status
        self.message = message or f"Server error: {status}"
        super().__init__(self.message)


class MalformedResponseError(FlashcardError):
    """A response arrived but its payload could not be interpreted."""


class PlaybackError(FlashcardError):
    pass


class EmptyQueueError(FlashcardError):
    pass
