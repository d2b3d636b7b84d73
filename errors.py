from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class UnsupportedError(RuntimeError):
    """The host has no speech-recognition capability."""

    def __init__(self, message: str = "Speech recognition is not supported on this system.") -> None:
        super().__init__(message)


class RecognitionErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    NETWORK_ERROR = "network_error"
    ABORTED = "aborted"
    NO_SPEECH_DETECTED = "no_speech_detected"
    UNKNOWN = "unknown"


_RECOGNITION_CODES = {
    "not-allowed": RecognitionErrorKind.PERMISSION_DENIED,
    "service-not-allowed": RecognitionErrorKind.PERMISSION_DENIED,
    "network": RecognitionErrorKind.NETWORK_ERROR,
    "aborted": RecognitionErrorKind.ABORTED,
    "no-speech": RecognitionErrorKind.NO_SPEECH_DETECTED,
}

_RECOGNITION_MESSAGES = {
    RecognitionErrorKind.PERMISSION_DENIED: "Microphone access denied. Please allow microphone permissions.",
    RecognitionErrorKind.NETWORK_ERROR: "Network error. Please check your connection.",
    RecognitionErrorKind.ABORTED: "Speech recognition was aborted.",
    RecognitionErrorKind.NO_SPEECH_DETECTED: "No speech was detected.",
}

FATAL_RECOGNITION_ERRORS = frozenset({RecognitionErrorKind.PERMISSION_DENIED, RecognitionErrorKind.ABORTED})


@dataclass(frozen=True)
class RecognitionError:
    kind: RecognitionErrorKind
    code: str

    @property
    def message(self) -> str:
        return _RECOGNITION_MESSAGES.get(self.kind, f"Error: {self.code}")

    @property
    def is_fatal(self) -> bool:
        return self.kind in FATAL_RECOGNITION_ERRORS

    @classmethod
    def from_code(cls, code: str) -> "RecognitionError":
        normalized = (code or "").strip()
        kind = _RECOGNITION_CODES.get(normalized.lower(), RecognitionErrorKind.UNKNOWN)
        return cls(kind=kind, code=normalized or "unknown")


class TranslationError(Exception):
    default_message = "Translation failed"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class RateLimitedError(TranslationError):
    default_message = "Rate limit exceeded. Please wait a moment and try again."


class ProviderError(TranslationError):
    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail or None)


class TransportError(TranslationError):
    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__(f"Translation failed: {status}")


class UnknownTranslationError(TranslationError):
    default_message = "An unexpected error occurred"
