from __future__ import annotations

from typing import Final

LANGUAGES: Final[tuple[tuple[str, str], ...]] = (
    ("en", "English"),
    ("es", "Spanish"),
    ("fr", "French"),
    ("de", "German"),
    ("it", "Italian"),
    ("pt", "Portuguese"),
    ("nl", "Dutch"),
    ("pl", "Polish"),
    ("ru", "Russian"),
    ("uk", "Ukrainian"),
    ("tr", "Turkish"),
    ("ar", "Arabic"),
    ("hi", "Hindi"),
    ("zh", "Chinese"),
    ("ja", "Japanese"),
    ("ko", "Korean"),
    ("vi", "Vietnamese"),
    ("th", "Thai"),
    ("id", "Indonesian"),
    ("sv", "Swedish"),
)

_NAMES: Final[dict[str, str]] = dict(LANGUAGES)


def language_name(code: str) -> str:
    return _NAMES.get((code or "").strip().lower(), code)


def is_supported_language(code: str) -> bool:
    return (code or "").strip().lower() in _NAMES


def speech_language_hint(tag: str) -> str:
    """Reduce a BCP-47 tag such as ``pt-BR`` to its primary subtag (``pt``)."""
    primary = (tag or "").strip().replace("_", "-").split("-", 1)[0]
    return primary.lower()
