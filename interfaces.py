from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional, Protocol

if TYPE_CHECKING:
    from transcript_reconciler import RecognitionEvent
    from translation_service import TranslationResponse


class SpeechEngine(Protocol):
    lang: str
    continuous: bool
    interim_results: bool
    on_start: Optional[Callable[[], None]]
    on_result: Optional[Callable[["RecognitionEvent"], None]]
    on_error: Optional[Callable[[str], None]]
    on_end: Optional[Callable[[], None]]

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def abort(self) -> None: ...


class TranslationBackend(Protocol):
    async def translate(self, text: str, source_lang: str, target_lang: str) -> "TranslationResponse": ...


class PreferenceStore(Protocol):
    def get(self, key: str, default: str) -> str: ...

    def set(self, key: str, value: str) -> None: ...
