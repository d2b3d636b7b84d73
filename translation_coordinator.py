from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from config_utils import read_float_env
from errors import ProviderError, RateLimitedError, TranslationError, TransportError, UnknownTranslationError
from interfaces import TranslationBackend
from translation_service import TranslationResponse


@dataclass(frozen=True)
class TranslationIntent:
    text: str
    source_lang: str
    target_lang: str
    request_id: int


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class TranslationOutcome:
    kind: OutcomeKind
    request_id: int
    translated_text: str = ""
    message: str = ""


class TranslationCoordinator:
    """Debounced translation with at most one request in flight.

    Each accepted intent takes a fresh request id and replaces the task in the
    single request slot; the replaced task is cancelled, which both stops a
    pending quiet-period timer and aborts an in-flight transport call. A
    result is applied only when its id is still the latest accepted one.
    """

    def __init__(
        self,
        backend: TranslationBackend,
        debounce_seconds: Optional[float] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        on_translated: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        on_loading_changed: Optional[Callable[[bool], None]] = None,
        on_cleared: Optional[Callable[[], None]] = None,
    ) -> None:
        self._backend = backend
        self._debounce_seconds = (
            debounce_seconds
            if debounce_seconds is not None
            else read_float_env("TRANSLATION_DEBOUNCE_SECONDS", 0.5)
        )
        self._loop = loop
        self._on_translated = on_translated
        self._on_error = on_error
        self._on_loading_changed = on_loading_changed
        self._on_cleared = on_cleared
        self._latest_request_id = 0
        self._task: Optional[asyncio.Task[TranslationOutcome]] = None
        self._is_loading = False
        self.translated_text = ""
        self.error: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def latest_request_id(self) -> int:
        return self._latest_request_id

    @property
    def debounce_seconds(self) -> float:
        return self._debounce_seconds

    def submit(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        *,
        immediate: bool = False,
    ) -> Optional[asyncio.Task[TranslationOutcome]]:
        if not text.strip():
            self.cancel()
            self.translated_text = ""
            self.error = None
            if self._on_cleared is not None:
                self._on_cleared()
            return None

        self._release_slot()
        self._latest_request_id += 1
        intent = TranslationIntent(
            text=text,
            source_lang=source_lang,
            target_lang=target_lang,
            request_id=self._latest_request_id,
        )
        delay = 0.0 if immediate else self._debounce_seconds
        logging.debug(
            "translation_request id=%d immediate=%s delay_s=%.3f chars=%d",
            intent.request_id,
            immediate,
            delay,
            len(text),
        )
        loop = self._loop or asyncio.get_running_loop()
        self._task = loop.create_task(self._run(intent, delay), name=f"translation-{intent.request_id}")
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            # A fresh id makes any result that still slips through stale.
            self._latest_request_id += 1
            logging.debug("translation_cancelled latest_id=%d", self._latest_request_id)
        self._release_slot()

    async def close(self) -> None:
        task = self._task
        self.cancel()
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task

    async def _run(self, intent: TranslationIntent, delay: float) -> TranslationOutcome:
        if delay > 0:
            await asyncio.sleep(delay)
        self.error = None
        self._set_loading(True)
        try:
            response = await self._backend.translate(intent.text, intent.source_lang, intent.target_lang)
            translated = self._translated_text_or_raise(response)
        except asyncio.CancelledError:
            logging.debug("translation_aborted id=%d", intent.request_id)
            raise
        except TranslationError as exc:
            return self._settle_failure(intent, exc)
        except Exception as exc:  # noqa: BLE001 - transport boundary
            logging.warning("translation_unexpected_error id=%d error=%r", intent.request_id, exc)
            return self._settle_failure(intent, UnknownTranslationError())
        finally:
            if self._is_current(intent):
                self._set_loading(False)

        if not self._is_current(intent):
            return self._superseded(intent)
        self.translated_text = translated
        self.error = None
        logging.info("translation_applied id=%d chars=%d", intent.request_id, len(translated))
        if self._on_translated is not None:
            self._on_translated(translated)
        return TranslationOutcome(OutcomeKind.SUCCESS, intent.request_id, translated_text=translated)

    def _settle_failure(self, intent: TranslationIntent, exc: TranslationError) -> TranslationOutcome:
        if not self._is_current(intent):
            return self._superseded(intent)
        self.error = exc.message
        logging.info("translation_failed id=%d type=%s", intent.request_id, type(exc).__name__)
        if self._on_error is not None:
            self._on_error(exc.message)
        return TranslationOutcome(OutcomeKind.FAILURE, intent.request_id, message=exc.message)

    @staticmethod
    def _superseded(intent: TranslationIntent) -> TranslationOutcome:
        logging.debug("translation_superseded id=%d", intent.request_id)
        return TranslationOutcome(OutcomeKind.SUPERSEDED, intent.request_id)

    @staticmethod
    def _translated_text_or_raise(response: TranslationResponse) -> str:
        if not response.transport_ok:
            raise TransportError(response.http_status)
        if response.response_status == 429:
            raise RateLimitedError()
        if response.response_status != 200:
            raise ProviderError(response.detail)
        return response.translated_text

    def _is_current(self, intent: TranslationIntent) -> bool:
        return intent.request_id == self._latest_request_id

    def _release_slot(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
        self._set_loading(False)

    def _set_loading(self, loading: bool) -> None:
        if loading == self._is_loading:
            return
        self._is_loading = loading
        if self._on_loading_changed is not None:
            self._on_loading_changed(loading)
