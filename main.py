from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv
from PyQt6.QtWidgets import QApplication
from qasync import QEventLoop

from errors import UnsupportedError
from interfaces import PreferenceStore, SpeechEngine, TranslationBackend
from languages import is_supported_language
from preferences import (
    AUTO_TRANSLATE_KEY,
    DEFAULT_FROM_LANG,
    DEFAULT_TO_LANG,
    FROM_LANG_KEY,
    TO_LANG_KEY,
    JsonPreferenceStore,
)
from transcript_reconciler import ListenerState, TranscriptReconciler
from transcription_service import RealtimeSpeechEngine
from translation_coordinator import TranslationCoordinator
from translation_service import MyMemoryTranslationClient
from translator_window import TranslatorWindow


class TranslatorController:
    def __init__(
        self,
        ui: TranslatorWindow,
        loop: asyncio.AbstractEventLoop,
        backend: Optional[TranslationBackend] = None,
        speech_engine: Optional[SpeechEngine] = None,
        preferences: Optional[PreferenceStore] = None,
        debounce_seconds: Optional[float] = None,
    ) -> None:
        self.ui = ui
        self.loop = loop
        self.preferences = preferences or JsonPreferenceStore()
        self.backend = backend or MyMemoryTranslationClient()
        self._owns_backend = backend is None
        self._syncing_ui = False

        self.from_lang = self._read_language(FROM_LANG_KEY, DEFAULT_FROM_LANG)
        self.to_lang = self._read_language(TO_LANG_KEY, DEFAULT_TO_LANG)
        self.auto_translate = self.preferences.get(AUTO_TRANSLATE_KEY, "true") != "false"

        self.coordinator = TranslationCoordinator(
            self.backend,
            debounce_seconds=debounce_seconds,
            loop=loop,
            on_translated=self.ui.set_output_text,
            on_error=self.ui.show_error,
            on_loading_changed=self.ui.set_loading,
            on_cleared=self._on_translation_cleared,
        )
        self.reconciler = TranscriptReconciler(
            speech_engine if speech_engine is not None else self._create_speech_engine(loop),
            on_delta=self.ui.append_input_text,
            on_preview=self.ui.set_live_preview,
            on_error=self.ui.show_error,
            on_state_change=self._on_listener_state_changed,
        )

        self._syncing_ui = True
        try:
            self.ui.set_languages(self.from_lang, self.to_lang)
            self.ui.set_auto_translate(self.auto_translate)
        finally:
            self._syncing_ui = False
        self.ui.set_speech_supported(self.reconciler.is_supported)

        self.ui.input_changed.connect(self._on_input_changed)
        self.ui.translate_requested.connect(self._on_translate_requested)
        self.ui.swap_requested.connect(self.swap_languages)
        self.ui.listen_toggled.connect(self._on_listen_toggled)
        self.ui.source_language_changed.connect(self._on_source_language_changed)
        self.ui.target_language_changed.connect(self._on_target_language_changed)
        self.ui.auto_translate_changed.connect(self._on_auto_translate_changed)
        self.ui.copy_requested.connect(self._on_copy_requested)

        if self.reconciler.is_supported:
            self.ui.set_status("Ready.")
        else:
            self.ui.set_status(str(UnsupportedError()))

    def swap_languages(self) -> None:
        input_text = self.ui.input_text()
        output_text = self.ui.output_text()
        self.from_lang, self.to_lang = self.to_lang, self.from_lang
        self.preferences.set(FROM_LANG_KEY, self.from_lang)
        self.preferences.set(TO_LANG_KEY, self.to_lang)
        self.coordinator.cancel()
        self._syncing_ui = True
        try:
            self.ui.set_languages(self.from_lang, self.to_lang)
            self.ui.set_output_text(input_text)
            self.ui.set_input_text(output_text)
        finally:
            self._syncing_ui = False
        logging.info("languages_swapped from=%s to=%s", self.from_lang, self.to_lang)
        self._auto_submit()

    def shutdown_sync(self) -> None:
        self.reconciler.close()
        self.coordinator.cancel()
        if self._owns_backend and not self.loop.is_closed():
            self.loop.create_task(self.backend.aclose())  # type: ignore[attr-defined]

    def _create_speech_engine(self, loop: asyncio.AbstractEventLoop) -> Optional[SpeechEngine]:
        try:
            return RealtimeSpeechEngine(loop=loop)
        except Exception as exc:  # noqa: BLE001 - capability check
            logging.warning("speech_unsupported reason=%s", exc)
            return None

    def _read_language(self, key: str, default: str) -> str:
        value = self.preferences.get(key, default)
        return value if is_supported_language(value) else default

    def _auto_submit(self) -> None:
        text = self.ui.input_text()
        if not self.auto_translate or not text.strip():
            return
        self.coordinator.submit(text, self.from_lang, self.to_lang)

    def _on_input_changed(self, text: str) -> None:
        if self._syncing_ui:
            return
        if not text.strip():
            # Empty input always clears the output, auto-translate or not.
            self.coordinator.submit(text, self.from_lang, self.to_lang)
            return
        self._auto_submit()

    def _on_translate_requested(self) -> None:
        text = self.ui.input_text()
        if not text.strip():
            return
        self.coordinator.submit(text, self.from_lang, self.to_lang, immediate=True)

    def _on_translation_cleared(self) -> None:
        self.ui.set_output_text("")
        self.ui.set_status("Ready.")

    def _on_source_language_changed(self, code: str) -> None:
        if self._syncing_ui or not code or code == self.from_lang:
            return
        self.from_lang = code
        self.preferences.set(FROM_LANG_KEY, code)
        self._auto_submit()

    def _on_target_language_changed(self, code: str) -> None:
        if self._syncing_ui or not code or code == self.to_lang:
            return
        self.to_lang = code
        self.preferences.set(TO_LANG_KEY, code)
        self._auto_submit()

    def _on_auto_translate_changed(self, enabled: bool) -> None:
        self.auto_translate = enabled
        self.preferences.set(AUTO_TRANSLATE_KEY, "true" if enabled else "false")

    def _on_listen_toggled(self, should_listen: bool) -> None:
        if not should_listen:
            self.reconciler.stop()
            return
        try:
            self.reconciler.start(self.from_lang)
        except UnsupportedError as exc:
            self.ui.set_speech_supported(False)
            self.ui.show_error(str(exc))

    def _on_listener_state_changed(self, state: ListenerState) -> None:
        listening = state == ListenerState.LISTENING
        self.ui.set_listening(listening)
        self.ui.set_status("Listening..." if listening else "Ready.")

    def _on_copy_requested(self) -> None:
        payload = self.ui.output_text()
        if not payload.strip():
            return
        QApplication.clipboard().setText(payload)
        self.ui.set_status("Copied to clipboard.")


def main() -> None:
    load_dotenv()
    log_level_name = (os.getenv("LOG_LEVEL", "INFO") or "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(message)s")

    app = QApplication(sys.argv)
    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)

    window = TranslatorWindow()
    controller = TranslatorController(window, loop)
    app.aboutToQuit.connect(controller.shutdown_sync)
    window.show()

    with loop:
        loop.run_forever()


if __name__ == "__main__":
    main()
