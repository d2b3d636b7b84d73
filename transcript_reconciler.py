from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from errors import RecognitionError, RecognitionErrorKind, UnsupportedError
from interfaces import SpeechEngine


@dataclass(frozen=True)
class Hypothesis:
    text: str
    is_final: bool


@dataclass(frozen=True)
class RecognitionEvent:
    hypotheses: tuple[Hypothesis, ...]

    @classmethod
    def of(cls, hypotheses: Iterable[Hypothesis]) -> "RecognitionEvent":
        return cls(hypotheses=tuple(hypotheses))


class ListenerState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"


class TranscriptReconciler:
    """Turns resent hypothesis batches into confirmed text deltas and a live preview.

    Dedup uses a position high-water mark: indices at or below the mark were
    already confirmed and are never emitted again, which keeps engines that
    resend the whole session history on every batch from duplicating text.
    Engines that renumber or rewrite hypotheses after marking them final are
    not handled.

    ``stop()`` returns the listener to IDLE at once, but finals the engine
    still delivers for the stopping session are confirmed until it reports
    its end, so the last words spoken before stopping are kept.
    """

    def __init__(
        self,
        engine: Optional[SpeechEngine],
        on_delta: Optional[Callable[[str], None]] = None,
        on_preview: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        on_state_change: Optional[Callable[[ListenerState], None]] = None,
    ) -> None:
        self._engine = engine
        self._on_delta = on_delta
        self._on_preview = on_preview
        self._on_error = on_error
        self._on_state_change = on_state_change
        self._state = ListenerState.IDLE
        self._high_water_mark = -1
        self._transcript = ""
        self._live_preview = ""
        # Set between stop() and the engine's end; trailing finals still count.
        self._draining = False
        if engine is not None:
            engine.on_result = self.on_hypothesis_batch
            engine.on_error = self.on_recognition_error
            engine.on_end = self.on_engine_end

    @property
    def is_supported(self) -> bool:
        return self._engine is not None

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._state == ListenerState.LISTENING

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def live_preview(self) -> str:
        return self._live_preview

    def start(self, language_tag: str) -> None:
        if self._engine is None:
            raise UnsupportedError()
        if self._state == ListenerState.LISTENING:
            logging.debug("speech_start_skipped reason=already_listening")
            return
        # A new session replaces one that is still draining after stop().
        self._draining = False
        self._high_water_mark = -1
        self._transcript = ""
        self._set_preview("")
        self._engine.lang = language_tag
        self._engine.continuous = True
        self._engine.interim_results = True
        self._transition(ListenerState.LISTENING)
        try:
            self._engine.start()
        except Exception as exc:  # noqa: BLE001 - engine boundary
            logging.warning("speech_start_failed lang=%s error=%s", language_tag, exc)
            self._release_engine(abort=True)
            self._transition(ListenerState.IDLE)
            self._report(RecognitionError.from_code(str(exc) or "start-failed").message)
            return
        logging.info("speech_session_started lang=%s", language_tag)

    def stop(self) -> None:
        if self._state != ListenerState.LISTENING:
            return
        self._transition(ListenerState.IDLE)
        self._set_preview("")
        self._draining = True
        self._release_engine(abort=False)
        logging.info("speech_session_stopped transcript_chars=%d", len(self._transcript))

    def close(self) -> None:
        if self._state == ListenerState.LISTENING or self._draining:
            self._draining = False
            self._transition(ListenerState.IDLE)
            self._release_engine(abort=True)
        if self._engine is not None:
            self._engine.on_result = None
            self._engine.on_error = None
            self._engine.on_end = None

    def on_hypothesis_batch(self, event: RecognitionEvent) -> None:
        if self._state != ListenerState.LISTENING and not self._draining:
            return
        hypotheses = event.hypotheses
        confirmed: list[str] = []
        index = self._high_water_mark + 1
        while index < len(hypotheses) and hypotheses[index].is_final:
            confirmed.append(hypotheses[index].text.strip())
            self._high_water_mark = index
            index += 1

        delta = " ".join(part for part in confirmed if part).strip()
        if delta:
            self._transcript = f"{self._transcript} {delta}".strip()
            logging.debug("speech_delta mark=%d text=%r", self._high_water_mark, delta[:120])
            if self._on_delta is not None:
                self._on_delta(delta)

        if not self._draining:
            self._set_preview(self._preview_for(hypotheses))

    def on_recognition_error(self, code: str) -> None:
        error = RecognitionError.from_code(code)
        logging.info("speech_error code=%s kind=%s", error.code, error.kind.value)
        if error.kind == RecognitionErrorKind.NO_SPEECH_DETECTED:
            return
        if error.is_fatal and (self._state == ListenerState.LISTENING or self._draining):
            self._draining = False
            self._transition(ListenerState.IDLE)
            self._release_engine(abort=True)
        self._report(error.message)

    def on_engine_end(self) -> None:
        if self._draining:
            self._draining = False
            logging.info("speech_session_drained transcript_chars=%d", len(self._transcript))
            return
        if self._state != ListenerState.LISTENING:
            return
        self._transition(ListenerState.IDLE)
        self._set_preview("")
        logging.info("speech_session_ended_by_engine")

    @staticmethod
    def _preview_for(hypotheses: Sequence[Hypothesis]) -> str:
        interim = [h.text.strip() for h in hypotheses if not h.is_final and h.text.strip()]
        if interim:
            return " ".join(interim)
        for hypothesis in reversed(hypotheses):
            if hypothesis.is_final:
                return hypothesis.text.strip()
        return ""

    def _set_preview(self, preview: str) -> None:
        if preview == self._live_preview:
            return
        self._live_preview = preview
        if self._on_preview is not None:
            self._on_preview(preview)

    def _release_engine(self, abort: bool) -> None:
        if self._engine is None:
            return
        try:
            if abort:
                self._engine.abort()
            else:
                self._engine.stop()
        except Exception as exc:  # noqa: BLE001 - engine boundary
            logging.warning("speech_release_failed abort=%s error=%s", abort, exc)

    def _report(self, message: str) -> None:
        if self._on_error is not None:
            self._on_error(message)

    def _transition(self, to_state: ListenerState) -> None:
        if self._state == to_state:
            return
        self._state = to_state
        if self._on_state_change is not None:
            self._on_state_change(to_state)
