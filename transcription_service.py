from __future__ import annotations

import asyncio
import base64
import logging
import os
from contextlib import suppress
from typing import Any, Callable, Optional

import numpy as np
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from audio_listener import MicrophoneListener, StreamingAudioFrame
from config_utils import read_float_env, read_int_env, read_str_env
from languages import speech_language_hint
from transcript_reconciler import Hypothesis, RecognitionEvent


class RealtimeSpeechEngine:
    """Streaming speech engine on top of the OpenAI realtime transcription API.

    Mirrors the surface of a browser speech-recognition object: configure
    ``lang``, ``continuous`` and ``interim_results``, assign the ``on_*``
    handlers, then ``start()``. Every update re-sends the full list of
    hypotheses for the session, one per committed audio item, in arrival order.
    ``on_end`` fires exactly once for every started session, unless a new
    ``start()`` replaces a session that is still draining after ``stop()``;
    the replaced session then goes quiet.
    """

    TARGET_SAMPLE_RATE = 24000

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        api_key: Optional[str] = None,
        listener: Optional[MicrophoneListener] = None,
    ) -> None:
        key = api_key or os.getenv("OPENAI_API_KEY")
        if not key:
            raise RuntimeError("OPENAI_API_KEY is required for speech recognition.")
        self._loop = loop
        self._client = AsyncOpenAI(api_key=key)
        self._session_model = read_str_env("REALTIME_SESSION_MODEL", "gpt-realtime-mini")
        self._model = read_str_env("TRANSCRIPTION_MODEL", "gpt-4o-mini-transcribe")
        self._vad_threshold = read_float_env("REALTIME_VAD_THRESHOLD", 0.5)
        self._vad_prefix_padding_ms = read_int_env("REALTIME_VAD_PREFIX_MS", 300)
        self._vad_silence_duration_ms = read_int_env("REALTIME_VAD_SILENCE_MS", 500)
        self._no_speech_seconds = read_float_env("REALTIME_NO_SPEECH_SECONDS", 8.0)
        self._stop_grace_seconds = read_float_env("REALTIME_STOP_GRACE_SECONDS", 1.5)
        self._frame_queue: asyncio.Queue[StreamingAudioFrame] = asyncio.Queue(
            maxsize=read_int_env("REALTIME_FRAME_QUEUE_MAXSIZE", 64)
        )
        self._listener = listener or MicrophoneListener(
            loop=loop,
            output_queue=self._frame_queue,
            preferred_device=os.getenv("AUDIO_INPUT_DEVICE"),
        )

        self.lang = "en-US"
        self.continuous = True
        self.interim_results = True
        self.on_start: Optional[Callable[[], None]] = None
        self.on_result: Optional[Callable[[RecognitionEvent], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None
        self.on_end: Optional[Callable[[], None]] = None

        self._session_task: Optional[asyncio.Task[None]] = None
        self._session_io_tasks: list[asyncio.Task[None]] = []
        self._generation = 0
        self._abort_requested = False
        self._stop_requested = asyncio.Event()
        self._item_order: list[str] = []
        self._item_text: dict[str, str] = {}
        self._final_items: set[str] = set()
        self._last_activity = 0.0

    @property
    def is_running(self) -> bool:
        return self._session_task is not None and not self._session_task.done()

    def start(self) -> None:
        previous = self._session_task if self.is_running else None
        if previous is not None:
            # A session still draining after stop() is dropped without callbacks.
            logging.info("speech_session_superseded")
            for task in self._session_io_tasks:
                task.cancel()
            previous.cancel()
        self._generation += 1
        self._reset_session()
        self._session_task = self._loop.create_task(
            self._run_session(self._generation, previous), name="speech-session"
        )

    def stop(self) -> None:
        if self.is_running:
            self._stop_requested.set()

    def abort(self) -> None:
        if self.is_running and not self._abort_requested:
            self._abort_requested = True
            self._session_task.cancel()  # type: ignore[union-attr]

    def _reset_session(self) -> None:
        self._stop_requested = asyncio.Event()
        self._abort_requested = False
        self._session_io_tasks = []
        self._item_order.clear()
        self._item_text.clear()
        self._final_items.clear()
        while not self._frame_queue.empty():
            try:
                self._frame_queue.get_nowait()
            except asyncio.QueueEmpty:
                break

    async def _run_session(self, generation: int, previous: Optional[asyncio.Task[None]] = None) -> None:
        connection = None
        tasks: list[asyncio.Task[None]] = []

        def current() -> bool:
            return generation == self._generation

        try:
            if previous is not None:
                # Let the superseded session release the microphone and socket first.
                await asyncio.wait({previous})
            try:
                connection = await self._connect()
            except APIStatusError as exc:
                logging.warning("speech_connect_failed status=%d", exc.status_code)
                self._emit_error("not-allowed" if exc.status_code in (401, 403) else "network")
                return
            except Exception as exc:  # noqa: BLE001 - realtime startup boundary
                logging.warning("speech_connect_failed error=%s", exc)
                self._emit_error("network")
                return

            try:
                self._listener.start()
            except Exception as exc:  # noqa: BLE001 - audio device boundary
                logging.warning("speech_audio_capture_failed error=%s", exc)
                self._emit_error("audio-capture")
                return

            self._last_activity = self._loop.time()
            self._emit(self.on_start)
            tasks.append(self._loop.create_task(self._receive_events(connection), name="speech-recv"))
            tasks.append(self._loop.create_task(self._pump_audio(connection), name="speech-audio"))
            self._session_io_tasks = list(tasks)
            await self._stop_requested.wait()
            self._listener.stop()
            await self._await_pending_finals()
        except asyncio.CancelledError:
            # An explicit abort() is already known to the caller.
            if current() and not self._abort_requested:
                self._emit_error("aborted")
        finally:
            self._listener.stop()
            for task in tasks:
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
            if connection is not None:
                with suppress(Exception):
                    await connection.close()
            if current():
                self._emit(self.on_end)

    async def _connect(self) -> Any:
        connection = await self._client.realtime.connect(model=self._session_model).enter()
        transcription_config: dict[str, Any] = {"model": self._model}
        language_hint = speech_language_hint(self.lang)
        if language_hint:
            transcription_config["language"] = language_hint
        try:
            await connection.session.update(
                session={
                    "type": "transcription",
                    "audio": {
                        "input": {
                            "format": {"type": "audio/pcm", "rate": self.TARGET_SAMPLE_RATE},
                            "transcription": transcription_config,
                            "turn_detection": {
                                "type": "server_vad",
                                "prefix_padding_ms": self._vad_prefix_padding_ms,
                                "silence_duration_ms": self._vad_silence_duration_ms,
                                "threshold": self._vad_threshold,
                            },
                        }
                    },
                }
            )
        except Exception:
            with suppress(Exception):
                await connection.close()
            raise
        return connection

    async def _pump_audio(self, connection: Any) -> None:
        while True:
            try:
                frame = await asyncio.wait_for(self._frame_queue.get(), timeout=0.5)
            except asyncio.TimeoutError:
                frame = None
            if frame is not None:
                pcm16_bytes = self._to_pcm16_24khz(frame.samples, frame.sample_rate)
                await connection.input_audio_buffer.append(audio=base64.b64encode(pcm16_bytes).decode("ascii"))
            if self._loop.time() - self._last_activity >= self._no_speech_seconds:
                self._last_activity = self._loop.time()
                self._emit_error("no-speech")

    async def _receive_events(self, connection: Any) -> None:
        try:
            async for event in connection:
                self._handle_event(event)
        except asyncio.CancelledError:
            raise
        except APIConnectionError as exc:
            logging.warning("speech_connection_lost error=%s", exc)
            self._emit_error("network")
            self._stop_requested.set()
        except Exception as exc:  # noqa: BLE001 - realtime boundary
            logging.warning("speech_receive_failed error=%s", exc)
            self._emit_error("network")
            self._stop_requested.set()

    def _handle_event(self, event: Any) -> None:
        event_type = getattr(event, "type", "")
        item_id = getattr(event, "item_id", "") or ""
        if event_type in ("input_audio_buffer.speech_started", "input_audio_buffer.committed"):
            self._last_activity = self._loop.time()
            self._track_item(item_id)
            return
        if event_type == "conversation.item.input_audio_transcription.delta":
            self._last_activity = self._loop.time()
            delta = getattr(event, "delta", None) or ""
            if not item_id or not delta or item_id in self._final_items:
                return
            self._track_item(item_id)
            self._item_text[item_id] = self._merge_preview_text(self._item_text.get(item_id, ""), delta)
            if self.interim_results:
                self._emit_batch()
            return
        if event_type == "conversation.item.input_audio_transcription.completed":
            transcript = (getattr(event, "transcript", None) or "").strip()
            self._finalize_item(item_id, transcript)
            return
        if event_type == "conversation.item.input_audio_transcription.failed":
            message = getattr(getattr(event, "error", None), "message", None) or "transcription-failed"
            logging.warning("speech_item_failed item=%s error=%s", item_id, message)
            # Finalize with empty text so later items are not held back.
            self._finalize_item(item_id, "")
            self._emit_error(str(message))
            return
        if event_type == "error":
            message = getattr(getattr(event, "error", None), "message", None) or "unknown"
            self._emit_error(str(message))

    def _track_item(self, item_id: str) -> None:
        if item_id and item_id not in self._item_text:
            self._item_order.append(item_id)
            self._item_text[item_id] = ""

    def _finalize_item(self, item_id: str, transcript: str) -> None:
        if not item_id or item_id in self._final_items:
            return
        self._track_item(item_id)
        self._item_text[item_id] = transcript
        self._final_items.add(item_id)
        self._emit_batch()
        if not self.continuous:
            self._stop_requested.set()

    def _emit_batch(self) -> None:
        event = RecognitionEvent.of(
            Hypothesis(text=self._item_text[item_id], is_final=item_id in self._final_items)
            for item_id in self._item_order
        )
        if self.on_result is not None:
            self.on_result(event)

    async def _await_pending_finals(self) -> None:
        deadline = self._loop.time() + self._stop_grace_seconds
        while self._loop.time() < deadline:
            if all(item_id in self._final_items for item_id in self._item_order):
                return
            await asyncio.sleep(0.05)

    def _emit_error(self, code: str) -> None:
        if self.on_error is not None:
            self.on_error(code)

    @staticmethod
    def _emit(callback: Optional[Callable[[], None]]) -> None:
        if callback is not None:
            callback()

    @staticmethod
    def _merge_preview_text(current: str, delta: str) -> str:
        current = " ".join((current or "").split())
        delta = " ".join((delta or "").split())
        if not current:
            return delta
        if not delta:
            return current
        return f"{current}{delta}" if current.endswith(("-", "/")) else f"{current} {delta}".strip()

    @classmethod
    def _to_pcm16_24khz(cls, samples: np.ndarray, sample_rate: int) -> bytes:
        mono = np.asarray(samples, dtype=np.float32).reshape(-1)
        if sample_rate != cls.TARGET_SAMPLE_RATE and mono.shape[0] > 0:
            target_len = max(1, int(round(mono.shape[0] * cls.TARGET_SAMPLE_RATE / sample_rate)))
            src_x = np.linspace(0.0, 1.0, num=mono.shape[0], endpoint=False)
            dst_x = np.linspace(0.0, 1.0, num=target_len, endpoint=False)
            mono = np.interp(dst_x, src_x, mono).astype(np.float32)
        clamped = np.clip(mono, -1.0, 1.0)
        return (clamped * 32767).astype(np.int16).tobytes()
