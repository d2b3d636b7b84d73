from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import numpy as np
import sounddevice as sd


@dataclass
class StreamingAudioFrame:
    captured_at: datetime
    sample_rate: int
    samples: np.ndarray


class MicrophoneListener:
    """Captures the microphone and hands mono float32 frames to an asyncio queue.

    The sounddevice callback runs on the audio thread; frames cross into the
    event loop through ``call_soon_threadsafe``. When the consumer falls
    behind, the oldest queued frame is discarded so dictation stays live.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        output_queue: asyncio.Queue[StreamingAudioFrame],
        sample_rate: int = 16000,
        channels: int = 1,
        preferred_device: Optional[str] = None,
    ) -> None:
        self._loop = loop
        self._frames = output_queue
        self._sample_rate = sample_rate
        self._channels = channels
        self._device_hint = (preferred_device or "").strip().lower()

        self._stream: Optional[sd.InputStream] = None
        self._lock = threading.Lock()
        self._running = False
        self._dropped_frames = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def dropped_frames(self) -> int:
        return self._dropped_frames

    @staticmethod
    def input_devices() -> list[tuple[int, str]]:
        return [
            (index, str(info.get("name", "Unknown input device")))
            for index, info in enumerate(sd.query_devices())
            if int(info.get("max_input_channels", 0)) > 0
        ]

    def start(self) -> None:
        if self._running:
            return
        device = self._resolve_input_device()
        stream = sd.InputStream(
            samplerate=self._sample_rate,
            channels=self._channels,
            dtype="float32",
            callback=self._on_audio,
            device=device,
        )
        stream.start()
        with self._lock:
            self._stream = stream
            self._dropped_frames = 0
            self._running = True
        logging.info("microphone_started device=%s rate=%d", "default" if device is None else device, self._sample_rate)

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()
        logging.info("microphone_stopped dropped_frames=%d", self._dropped_frames)

    def _on_audio(self, indata, frames, time_info, status) -> None:
        del frames, time_info
        if status:
            logging.debug("microphone_status status=%s", status)
        if not self._running:
            return
        # Averaging also copies, so the driver can reuse its buffer.
        mono = np.asarray(indata, dtype=np.float32).mean(axis=1)
        self._loop.call_soon_threadsafe(self._enqueue, mono, datetime.now())

    def _enqueue(self, samples: np.ndarray, captured_at: datetime) -> None:
        if not self._running:
            return
        frame = StreamingAudioFrame(captured_at=captured_at, sample_rate=self._sample_rate, samples=samples)
        if self._frames.full():
            try:
                self._frames.get_nowait()
            except asyncio.QueueEmpty:
                pass
            else:
                self._dropped_frames += 1
        self._frames.put_nowait(frame)

    def _resolve_input_device(self) -> Optional[int]:
        if not self._device_hint:
            return None
        for index, name in self.input_devices():
            if self._device_hint in name.lower():
                return index
        raise RuntimeError(f"AUDIO_INPUT_DEVICE '{self._device_hint}' did not match any input device.")
