"""Sounddevice-backed, interruptible audio playback for synthesized speech."""

import logging
import threading
from typing import Optional

import numpy as np
import sounddevice as sd

from .engine import TTSError


class SoundDeviceAudioOutput:
    """Plays mono PCM arrays through a selected sounddevice output."""
    def __init__(
        self,
        output_device_index: Optional[int] = None,
        blocksize: int = 2048,
        logger: Optional[logging.Logger] = None,
    ):
        self._output_device_index = output_device_index
        self._blocksize = blocksize
        self._logger = logger or logging.getLogger(__name__)

    def play(
        self,
        wav: np.ndarray,
        sample_rate_hz: int,
        stop_event: Optional[threading.Event] = None,
    ) -> bool:
        """Block until `wav` has played; return False if `stop_event` cut it short."""
        if wav.ndim != 1:
            raise TTSError("Expected mono PCM array for playback")
        if len(wav) == 0:
            self._logger.debug("Skipping empty audio buffer")
            return not (stop_event is not None and stop_event.is_set())

        pos = 0
        finished = threading.Event()

        def callback(outdata, frames, time_info, status):
            nonlocal pos
            if status:
                self._logger.warning("Sounddevice status: %s", status)

            if stop_event is not None and stop_event.is_set():
                outdata.fill(0)
                raise sd.CallbackStop()

            end = pos + frames
            chunk = wav[pos:end]

            if len(chunk) < frames:
                outdata[: len(chunk), 0] = chunk
                outdata[len(chunk) :, 0] = 0
                raise sd.CallbackStop()

            outdata[:, 0] = chunk
            pos = end

        duration_seconds = len(wav) / sample_rate_hz
        try:
            with sd.OutputStream(
                channels=1,
                samplerate=sample_rate_hz,
                blocksize=self._blocksize,
                callback=callback,
                device=self._output_device_index,
                finished_callback=finished.set,
            ):
                finished.wait(timeout=duration_seconds + 1.0)
        except Exception as error:
            raise TTSError(f"Audio playback failed: {error}") from error

        return not (stop_event is not None and stop_event.is_set())
