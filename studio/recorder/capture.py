"""
Mic Capture - Buffers microphone frames from an SDL capture device.

SDL fills the buffer from its audio thread; the recorder drains it from the
frame loop by calling the capture object.
"""
import logging
import threading
from collections import deque
from typing import Deque, Optional

import numpy as np
import pygame
from pygame._sdl2.audio import AudioDevice, get_audio_device_names, AUDIO_F32

from ..config import SAMPLE_RATE, CAPTURE_CHUNK
from ..errors import MediaError

logger = logging.getLogger(__name__)


class MicCapture:
    """Mono float32 capture source for `Recorder`."""

    def __init__(self, device_name: str, sample_rate: int = SAMPLE_RATE, chunk: int = CAPTURE_CHUNK):
        self.device_name = device_name
        self.sample_rate = sample_rate
        self._buffer: Deque[np.ndarray] = deque()
        self._lock = threading.Lock()
        self._active = False
        try:
            self._device = AudioDevice(
                devicename=device_name,
                iscapture=True,
                frequency=sample_rate,
                audioformat=AUDIO_F32,
                numchannels=1,
                chunksize=chunk,
                allowed_changes=0,
                callback=self._on_audio,
            )
        except pygame.error as e:
            raise MediaError(f'Cannot open microphone {device_name}: {e}') from e

    def _on_audio(self, device, memory):
        # Runs on the SDL audio thread
        if not self._active:
            return
        frames = np.frombuffer(bytes(memory), dtype=np.float32).copy()
        with self._lock:
            self._buffer.append(frames)

    def start(self):
        with self._lock:
            self._buffer.clear()
        self._active = True
        self._device.pause(0)
        logger.debug(f'Mic capture started on {self.device_name}')

    def stop(self):
        self._active = False
        self._device.pause(1)
        logger.debug('Mic capture paused')

    def close(self):
        self.stop()
        self._device.close()

    def __call__(self) -> Optional[np.ndarray]:
        """Everything captured since the last call, or None."""
        with self._lock:
            if not self._buffer:
                return None
            frames = np.concatenate(self._buffer)
            self._buffer.clear()
        return frames


def open_mic_capture(sample_rate: int = SAMPLE_RATE, chunk: int = CAPTURE_CHUNK) -> MicCapture:
    """Open the first capture device. Raises MediaError when there is none."""
    try:
        if not pygame.mixer.get_init():
            pygame.mixer.init(frequency=sample_rate)
        names = get_audio_device_names(True)
    except pygame.error as e:
        raise MediaError(f'Audio unavailable: {e}') from e

    if not names:
        raise MediaError('No capture device found')
    logger.info(f'Microphone: {names[0]}')
    return MicCapture(names[0], sample_rate, chunk)
