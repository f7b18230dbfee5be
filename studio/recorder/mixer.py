"""
Audio Mixer - Mic + background track into one stereo stream.
"""
import io
import wave
import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np

from ..config import SAMPLE_RATE, MIC_GAIN, BACKGROUND_GAIN
from ..errors import MediaError

logger = logging.getLogger(__name__)


def _to_mono(frames: np.ndarray) -> np.ndarray:
    frames = np.asarray(frames, dtype=np.float32)
    if frames.ndim == 2:
        frames = frames.mean(axis=1)
    return frames.reshape(-1)


def load_wav(path: Union[str, Path]) -> np.ndarray:
    """Read a 16-bit PCM WAV file as float32 mono in [-1, 1]."""
    try:
        with wave.open(str(path), 'rb') as wf:
            channels = wf.getnchannels()
            width = wf.getsampwidth()
            raw = wf.readframes(wf.getnframes())
    except (wave.Error, OSError, EOFError) as e:
        raise MediaError(f'Cannot read background track {path}: {e}') from e

    if width != 2:
        raise MediaError(f'Unsupported sample width {width * 8} bits in {path}')
    samples = np.frombuffer(raw, dtype='<i2').astype(np.float32) / 32768.0
    if channels > 1:
        samples = samples.reshape(-1, channels).mean(axis=1)
    return samples


def to_wav_bytes(stereo: np.ndarray, sample_rate: int = SAMPLE_RATE) -> bytes:
    """Encode float32 (n, 2) frames as a 16-bit PCM WAV file."""
    pcm = (np.clip(stereo, -1.0, 1.0) * 32767).astype('<i2')
    buf = io.BytesIO()
    with wave.open(buf, 'wb') as wf:
        wf.setnchannels(2)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm.tobytes())
    return buf.getvalue()


class AudioMixer:
    """Gain per source, then a channel merger feeding both sources to both channels."""

    def __init__(self, mic_gain: float = MIC_GAIN, background_gain: float = BACKGROUND_GAIN,
                 background: Optional[np.ndarray] = None):
        self.mic_gain = mic_gain
        self.background_gain = background_gain
        self.background = _to_mono(background) if background is not None else None
        self._bg_cursor = 0

    def reset(self):
        self._bg_cursor = 0

    def _background_chunk(self, length: int) -> np.ndarray:
        """Next `length` samples of the background track, looping."""
        if self.background is None or len(self.background) == 0:
            return np.zeros(length, dtype=np.float32)
        idx = (np.arange(length) + self._bg_cursor) % len(self.background)
        self._bg_cursor = (self._bg_cursor + length) % len(self.background)
        return self.background[idx]

    def mix(self, mic: np.ndarray) -> np.ndarray:
        """Mix one mic chunk with the background. Returns float32 (n, 2)."""
        mic = _to_mono(mic)
        combined = mic * self.mic_gain + self._background_chunk(len(mic)) * self.background_gain
        combined = np.clip(combined, -1.0, 1.0).astype(np.float32)
        return np.column_stack([combined, combined])


def mixer_for_track(path: Optional[Union[str, Path]] = None, sample_rate: int = SAMPLE_RATE) -> AudioMixer:
    """Mixer with the background track at `path` loaded, or mic only when unset."""
    if not path:
        return AudioMixer()
    background = load_wav(path)
    logger.info(f'Background track: {path} ({len(background) / sample_rate:.1f}s)')
    return AudioMixer(background=background)
