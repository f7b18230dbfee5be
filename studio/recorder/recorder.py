"""
Recorder - Captures mic chunks, mixes in the background track, emits a WAV blob.
"""
import time
import logging
from typing import Callable, Optional, List

import numpy as np

from ..config import SAMPLE_RATE, RECORD_MIN_SECONDS, RECORD_MAX_SECONDS, VIDEO_BUCKET
from ..errors import MediaError, RemoteError
from .mixer import AudioMixer, to_wav_bytes

logger = logging.getLogger(__name__)

# Returns the next float32 chunk, or None when nothing is buffered yet
CaptureSource = Callable[[], Optional[np.ndarray]]


class Recorder:
    """Pull-based recorder with an auto-stop cap.

    Call `poll()` from the frame loop while recording; it drains the capture
    source and stops on its own once the cap is reached.
    """

    def __init__(self, capture: Optional[CaptureSource], mixer: Optional[AudioMixer] = None,
                 max_seconds: float = RECORD_MAX_SECONDS, sample_rate: int = SAMPLE_RATE):
        self.capture = capture
        self.mixer = mixer or AudioMixer()
        self.max_seconds = max(RECORD_MIN_SECONDS, min(RECORD_MAX_SECONDS, max_seconds))
        self.sample_rate = sample_rate
        self.recording = False
        self.disabled = capture is None
        self.blob: Optional[bytes] = None
        self._chunks: List[np.ndarray] = []
        self._frames = 0
        self.started_at = 0.0

    @property
    def elapsed(self) -> float:
        return self._frames / self.sample_rate

    @property
    def remaining(self) -> float:
        return max(0.0, self.max_seconds - self.elapsed)

    def start(self):
        if self.disabled:
            raise MediaError('No capture device available')
        if self.recording:
            return
        start_capture = getattr(self.capture, 'start', None)
        if start_capture is not None:
            start_capture()
        self._chunks = []
        self._frames = 0
        self.blob = None
        self.mixer.reset()
        self.recording = True
        self.started_at = time.time()
        logger.info(f'Recording started (cap {self.max_seconds:.0f}s)')

    def poll(self) -> bool:
        """Drain available capture chunks. Returns True while still recording."""
        if not self.recording:
            return False

        limit = int(self.max_seconds * self.sample_rate)
        while self._frames < limit:
            try:
                chunk = self.capture()
            except (OSError, RuntimeError) as e:
                self.recording = False
                self._stop_capture()
                self.disabled = True
                logger.error(f'Capture failed: {e}', exc_info=True)
                raise MediaError(f'Capture failed: {e}') from e
            if chunk is None or len(chunk) == 0:
                break
            chunk = np.asarray(chunk, dtype=np.float32)[:limit - self._frames]
            self._chunks.append(self.mixer.mix(chunk))
            self._frames += len(chunk)

        if self._frames >= limit:
            logger.info('Recording reached its length cap')
            self.stop()
            return False
        return True

    def _stop_capture(self):
        stop_capture = getattr(self.capture, 'stop', None)
        if stop_capture is not None:
            stop_capture()

    def stop(self) -> Optional[bytes]:
        """Stop and emit the mixed recording as a single WAV blob."""
        if not self.recording:
            return self.blob
        self._stop_capture()
        self.recording = False
        stereo = np.concatenate(self._chunks) if self._chunks else np.zeros((0, 2), dtype=np.float32)
        self._chunks = []
        self.blob = to_wav_bytes(stereo, self.sample_rate)
        logger.info(f'Recording stopped: {self.elapsed:.1f}s, {len(self.blob)} bytes')
        return self.blob

    def close(self):
        """Stop any take in progress and release the capture device."""
        if self.recording:
            self.stop()
        close_capture = getattr(self.capture, 'close', None)
        if close_capture is not None:
            close_capture()


def publish_recording(store, blob: bytes, user_id: str, title: str, categories: List[str],
                      channel_id: Optional[str] = None, server=None) -> Optional[dict]:
    """Upload a recording and create its `studio_videos` row. None on failure."""
    if not blob or not user_id:
        return None
    if not title and server:
        title = server.caption('New reel') or ''

    path = f'{user_id}/reel-{int(time.time() * 1000)}.wav'
    try:
        store.upload(VIDEO_BUCKET, path, blob, 'audio/wav')
        row = store.insert('studio_videos', {
            'user_id': user_id,
            'channel_id': channel_id,
            'title': title or 'Untitled reel',
            'video_url': path,
            'categories': list(categories),
            'views': 0,
            'likes': 0,
        })
    except RemoteError as e:
        logger.error(f'Publishing recording failed: {e}')
        return None
    logger.info(f'Published recording {row.get("id")}')
    return row
