"""
Studio Recorder - Voice-over capture and mixing.
"""
from .capture import MicCapture, open_mic_capture
from .mixer import AudioMixer, load_wav, to_wav_bytes, mixer_for_track
from .recorder import Recorder, publish_recording

__all__ = [
    'MicCapture', 'open_mic_capture',
    'AudioMixer', 'load_wav', 'to_wav_bytes', 'mixer_for_track',
    'Recorder', 'publish_recording',
]
