"""Page-turn sound: a recorded paper sample with a synthesized fallback.

Audio is strictly best effort. ``SoundEngine.play_turn`` never raises and
never blocks; when no output device is usable (headless servers, containers,
WSL without ALSA) playback is skipped and the reason logged once.
"""

from __future__ import annotations

import asyncio
import io
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import requests
import soundfile as sf

from ..config.settings import get_audio_disabled

try:
    import sounddevice as sd
except OSError as exc:  # PortAudio shared library missing
    sd = None
    _IMPORT_ERROR = str(exc)
else:
    _IMPORT_ERROR = ""

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 44100
FLIP_SOUND_DURATION = 0.28
SAMPLE_GAIN = 0.8
FALLBACK_GAIN = 0.6
SAMPLE_FETCH_TIMEOUT = 10.0

# Fraction of the sound spent in the linear attack
_ATTACK = 0.08


class AudioError(Exception):
    """Raised internally when the page-turn sample cannot be fetched or decoded."""
    pass


def synthesize_flip(
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    duration: float = FLIP_SOUND_DURATION,
    channels: int = 2,
    seed: Optional[int] = None,
) -> np.ndarray:
    """Synthesize a paper-flip sound.

    Band-limited noise plus a low "whoosh" sine sweeping from 250 Hz down to
    50 Hz, shaped by a linear attack and a cubic release. The envelope is
    zero at both ends so the buffer starts and stops without a click.

    Args:
        sample_rate: Output sample rate in Hz
        duration: Length in seconds
        channels: Number of output channels
        seed: Seed for the noise generator (reproducible output)

    Returns:
        float32 array of shape (frames, channels) in [-1, 1]
    """
    frames = int(sample_rate * duration)
    if frames < 2:
        return np.zeros((max(frames, 0), channels), dtype=np.float32)

    rng = np.random.default_rng(seed)
    progress = np.arange(frames) / (frames - 1)
    envelope = np.where(
        progress < _ATTACK,
        progress / _ATTACK,
        (1.0 - (progress - _ATTACK) / (1.0 - _ATTACK)) ** 3,
    )
    seconds = np.arange(frames) / sample_rate
    whoosh = np.sin(seconds * (250.0 - progress * 200.0) * 2.0 * np.pi) * 0.25

    out = np.empty((frames, channels), dtype=np.float32)
    for channel in range(channels):
        noise = (rng.random(frames) * 2.0 - 1.0) * 0.6
        out[:, channel] = (noise + whoosh) * envelope * 0.5
    return out


def _linux_has_audio_device() -> bool:
    if not sys.platform.startswith("linux"):
        return True
    snd_path = Path("/dev/snd")
    if not snd_path.exists():
        logger.info("Audio playback disabled: /dev/snd does not exist on this Linux system.")
        return False
    if not any(snd_path.iterdir()):
        logger.info("Audio playback disabled: no ALSA devices found under /dev/snd.")
        return False
    return True


class SoundDevicePlayer:
    """Non-blocking playback through sounddevice, gated by an availability check."""

    def __init__(self):
        self._available: Optional[bool] = None

    def available(self) -> bool:
        """Return True when sounddevice can play audio without crashing (cached)."""
        if self._available is None:
            self._available = self._check_available()
        return self._available

    def _check_available(self) -> bool:
        if get_audio_disabled():
            logger.info("Audio playback disabled because FLIPBOOK_DISABLE_AUDIO is set")
            return False
        if not _linux_has_audio_device():
            return False
        if sd is None:
            logger.warning(f"Audio playback disabled: sounddevice could not be loaded ({_IMPORT_ERROR})")
            return False

        try:
            devices = sd.query_devices()
        except sd.PortAudioError as e:
            logger.warning(f"Audio playback disabled: could not enumerate devices ({e})")
            return False

        if not any(device.get("max_output_channels", 0) > 0 for device in devices):
            logger.info("Audio playback disabled: PortAudio found no usable output devices.")
            return False
        return True

    def play(self, samples: np.ndarray, sample_rate: int) -> bool:
        """Start playback and return immediately. Returns False when skipped."""
        if samples is None or samples.size == 0 or not self.available():
            return False
        try:
            sd.play(samples, sample_rate, blocking=False)
            return True
        except sd.PortAudioError as e:
            logger.warning(f"Audio playback failed and was skipped: {e}")
            return False

    def stop(self) -> None:
        if sd is not None and self._available:
            sd.stop()


class SoundEngine:
    """Plays the page-turn sound once per accepted flip."""

    def __init__(
        self,
        sample_url: Optional[str] = None,
        enabled: bool = True,
        player=None,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        session: Optional[requests.Session] = None,
    ):
        """Initialize sound engine.

        Args:
            sample_url: URL of the recorded page-turn sample, or None to use
                only the synthesized sound
            enabled: Initial sound state (False starts muted)
            player: Object with ``play(samples, sample_rate) -> bool``;
                defaults to a SoundDevicePlayer
            sample_rate: Rate used for the synthesized fallback
            session: Optional requests session for fetching the sample
        """
        self.sample_url = sample_url
        self.player = player if player is not None else SoundDevicePlayer()
        self.sample_rate = sample_rate
        self.session = session or requests.Session()
        self._muted = not enabled
        self._sample: Optional[Tuple[np.ndarray, int]] = None
        self._fallback: Optional[np.ndarray] = None

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def has_sample(self) -> bool:
        return self._sample is not None

    def set_muted(self, muted: bool) -> None:
        self._muted = bool(muted)

    def toggle_mute(self) -> bool:
        """Flip the mute state; returns the new value."""
        self._muted = not self._muted
        return self._muted

    def play_turn(self) -> bool:
        """Fire-and-forget page-turn sound. Returns True if playback started."""
        if self._muted:
            return False
        try:
            if self._sample is not None:
                samples, rate = self._sample
            else:
                samples, rate = self._fallback_buffer(), self.sample_rate
            return bool(self.player.play(samples, rate))
        except Exception as e:
            # audio must never interrupt page turning
            logger.debug(f"Page-turn sound skipped: {e}")
            return False

    async def load_sample(self) -> bool:
        """Fetch and decode the sample without blocking the event loop.

        Returns:
            True if the sample is now used for playback; False when no URL is
            configured or loading failed (the synthesized sound stays in use)
        """
        if not self.sample_url:
            return False
        try:
            data, rate = await asyncio.to_thread(self._fetch_and_decode, self.sample_url)
        except AudioError as e:
            logger.warning(f"Page-turn sample unavailable, using synthesized sound: {e}")
            return False
        self._sample = (data * SAMPLE_GAIN, rate)
        logger.debug(f"Loaded page-turn sample ({len(data)} frames at {rate} Hz)")
        return True

    def _fetch_and_decode(self, url: str) -> Tuple[np.ndarray, int]:
        try:
            response = self.session.get(url, timeout=SAMPLE_FETCH_TIMEOUT)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise AudioError(f"Failed to fetch {url}: {e}") from e

        try:
            data, rate = sf.read(io.BytesIO(response.content), dtype="float32", always_2d=True)
        except (RuntimeError, sf.SoundFileError, TypeError) as e:
            raise AudioError(f"Failed to decode {url}: {e}") from e
        if data.size == 0:
            raise AudioError(f"Sample is empty: {url}")
        return data, rate

    def _fallback_buffer(self) -> np.ndarray:
        if self._fallback is None:
            self._fallback = synthesize_flip(self.sample_rate) * FALLBACK_GAIN
        return self._fallback
