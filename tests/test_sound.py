"""Unit tests for the page-turn sound engine."""

import asyncio
import io
from unittest.mock import MagicMock

import numpy as np
import pytest
import requests
import soundfile as sf

from flipbook.pipeline import sound as sound_module
from flipbook.pipeline.sound import FALLBACK_GAIN, SAMPLE_GAIN, SoundDevicePlayer, SoundEngine, synthesize_flip


class _RecordingPlayer:
    def __init__(self, result=True, error=None):
        self.calls = []
        self.result = result
        self.error = error

    def play(self, samples, sample_rate):
        if self.error is not None:
            raise self.error
        self.calls.append((samples, sample_rate))
        return self.result


def _wav_bytes(frames: int = 4410, rate: int = 22050) -> bytes:
    buffer = io.BytesIO()
    sf.write(buffer, np.full((frames, 1), 0.5, dtype=np.float32), rate, format="WAV")
    return buffer.getvalue()


class TestSynthesizeFlip:
    """Test the synthesized fallback sound."""

    def test_shape_and_type(self):
        samples = synthesize_flip(sample_rate=44100, duration=0.28, channels=2, seed=1)
        assert samples.shape == (int(44100 * 0.28), 2)
        assert samples.dtype == np.float32

    def test_silent_at_both_ends(self):
        samples = synthesize_flip(seed=3)
        assert np.all(samples[0] == 0)
        assert np.all(samples[-1] == 0)

    def test_within_unit_range(self):
        samples = synthesize_flip(seed=5)
        assert np.max(np.abs(samples)) <= 1.0
        assert np.max(np.abs(samples)) > 0.05

    def test_reproducible_with_seed(self):
        assert np.array_equal(synthesize_flip(seed=7), synthesize_flip(seed=7))

    def test_degenerate_length(self):
        assert synthesize_flip(sample_rate=1, duration=1.0).shape == (1, 2)


class TestSoundEngine:
    """Test playback decisions."""

    def test_plays_fallback_when_no_sample(self):
        player = _RecordingPlayer()
        engine = SoundEngine(sample_url=None, player=player, sample_rate=8000)

        assert engine.play_turn()
        samples, rate = player.calls[0]
        assert rate == 8000
        assert np.max(np.abs(samples)) <= FALLBACK_GAIN

    def test_muted_does_not_play(self):
        player = _RecordingPlayer()
        engine = SoundEngine(player=player, enabled=False)

        assert engine.muted
        assert not engine.play_turn()
        assert player.calls == []

    def test_toggle_mute(self):
        engine = SoundEngine(player=_RecordingPlayer())
        assert engine.toggle_mute() is True
        assert engine.toggle_mute() is False
        engine.set_muted(True)
        assert engine.muted

    def test_player_errors_are_swallowed(self):
        engine = SoundEngine(player=_RecordingPlayer(error=RuntimeError("device busy")))
        assert engine.play_turn() is False

    def test_load_sample(self):
        session = MagicMock()
        session.get.return_value.content = _wav_bytes()
        player = _RecordingPlayer()
        engine = SoundEngine(sample_url="https://cdn.example.com/flip.wav", player=player, session=session)

        assert asyncio.run(engine.load_sample())
        assert engine.has_sample
        engine.play_turn()
        samples, rate = player.calls[0]
        assert rate == 22050
        assert samples[0, 0] == pytest.approx(0.5 * SAMPLE_GAIN, abs=1e-3)

    def test_load_sample_network_failure_keeps_fallback(self):
        session = MagicMock()
        session.get.side_effect = requests.exceptions.ConnectionError("offline")
        engine = SoundEngine(sample_url="https://cdn.example.com/flip.mp3", player=_RecordingPlayer(), session=session)

        assert not asyncio.run(engine.load_sample())
        assert not engine.has_sample
        assert engine.play_turn()

    def test_load_sample_undecodable(self):
        session = MagicMock()
        session.get.return_value.content = b"<html>not audio</html>"
        engine = SoundEngine(sample_url="https://cdn.example.com/flip.mp3", player=_RecordingPlayer(), session=session)

        assert not asyncio.run(engine.load_sample())

    def test_load_sample_without_url(self):
        assert not asyncio.run(SoundEngine(sample_url=None, player=_RecordingPlayer()).load_sample())


class TestSoundDevicePlayer:
    """Test the availability check."""

    def test_disabled_by_environment(self, monkeypatch):
        monkeypatch.setenv("FLIPBOOK_DISABLE_AUDIO", "1")
        player = SoundDevicePlayer()

        assert not player.available()
        assert not player.play(np.zeros((10, 2), dtype=np.float32), 44100)

    def test_missing_library(self, monkeypatch):
        monkeypatch.delenv("FLIPBOOK_DISABLE_AUDIO", raising=False)
        monkeypatch.setattr(sound_module, "_linux_has_audio_device", lambda: True)
        monkeypatch.setattr(sound_module, "sd", None)

        assert not SoundDevicePlayer().available()

    def test_no_output_devices(self, monkeypatch):
        monkeypatch.delenv("FLIPBOOK_DISABLE_AUDIO", raising=False)
        monkeypatch.setattr(sound_module, "_linux_has_audio_device", lambda: True)
        fake_sd = MagicMock()
        fake_sd.query_devices.return_value = [{"name": "mic", "max_output_channels": 0}]
        monkeypatch.setattr(sound_module, "sd", fake_sd)

        assert not SoundDevicePlayer().available()

    def test_plays_when_available(self, monkeypatch):
        monkeypatch.delenv("FLIPBOOK_DISABLE_AUDIO", raising=False)
        monkeypatch.setattr(sound_module, "_linux_has_audio_device", lambda: True)
        fake_sd = MagicMock()
        fake_sd.query_devices.return_value = [{"name": "speakers", "max_output_channels": 2}]
        monkeypatch.setattr(sound_module, "sd", fake_sd)
        samples = np.zeros((10, 2), dtype=np.float32)

        assert SoundDevicePlayer().play(samples, 44100)
        fake_sd.play.assert_called_once_with(samples, 44100, blocking=False)
