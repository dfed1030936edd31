"""
Signal Validation Tests

Validates that each extractor and source behaves correctly on synthetic
input with known properties, individually and through the sampling channels.

Test strategy:
  - Audio: pure sines at known pitch, silence, seeded noise
  - Face: blendshape dictionaries for neutral / smiling / tense faces
  - Synthetic fallback sources: bounded output over a long time span
  - Channels: EMA smoothing and the device -> synthetic switch
"""

import sys
import os
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np


class TestPitchAutocorrelation(unittest.TestCase):
    """Pitch estimation on pure tones."""

    def test_exact_lag_recovers_frequency(self):
        """100 Hz at 8 kHz has an 80-sample period, which is on the lag grid."""
        from utils.audio_features import estimate_pitch_autocorr
        from tests.fixtures.synthetic_signals import make_sine
        block = make_sine(100, sample_rate=8000, n=2048)
        self.assertAlmostEqual(estimate_pitch_autocorr(block, 8000), 100.0, places=6)

    def test_tone_within_lag_quantization(self):
        """Off-grid periods land on a neighbouring lag (step 2 samples)."""
        from utils.audio_features import estimate_pitch_autocorr
        from tests.fixtures.synthetic_signals import make_sine
        for freq in (150.0, 220.0, 330.0):
            block = make_sine(freq, sample_rate=44100, n=4096)
            pitch = estimate_pitch_autocorr(block, 44100)
            period = 44100 / freq
            tolerance = 44100 / (period - 2) - 44100 / (period + 2)
            self.assertAlmostEqual(pitch, freq, delta=tolerance, msg=f"{freq} Hz")

    def test_silence_is_zero(self):
        from utils.audio_features import estimate_pitch_autocorr
        from tests.fixtures.synthetic_signals import make_silence
        self.assertEqual(estimate_pitch_autocorr(make_silence(), 44100), 0.0)
        self.assertEqual(estimate_pitch_autocorr([], 44100), 0.0)

    def test_noise_pitch_in_search_range(self):
        from utils.audio_features import estimate_pitch_autocorr, PITCH_MAX_HZ
        from tests.fixtures.synthetic_signals import make_noise
        pitch = estimate_pitch_autocorr(make_noise(), 44100)
        upper = 44100 / np.floor(44100 / PITCH_MAX_HZ)
        self.assertTrue(pitch == 0.0 or 60.0 <= pitch <= upper, pitch)


class TestAudioFeatures(unittest.TestCase):
    """RMS normalization and the arousal mix."""

    def test_rms_normalization(self):
        from utils.audio_features import compute_rms, normalize_rms
        from tests.fixtures.synthetic_signals import make_sine
        quiet = make_sine(200, amplitude=0.1, n=44100)
        self.assertAlmostEqual(normalize_rms(compute_rms(quiet)), 0.1 / np.sqrt(2) / 0.2, places=3)
        loud = make_sine(200, amplitude=0.9, n=4096)
        self.assertEqual(normalize_rms(compute_rms(loud)), 1.0)
        self.assertEqual(compute_rms([]), 0.0)

    def test_first_block_arousal_is_energy_only(self):
        """Empty pitch history contributes zero variability."""
        from utils.audio_features import PitchHistory, extract_audio_features
        from tests.fixtures.synthetic_signals import make_sine
        history = PitchHistory()
        rms, pitch, arousal = extract_audio_features(make_sine(100, 8000, 2048, 0.1), 8000, history)
        self.assertAlmostEqual(arousal, 0.7 * rms)
        self.assertAlmostEqual(pitch, 100.0, places=6)

    def test_pitch_variability_raises_arousal(self):
        from utils.audio_features import PitchHistory, extract_audio_features
        from tests.fixtures.synthetic_signals import make_sine
        history = PitchHistory()
        for freq in (100.0, 400.0, 100.0, 400.0):
            history.append(freq)
        block = make_sine(100, 8000, 2048, 0.1)
        rms, _, arousal = extract_audio_features(block, 8000, history)
        # var([100, 400, 100, 400]) = 22500 -> clamps to 1
        self.assertAlmostEqual(arousal, 0.7 * rms + 0.3)

    def test_history_window_is_bounded(self):
        from utils.audio_features import PitchHistory, PITCH_VARIANCE_WINDOW
        history = PitchHistory()
        for _ in range(PITCH_VARIANCE_WINDOW):
            history.append(1000.0)
        history.append(0.0)
        self.assertGreater(history.variability(), 0.0)
        for _ in range(PITCH_VARIANCE_WINDOW):
            history.append(50.0)
        self.assertEqual(history.variability(), 0.0)


class TestSyntheticSources(unittest.TestCase):
    """Synthetic fallbacks stay inside their ranges."""

    def test_audio_ranges(self):
        from utils.signal_sources import SyntheticAudioSource
        src = SyntheticAudioSource()
        self.assertTrue(src.is_synthetic)
        for now in np.linspace(0, 600000, 400):
            r = src.read(float(now))
            self.assertTrue(0.0 <= r.rms_norm <= 1.0)
            self.assertTrue(0.0 <= r.arousal <= 1.0)
            self.assertTrue(140.0 <= r.pitch_hz <= 220.0)

    def test_face_ranges(self):
        from utils.signal_sources import SyntheticFaceSource
        src = SyntheticFaceSource()
        for now in np.linspace(0, 600000, 400):
            p = src.read(float(now))
            for value in p.to_dict().values():
                self.assertTrue(0.0 <= value <= 1.0)


class TestDeviceSources(unittest.TestCase):
    """Device-backed sources analyze pushed data once."""

    def test_microphone_consumes_block_once(self):
        from utils.signal_sources import MicrophoneAudioSource
        from tests.fixtures.synthetic_signals import make_sine
        src = MicrophoneAudioSource(sample_rate=8000)
        self.assertIsNone(src.read(0))
        src.push_block(make_sine(100, 8000, 2048, 0.1))
        reading = src.read(10)
        self.assertAlmostEqual(reading.pitch_hz, 100.0, places=6)
        self.assertIsNone(src.read(20))

    def test_microphone_sanitizes_block(self):
        from utils.signal_sources import MicrophoneAudioSource
        src = MicrophoneAudioSource(sample_rate=8000)
        src.push_block([float("nan"), 5.0, -5.0, 0.0])
        reading = src.read(0)
        self.assertAlmostEqual(reading.rms_norm, 1.0)

    def test_microphone_rejects_multichannel_block(self):
        from utils.signal_sources import MicrophoneAudioSource
        src = MicrophoneAudioSource(sample_rate=8000)
        with self.assertRaises(ValueError):
            src.push_block([[0.1, 0.2], [0.3, 0.4]])
        self.assertIsNone(src.read(0))

    def test_blendshape_source(self):
        from utils.signal_sources import BlendshapeFaceSource
        from tests.fixtures.synthetic_signals import smile_blendshapes
        src = BlendshapeFaceSource()
        src.push_scores(None)
        self.assertIsNone(src.read(0))
        src.push_scores(smile_blendshapes())
        self.assertAlmostEqual(src.read(1).smile_index, 0.8)
        self.assertIsNone(src.read(2))


class TestModalityChannels(unittest.TestCase):
    """EMA smoothing and fallback inside the channels."""

    def test_face_channel_smooths_arousal(self):
        from utils.modality_channels import FaceChannel
        from utils.signal_sources import BlendshapeFaceSource
        from tests.fixtures.synthetic_signals import smile_blendshapes, neutral_blendshapes
        src = BlendshapeFaceSource()
        ch = FaceChannel(src)
        self.assertFalse(ch.has_reading)
        src.push_scores(smile_blendshapes())
        ch.tick(0)
        self.assertAlmostEqual(ch.snapshot().face_arousal, 0.4)
        src.push_scores(neutral_blendshapes())
        ch.tick(66)
        # 0.2 * 0 + 0.8 * 0.4
        self.assertAlmostEqual(ch.snapshot().face_arousal, 0.32)
        self.assertEqual(ch.snapshot().smile_index, 0.0)
        self.assertEqual(ch.mode, "device")

    def test_face_channel_keeps_last_values_without_data(self):
        from utils.modality_channels import FaceChannel
        from utils.signal_sources import BlendshapeFaceSource
        from tests.fixtures.synthetic_signals import smile_blendshapes
        src = BlendshapeFaceSource()
        ch = FaceChannel(src)
        src.push_scores(smile_blendshapes())
        ch.tick(0)
        ch.tick(66)
        self.assertAlmostEqual(ch.snapshot().smile_index, 0.8)

    def test_audio_channel_records_series(self):
        from utils.modality_channels import AudioChannel
        from utils.signal_sources import MicrophoneAudioSource
        from tests.fixtures.synthetic_signals import make_sine
        src = MicrophoneAudioSource(sample_rate=8000)
        ch = AudioChannel(src, series_capacity=3)
        for i in range(5):
            src.push_block(make_sine(100, 8000, 2048, 0.1))
            ch.tick(i * 16.0)
        self.assertEqual(len(ch.rms_series), 3)
        self.assertEqual(ch.pitch_series.values(), [100.0, 100.0, 100.0])
        snap = ch.snapshot()
        self.assertAlmostEqual(snap["pitchHz"], 100.0)
        self.assertTrue(0.0 <= snap["arousal"] <= 1.0)

    def test_unavailable_device_switches_to_synthetic(self):
        from utils.modality_channels import AudioChannel
        from utils.signal_sources import MicrophoneAudioSource
        src = MicrophoneAudioSource()
        ch = AudioChannel(src)
        src.set_available(False)
        with self.assertLogs("utils.modality_channels", level="WARNING") as logs:
            ch.tick(100)
        self.assertTrue(ch.noise_mode)
        self.assertEqual(ch.mode, "synthetic")
        self.assertTrue(ch.has_reading)
        self.assertTrue(any("synthetic_audio" in line for line in logs.output))

    def test_read_error_keeps_last_values(self):
        from unittest.mock import patch
        from utils.modality_channels import FaceChannel
        from utils.signal_sources import SyntheticFaceSource
        ch = FaceChannel(SyntheticFaceSource())
        ch.tick(0)
        before = ch.snapshot()
        with patch.object(SyntheticFaceSource, "read", side_effect=RuntimeError("camera glitch")):
            with self.assertLogs("utils.modality_channels", level="WARNING"):
                ch.tick(66)
        self.assertEqual(ch.snapshot(), before)


if __name__ == "__main__":
    unittest.main()
