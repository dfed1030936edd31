"""
Service layer tests.

Tests the transcript store and the affect session (fusion tick, bucket
transitions, tip rotation, bookmarks, export) driven by a manual clock.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import unittest
from unittest.mock import MagicMock


class TestTranscriptStore(unittest.TestCase):
    """Test transcript turn scoring and lookup."""

    def setUp(self):
        from services.transcript_store import TranscriptStore
        self.store = TranscriptStore()

    def test_add_turn_scores_text(self):
        turn = self.store.add_turn("User", "I am happy", 1000)
        self.assertAlmostEqual(turn.valence, 0.5)
        self.assertAlmostEqual(turn.dominance, 1 / 3)
        d = turn.to_dict()
        self.assertAlmostEqual(d["vad"]["v"], 0.75)
        self.assertEqual(d["speaker"], "User")

    def test_unknown_speaker_rejected(self):
        with self.assertRaises(ValueError):
            self.store.add_turn("Robot", "hello", 0)

    def test_latest_user_turn_at(self):
        self.store.add_turn("User", "first", 100)
        self.store.add_turn("Coach", "coach reply", 200)
        self.store.add_turn("User", "later", 900)
        self.assertEqual(self.store.latest_user_turn_at(500).text, "first")
        self.assertEqual(self.store.latest_user_turn_at(900).text, "later")
        self.assertIsNone(self.store.latest_user_turn_at(50))

    def test_token_frequencies_user_only(self):
        self.store.add_turn("User", "good good day", 0)
        self.store.add_turn("Coach", "good good good", 1)
        self.assertEqual(self.store.token_frequencies(), [("good", 2), ("day", 1)])

    def test_bounded_turns(self):
        from services.transcript_store import TranscriptStore
        store = TranscriptStore(max_turns=2)
        for i in range(3):
            store.add_turn("User", f"turn {i}", i)
        self.assertEqual([t.text for t in store.turns()], ["turn 1", "turn 2"])
        store.clear()
        self.assertEqual(store.turns(), [])


class TestAffectSession(unittest.TestCase):
    """Test the session pipeline with deterministic ticks."""

    def setUp(self):
        from utils.capability import reset_signal_mode
        from utils.tick_scheduler import ManualClock
        from affect_session import AffectSession
        reset_signal_mode()
        self.clock = ManualClock(0)
        self.session = AffectSession(clock=self.clock)

    def tearDown(self):
        from utils.capability import reset_signal_mode
        if self.session.is_running:
            self.session.stop()
        reset_signal_mode()

    def _start_devices(self):
        from utils.capability import ModalityCapability
        self.session.start(ModalityCapability(audio_available=True, camera_available=True), run_thread=False)

    def _run(self, ticks, step_ms=500):
        for _ in range(ticks):
            self.session.scheduler.run_due()
            self.clock.advance(step_ms)

    def test_no_capability_means_synthetic(self):
        self.session.start(None, run_thread=False)
        state = self.session.get_current_state().to_dict()
        self.assertEqual(state["audioMode"], "synthetic")
        self.assertEqual(state["faceMode"], "synthetic")
        self.assertTrue(state["noiseMode"])
        self.assertFalse(self.session.push_audio_block([0.1, 0.2], 44100))
        self.assertFalse(self.session.push_face_scores({"jawOpen": 0.5}))

    def test_forced_synthetic_mode(self):
        from utils.capability import set_signal_mode
        set_signal_mode("synthetic")
        self._start_devices()
        self.assertEqual(self.session.audio.mode, "synthetic")
        self.assertEqual(self.session.face.mode, "synthetic")

    def test_first_tick_with_no_signals(self):
        """Devices granted but silent: every modality absent, V=0.3 A=0 D=0.5."""
        from utils.cbt_tips import Bucket, tips_for_bucket
        self._start_devices()
        self._run(1)
        state = self.session.get_current_state()
        self.assertAlmostEqual(state.vad.v, 0.3)
        self.assertAlmostEqual(state.vad.a, 0.0)
        self.assertAlmostEqual(state.vad.d, 0.5)
        self.assertIs(state.bucket, Bucket.LOW_V_LOW_A)
        self.assertEqual(state.tip, tips_for_bucket(Bucket.LOW_V_LOW_A)[0])
        change = self.session.consume_tip_change()
        self.assertEqual(change["bucket"], "lowV_lowA")
        self.assertEqual(change["t"], 0.0)
        self.assertIsNone(self.session.consume_tip_change())

    def test_positive_signals_reach_high_valence_bucket(self):
        from utils.cbt_tips import Bucket
        from tests.fixtures.synthetic_signals import smile_blendshapes
        self._start_devices()
        self._run(1)
        self.session.add_turn("I am happy with my progress")
        self.assertTrue(self.session.push_face_scores(smile_blendshapes()))
        self._run(12)
        state = self.session.get_current_state()
        self.assertIs(state.bucket, Bucket.HIGH_V_HIGH_D)
        self.assertGreater(state.vad.v, 0.6)
        self.assertGreater(state.vad.d, 0.6)
        self.assertEqual(self.session.consume_tip_change()["bucket"], "highV_highD")
        self.assertGreaterEqual(len(self.session.tips_used), 2)

    def test_no_tip_change_without_bucket_change(self):
        self._start_devices()
        self._run(1)
        self.session.consume_tip_change()
        self._run(5)
        self.assertIsNone(self.session.consume_tip_change())
        self.assertEqual(len(self.session.tips_used), 1)

    def test_rotate_tip_advances_within_bucket(self):
        from utils.cbt_tips import Bucket, tips_for_bucket
        self._start_devices()
        self._run(1)
        catalog = tips_for_bucket(Bucket.LOW_V_LOW_A)
        self.assertEqual(self.session.rotate_tip(), catalog[1])
        self.assertEqual(self.session.rotate_tip(), catalog[2])
        self.assertEqual(self.session.rotate_tip(), catalog[0])
        self.assertEqual(self.session.get_current_state().tip, catalog[0])

    def test_rotate_tip_before_first_tick_uses_neutral(self):
        from utils.cbt_tips import Bucket
        self._start_devices()
        self.assertIs(self.session.rotate_tip().bucket, Bucket.NEUTRAL)

    def test_audio_path(self):
        from tests.fixtures.synthetic_signals import make_sine
        self._start_devices()
        self.assertTrue(self.session.push_audio_block(make_sine(100, 8000, 2048, 0.1), 8000))
        self._run(1)
        self.assertAlmostEqual(self.session.window_average("pitch", window_ms=1000), 100.0)
        self.assertGreater(self.session.window_average("rms", window_ms=1000), 0.0)
        self.assertGreater(self.session.get_current_state().vad.a, 0.0)

    def test_window_average_axes(self):
        self._start_devices()
        self._run(3)
        self.assertAlmostEqual(self.session.window_average("v", window_ms=60000), 0.3)
        self.assertEqual(self.session.window_average("rms", window_ms=60000), 0.0)
        with self.assertRaises(ValueError):
            self.session.window_average("x")
        with self.assertRaises(ValueError):
            self.session.window_average("v", window_ms=-1)

    def test_device_lost_switches_to_synthetic(self):
        self._start_devices()
        self.session.report_device_lost("face")
        with self.assertLogs("utils.modality_channels", level="WARNING"):
            self._run(1)
        self.assertEqual(self.session.get_current_state().face_mode, "synthetic")
        self.assertEqual(self.session.get_current_state().audio_mode, "device")
        with self.assertRaises(ValueError):
            self.session.report_device_lost("nose")

    def test_update_callback(self):
        from affect_session import AffectSession, AffectState
        callback = MagicMock()
        session = AffectSession(clock=self.clock, update_callback=callback)
        session.start(None, run_thread=False)
        session.scheduler.run_due()
        callback.assert_called_once()
        self.assertIsInstance(callback.call_args[0][0], AffectState)
        session.stop()

    def test_bookmark_and_export(self):
        self._start_devices()
        self._run(1)
        self.session.add_turn("good day")
        self.session.add_turn("thanks", speaker="Coach")
        self._run(2)
        mark = self.session.mark_moment("felt calmer")
        self.assertEqual(mark["note"], "felt calmer")
        self.assertEqual(mark["t"], self.clock())
        self.session.stop()
        record = self.session.export()
        for key in ("startedAt", "endedAt", "weights", "turns", "timeline", "tipsUsed", "bookmarks", "summary"):
            self.assertIn(key, record)
        self.assertEqual(len(record["timeline"]), 3)
        self.assertEqual(len(record["turns"]), 2)
        self.assertEqual(record["bookmarks"], [mark])
        self.assertEqual(record["summary"]["samples"], 3)
        self.assertEqual(record["summary"]["tokens"][0], {"token": "good", "count": 1})
        self.assertEqual(record["startedAt"], 0.0)
        self.assertEqual(record["endedAt"], 1500.0)

    def test_summary_description(self):
        self._start_devices()
        self._run(2)
        summary = self.session.summarize()
        self.assertAlmostEqual(summary["avgV"], 0.3)
        self.assertEqual(summary["title"], "Heavy")

    def test_summary_trend_against_previous_session(self):
        self._start_devices()
        self._run(2)
        trend = self.session.summarize({"avgV": 0.5, "avgA": 0.0, "avgD": 0.5, "samples": 4})["trend"]
        self.assertAlmostEqual(trend["dv"], -0.2)
        self.assertAlmostEqual(trend["da"], 0.0)
        self.assertAlmostEqual(trend["dd"], 0.0)
        self.assertNotIn("trend", self.session.summarize())
        record = self.session.export({"avgV": 0.3, "avgA": 0.1, "avgD": 0.5})
        self.assertAlmostEqual(record["summary"]["trend"]["da"], -0.1)
        with self.assertRaises(ValueError):
            self.session.summarize({"avgV": "high"})

    def test_restart_clears_previous_session(self):
        self._start_devices()
        self._run(3)
        self.session.mark_moment()
        self._start_devices()
        self.assertEqual(len(self.session.timeline), 0)
        self.assertEqual(self.session.bookmarks, [])
        self.assertIsNone(self.session.get_current_state().bucket)

    def test_session_weights_fixed_at_creation(self):
        from affect_session import AffectSession
        from utils import fusion_weights
        session = AffectSession(clock=self.clock)
        try:
            fusion_weights.set_weights({"valenceRule": 0.0})
            self.assertEqual(session.weights.valence_rule, 0.6)
        finally:
            fusion_weights.reset_weights()

    def test_background_thread(self):
        import time
        from affect_session import AffectSession
        session = AffectSession()
        session.start(None, run_thread=True)
        deadline = time.time() + 2.0
        while len(session.timeline) == 0 and time.time() < deadline:
            time.sleep(0.01)
        session.stop()
        self.assertGreater(len(session.timeline), 0)
        self.assertFalse(session.scheduler.is_running)


if __name__ == "__main__":
    unittest.main()
