"""
Affect Session.

Orchestrates one coaching session: audio and face channels sample their
sources, the fusion step combines the latest proxies with the latest scored
user turn into a VAD point every tick, the VAD timeline records it, and the
short-window average picks a bucket. When the bucket changes the session
rotates to the next tip for that bucket and holds it as a pending tip change
until the UI collects it (GET /session/state).

Pipeline per fusion tick: build Frame (present/absent per modality) ->
fuse_vad -> timeline push -> 5 s window average -> bucket_vad -> next_tip on
bucket change -> update current state and callback.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import config
from services.transcript_store import SPEAKER_USER, TranscriptStore
from utils import fusion_weights
from utils.capability import SOURCE_DEVICE, ModalityCapability, evaluate_capability
from utils.cbt_tips import Bucket, CbtTip, TipRotationState, bucket_vad, next_tip
from utils.face_proxies import FaceProxies
from utils.fusion import VAD, Frame, FusionWeights, Modality, fuse_vad
from utils.modality_channels import AudioChannel, FaceChannel
from utils.series_buffer import VadTimeline
from utils.session_summary import SessionSummary, compare_summaries, describe_state, summarize_timeline
from utils.signal_sources import (
    BlendshapeFaceSource,
    MicrophoneAudioSource,
    SyntheticAudioSource,
    SyntheticFaceSource,
)
from utils.tick_scheduler import Clock, Tickable, TickScheduler, wall_clock_ms

logger = logging.getLogger(__name__)

WINDOW_AXES = ("v", "a", "d", "rms", "pitch")


@dataclass
class AffectState:
    """Snapshot of the session returned to callers."""
    t: float
    vad: Optional[VAD]
    bucket: Optional[Bucket]
    tip: Optional[CbtTip]
    audio_mode: str
    face_mode: str
    audio: Dict[str, float] = field(default_factory=dict)
    face: FaceProxies = field(default_factory=FaceProxies)
    is_running: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "t": self.t,
            "vad": self.vad.to_dict() if self.vad else None,
            "bucket": self.bucket.value if self.bucket else None,
            "tip": self.tip.to_dict() if self.tip else None,
            "audioMode": self.audio_mode,
            "faceMode": self.face_mode,
            "noiseMode": self.audio_mode == "synthetic" or self.face_mode == "synthetic",
            "audio": dict(self.audio),
            "face": self.face.to_dict(),
            "isRunning": self.is_running,
        }


class AffectSession(Tickable):
    """
    One live session.

    Usage:
        session = AffectSession()
        session.start(ModalityCapability(audio_available=True, camera_available=False))
        session.push_audio_block(samples, 44100)
        state = session.get_current_state()
        ...
        session.stop()
        record = session.export()

    Tests pass run_thread=False and drive ticks with session.scheduler.run_due(now).
    """

    def __init__(
        self,
        weights: Optional[FusionWeights] = None,
        clock: Clock = wall_clock_ms,
        update_callback: Optional[Callable[[AffectState], None]] = None,
        bucket_window_ms: float = config.BUCKET_WINDOW_MS,
        timeline_capacity: int = config.VAD_TIMELINE_CAPACITY,
        series_capacity: int = config.AUDIO_SERIES_CAPACITY,
    ):
        """
        Args:
            weights: Fusion weights for this session; defaults to the current
                     loaded weights (utils.fusion_weights). Fixed for the session.
            clock: Millisecond clock used for turn timestamps and the scheduler.
            update_callback: Called with the new AffectState after every fusion tick.
            bucket_window_ms: Averaging window for bucket classification.
            timeline_capacity: Capacity of the VAD timeline.
            series_capacity: Capacity of the RMS/pitch chart series.
        """
        self.weights = weights or fusion_weights.get_weights()
        self.clock = clock
        self.update_callback = update_callback
        self.bucket_window_ms = float(bucket_window_ms)
        self.series_capacity = series_capacity

        self.transcript = TranscriptStore()
        self.timeline = VadTimeline(timeline_capacity)
        self.rotation = TipRotationState()
        self.audio: AudioChannel = AudioChannel(SyntheticAudioSource(), series_capacity)
        self.face: FaceChannel = FaceChannel(SyntheticFaceSource())
        self.scheduler = TickScheduler(clock=clock, resolution_ms=config.SCHEDULER_RESOLUTION_MS)

        self.lock = threading.Lock()
        self.current_vad: Optional[VAD] = None
        self.current_bucket: Optional[Bucket] = None
        self.current_tip: Optional[CbtTip] = None
        self._pending_tip_change: Optional[Dict[str, Any]] = None
        self.tips_used: List[Dict[str, Any]] = []
        self.bookmarks: List[Dict[str, Any]] = []
        self.started_at: Optional[float] = None
        self.ended_at: Optional[float] = None
        self.is_running = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, capability: Optional[ModalityCapability] = None, run_thread: bool = True) -> None:
        """
        Select sources per modality and start ticking.

        Args:
            capability: What the capture side acquired; None means nothing (synthetic both).
            run_thread: Run the scheduler on a background thread. Tests pass False.
        """
        if self.is_running:
            self.stop()
        capability = capability or ModalityCapability()
        (audio_kind, audio_reason), (face_kind, face_reason) = evaluate_capability(capability)

        audio_source = MicrophoneAudioSource() if audio_kind == SOURCE_DEVICE else SyntheticAudioSource()
        face_source = BlendshapeFaceSource() if face_kind == SOURCE_DEVICE else SyntheticFaceSource()
        self.audio = AudioChannel(audio_source, self.series_capacity)
        self.face = FaceChannel(face_source)
        for name, kind, reason in (("audio", audio_kind, audio_reason), ("face", face_kind, face_reason)):
            if kind == SOURCE_DEVICE:
                logger.info("%s: %s (%s)", name, kind, reason)
            else:
                logger.warning("%s: %s (%s)", name, kind, reason)

        self.timeline.clear()
        self.transcript.clear()
        self.rotation.reset()
        with self.lock:
            self.current_vad = None
            self.current_bucket = None
            self.current_tip = None
            self._pending_tip_change = None
            self.tips_used = []
            self.bookmarks = []
            self.started_at = self.clock()
            self.ended_at = None

        # Channels first so each fusion tick sees this pass's proxies
        self.scheduler = TickScheduler(clock=self.clock, resolution_ms=config.SCHEDULER_RESOLUTION_MS)
        self.scheduler.add("audio", self.audio, config.AUDIO_TICK_MS)
        self.scheduler.add("face", self.face, config.FACE_TICK_MS)
        self.scheduler.add("fusion", self, config.FUSION_TICK_MS)
        self.is_running = True
        if run_thread:
            self.scheduler.start()
        logger.info("Affect session started (audio=%s, face=%s)", self.audio.mode, self.face.mode)

    def stop(self) -> None:
        """Stop ticking and release sources. Buffers keep their contents for export."""
        self.scheduler.stop()
        self.is_running = False
        self.audio.close()
        self.face.close()
        with self.lock:
            self.ended_at = self.clock()
        logger.info("Affect session stopped after %d fusion ticks", len(self.timeline))

    # ------------------------------------------------------------------
    # Capture collaborator inputs
    # ------------------------------------------------------------------

    def push_audio_block(self, samples: Sequence[float], sample_rate: Optional[float] = None) -> bool:
        """Hand a raw audio block to the microphone source. False when audio is synthetic."""
        source = self.audio.source
        if not isinstance(source, MicrophoneAudioSource):
            return False
        source.push_block(samples, sample_rate)
        return True

    def push_face_scores(self, scores: Optional[Mapping[str, float]]) -> bool:
        """Hand blendshape scores to the face source. False when face is synthetic."""
        source = self.face.source
        if not isinstance(source, BlendshapeFaceSource):
            return False
        source.push_scores(scores)
        return True

    def report_device_lost(self, modality: str) -> None:
        """Mark a device source unavailable; its channel falls back on the next tick."""
        channel = {"audio": self.audio, "face": self.face}.get(modality)
        if channel is None:
            raise ValueError("modality must be 'audio' or 'face'")
        setter = getattr(channel.source, "set_available", None)
        if setter is not None:
            setter(False)

    def add_turn(self, text: str, speaker: str = SPEAKER_USER, t: Optional[float] = None):
        """Score and store a transcript turn stamped with the session clock."""
        return self.transcript.add_turn(speaker, text, self.clock() if t is None else t)

    # ------------------------------------------------------------------
    # Fusion tick
    # ------------------------------------------------------------------

    def _build_frame(self, now_ms: float) -> Frame:
        audio = self.audio.snapshot()
        face = self.face.snapshot()
        turn = self.transcript.latest_user_turn_at(now_ms)
        has_audio = self.audio.has_reading
        has_face = self.face.has_reading
        return Frame(
            t=now_ms,
            face_arousal=Modality.of(face.face_arousal if has_face else None),
            audio_arousal=Modality.of(audio["arousal"] if has_audio else None),
            text_valence=Modality.of(turn.valence if turn else None),
            text_dominance=Modality.of(turn.dominance if turn else None),
            smile_index=Modality.of(face.smile_index if has_face else None),
        )

    def tick(self, now_ms: float) -> None:
        vad = fuse_vad(self._build_frame(now_ms), self.weights)
        self.timeline.push(now_ms, vad.v, vad.a, vad.d)
        v, a, d = self.timeline.window_average(now_ms, self.bucket_window_ms)
        bucket = bucket_vad(v, a, d)

        previous = None
        with self.lock:
            self.current_vad = vad
            changed = bucket != self.current_bucket
            if changed:
                previous = self.current_bucket
                tip = next_tip(bucket, self.rotation)
                self.current_bucket = bucket
                self.current_tip = tip
                self._pending_tip_change = {"t": now_ms, "bucket": bucket.value, "tip": tip.to_dict()}
                self.tips_used.append({"t": now_ms, **tip.to_dict()})
        if changed:
            logger.info(
                "Bucket %s -> %s (avg v=%.2f a=%.2f d=%.2f)",
                previous.value if previous else None, bucket.value, v, a, d,
            )

        if self.update_callback:
            try:
                self.update_callback(self.get_current_state(now_ms))
            except Exception as e:
                logger.warning("Update callback failed: %s", e)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_current_state(self, now_ms: Optional[float] = None) -> AffectState:
        """Current state (thread-safe)."""
        with self.lock:
            vad, bucket, tip = self.current_vad, self.current_bucket, self.current_tip
        return AffectState(
            t=self.clock() if now_ms is None else now_ms,
            vad=vad,
            bucket=bucket,
            tip=tip,
            audio_mode=self.audio.mode,
            face_mode=self.face.mode,
            audio=self.audio.snapshot(),
            face=self.face.snapshot(),
            is_running=self.is_running,
        )

    def consume_tip_change(self) -> Optional[Dict[str, Any]]:
        """Get and clear the pending (bucket, tip) transition. None if none."""
        with self.lock:
            change = self._pending_tip_change
            self._pending_tip_change = None
            return change

    def rotate_tip(self) -> CbtTip:
        """Advance to the next tip in the current bucket (neutral before the first tick)."""
        now = self.clock()
        with self.lock:
            bucket = self.current_bucket or Bucket.NEUTRAL
            tip = next_tip(bucket, self.rotation)
            self.current_tip = tip
            self.tips_used.append({"t": now, **tip.to_dict()})
        return tip

    def mark_moment(self, note: str = "") -> Dict[str, Any]:
        """Bookmark the current moment with the latest VAD (neutral 0.5 before the first tick)."""
        now = self.clock()
        with self.lock:
            vad = self.current_vad or VAD(0.5, 0.5, 0.5)
            mark = {"t": now, "v": vad.v, "a": vad.a, "d": vad.d, "note": note or ""}
            self.bookmarks.append(mark)
        return mark

    def window_average(self, axis: str, now_ms: Optional[float] = None, window_ms: float = config.CHART_WINDOW_MS) -> float:
        """Mean of one series over the trailing window; 0 when empty."""
        series = {
            "v": self.timeline.v,
            "a": self.timeline.a,
            "d": self.timeline.d,
            "rms": self.audio.rms_series,
            "pitch": self.audio.pitch_series,
        }.get(axis)
        if series is None:
            raise ValueError(f"axis must be one of {WINDOW_AXES}")
        if window_ms < 0:
            raise ValueError("windowMs must be non-negative")
        now = self.clock() if now_ms is None else now_ms
        return series.avg_in_window(now, window_ms)

    def summarize(self, previous: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        Session summary: mean V/A/D, plain-language description, top user tokens.

        With previous (an earlier summary dict), adds "trend": per-axis deltas
        from that session to this one. Raises ValueError for a malformed previous.
        """
        summary = summarize_timeline(self.timeline.to_array())
        trend = None
        if previous is not None:
            trend = compare_summaries(summary, SessionSummary.from_dict(previous))
        title, note = describe_state(summary.avg_v, summary.avg_a, summary.avg_d)
        result = {
            **summary.to_dict(),
            "title": title,
            "note": note,
            "tokens": [{"token": tok, "count": n} for tok, n in self.transcript.token_frequencies()],
        }
        if trend is not None:
            result["trend"] = trend
        return result

    def export(self, previous: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Plain dict of everything recorded, for the storage collaborator."""
        summary = self.summarize(previous)
        with self.lock:
            tips_used = list(self.tips_used)
            bookmarks = list(self.bookmarks)
            started_at, ended_at = self.started_at, self.ended_at
        return {
            "startedAt": started_at,
            "endedAt": ended_at,
            "weights": self.weights.to_dict(),
            "turns": [turn.to_dict() for turn in self.transcript.turns()],
            "timeline": [point.to_dict() for point in self.timeline.to_array()],
            "tipsUsed": tips_used,
            "bookmarks": bookmarks,
            "summary": summary,
        }
