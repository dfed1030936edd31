"""
Utilities package for the Affect Coach Engine.

This package contains the signal code for a session: bounded series buffers,
audio/face/text extractors, signal sources and capability selection, VAD
fusion, bucket classification and tip rotation, tick scheduling, and session
summaries.
"""

from .series_buffer import BoundedSeriesBuffer, Sample, VadSample, VadTimeline
from .fusion import VAD, Frame, FusionWeights, Modality, fuse_vad
from .cbt_tips import Bucket, CbtTip, TipRotationState, bucket_vad, next_tip, tip_for_vad, tips_for_bucket
from .tick_scheduler import ManualClock, Tickable, TickScheduler, wall_clock_ms

__all__ = [
    'BoundedSeriesBuffer',
    'Sample',
    'VadSample',
    'VadTimeline',
    'VAD',
    'Frame',
    'FusionWeights',
    'Modality',
    'fuse_vad',
    'Bucket',
    'CbtTip',
    'TipRotationState',
    'bucket_vad',
    'next_tip',
    'tip_for_vad',
    'tips_for_bucket',
    'ManualClock',
    'Tickable',
    'TickScheduler',
    'wall_clock_ms',
]
