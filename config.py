"""
=============================================================================
CONFIGURATION FOR AFFECT COACH ENGINE (config.py)
=============================================================================

WHAT THIS FILE DOES (in plain language):
----------------------------------------
This file holds ALL configurable settings for the engine in one place. Other
modules read from it. Values come from the environment (e.g. your .env file or
system variables) so timing, buffer sizes and fusion weights can be tuned
without changing code.

MAIN GROUPS OF SETTINGS:
------------------------
  1. Scheduling     - How often audio, face and fusion steps run.
  2. Buffers        - Capacity of the chart series and the VAD timeline.
  3. Coaching       - Averaging window used to pick the CBT tip bucket.
  4. Fusion weights - Default weights for valence, arousal and dominance.
  5. Signal mode    - Force device sources, synthetic sources, or auto.
  6. Server         - Host, port, debug mode and log level.

HOW VALUES ARE CHOSEN:
---------------------
  - Environment variables (e.g. FUSION_TICK_MS) override everything.
  - If an env var is not set, we use the default documented next to it.
=============================================================================
"""

import math
import os
import sys
from typing import Optional


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        _INVALID.append(f"{name}={raw!r}")
        return default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        _INVALID.append(f"{name}={raw!r}")
        return default


# Names of env vars that could not be parsed (reported by warn_invalid_config)
_INVALID: list = []

# ============================================================================
# SCHEDULING (tick intervals in milliseconds)
# ============================================================================
# Fusion runs twice a second; face sampling aims for ~15 fps; audio sampling
# runs once per display frame.
# ----------------------------------------------------------------------------
FUSION_TICK_MS: float = _float_env("FUSION_TICK_MS", 500.0)
FACE_TICK_MS: float = _float_env("FACE_TICK_MS", 1000.0 / 15.0)
AUDIO_TICK_MS: float = _float_env("AUDIO_TICK_MS", 1000.0 / 60.0)
# Sleep between scheduler passes when running on a background thread.
SCHEDULER_RESOLUTION_MS: float = _float_env("SCHEDULER_RESOLUTION_MS", 16.0)

# ============================================================================
# BUFFERS
# ============================================================================
# RMS and pitch chart series (one sample per audio tick).
AUDIO_SERIES_CAPACITY: int = max(1, _int_env("AUDIO_SERIES_CAPACITY", 500))
# VAD timeline: 240 samples at 500 ms = the last 2 minutes.
VAD_TIMELINE_CAPACITY: int = max(1, _int_env("VAD_TIMELINE_CAPACITY", 240))

# ============================================================================
# COACHING
# ============================================================================
# Bucket classification uses the timeline average over this window.
BUCKET_WINDOW_MS: float = _float_env("BUCKET_WINDOW_MS", 5000.0)
# Default window for chart averages (GET /session/window-average).
CHART_WINDOW_MS: float = _float_env("CHART_WINDOW_MS", 60000.0)

# ============================================================================
# FUSION WEIGHTS
# ============================================================================
# Defaults for new sessions. Can be replaced at startup from
# FUSION_WEIGHTS_URL (fetched with requests) or FUSION_WEIGHTS_PATH (JSON),
# and at runtime via PUT /weights/fusion.
# ----------------------------------------------------------------------------
FUSION_WEIGHT_VALENCE_RULE: float = _float_env("FUSION_WEIGHT_VALENCE_RULE", 0.6)
FUSION_WEIGHT_VALENCE_SMILE: float = _float_env("FUSION_WEIGHT_VALENCE_SMILE", 0.4)
FUSION_WEIGHT_AROUSAL_AUDIO: float = _float_env("FUSION_WEIGHT_AROUSAL_AUDIO", 0.6)
FUSION_WEIGHT_AROUSAL_FACE: float = _float_env("FUSION_WEIGHT_AROUSAL_FACE", 0.4)
FUSION_WEIGHT_DOMINANCE_TEXT: float = _float_env("FUSION_WEIGHT_DOMINANCE_TEXT", 1.0)

FUSION_WEIGHTS_URL: Optional[str] = (os.getenv("FUSION_WEIGHTS_URL") or "").strip() or None
FUSION_WEIGHTS_PATH: Optional[str] = (os.getenv("FUSION_WEIGHTS_PATH") or "").strip() or None

# ============================================================================
# SIGNAL MODE
# ============================================================================
# "auto" | "device" | "synthetic". Runtime override via PUT /config/signal-mode.
SIGNAL_MODE: str = (os.getenv("SIGNAL_MODE") or "auto").strip().lower()

# ============================================================================
# Application Configuration
# ============================================================================
FLASK_PORT: int = _int_env("FLASK_PORT", 5000)
FLASK_DEBUG: bool = os.getenv("FLASK_DEBUG", "false").lower() == "true"
FLASK_HOST: str = os.getenv("FLASK_HOST", "127.0.0.1")
LOG_LEVEL: str = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()

# ============================================================================
# Helper Functions
# ============================================================================

def warn_invalid_config() -> None:
    """
    Print warnings for env values that could not be used. Call from app
    startup. Does not raise.
    """
    problems = list(_INVALID)
    if SIGNAL_MODE not in ("auto", "device", "synthetic"):
        problems.append(f"SIGNAL_MODE={SIGNAL_MODE!r} (using 'auto')")
    weights = get_fusion_weights_config()
    for key, value in weights.items():
        if not math.isfinite(value) or value < 0:
            problems.append(f"fusion weight {key}={value}")
    if problems:
        print("Config warning: ignoring invalid settings:", ", ".join(problems), file=sys.stderr)


def get_fusion_weights_config() -> dict:
    """
    Default fusion weights from env/config (camelCase keys).
    """
    return {
        "valenceRule": FUSION_WEIGHT_VALENCE_RULE,
        "valenceSmile": FUSION_WEIGHT_VALENCE_SMILE,
        "arousalAudio": FUSION_WEIGHT_AROUSAL_AUDIO,
        "arousalFace": FUSION_WEIGHT_AROUSAL_FACE,
        "dominanceText": FUSION_WEIGHT_DOMINANCE_TEXT,
    }


def build_config_response() -> dict:
    """
    Build the complete configuration response for GET /config/all.
    Aggregates all settings into a single dictionary.
    """
    from utils.capability import get_signal_mode
    from utils.fusion_weights import get_weights

    return {
        "scheduling": {
            "fusionTickMs": FUSION_TICK_MS,
            "faceTickMs": FACE_TICK_MS,
            "audioTickMs": AUDIO_TICK_MS,
            "schedulerResolutionMs": SCHEDULER_RESOLUTION_MS,
        },
        "buffers": {
            "audioSeriesCapacity": AUDIO_SERIES_CAPACITY,
            "vadTimelineCapacity": VAD_TIMELINE_CAPACITY,
        },
        "coaching": {
            "bucketWindowMs": BUCKET_WINDOW_MS,
            "chartWindowMs": CHART_WINDOW_MS,
        },
        "fusionWeights": get_weights().to_dict(),
        "signalMode": get_signal_mode(),
    }
