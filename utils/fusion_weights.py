"""
Fusion Weights Loader

Loads the default FusionWeights used for new sessions from a remote tuning
backend (URL), a local JSON file, or the config defaults. A running session
keeps the weights it was started with; updates here only affect sessions
started afterwards.

JSON format (camelCase, any subset):
  {"valenceRule": 0.6, "valenceSmile": 0.4, "arousalAudio": 0.6,
   "arousalFace": 0.4, "dominanceText": 1.0}
"""

import json
import logging
import os
from typing import Any, Dict, Optional

import requests

import config
from utils.fusion import FusionWeights

logger = logging.getLogger(__name__)

WEIGHT_KEYS = ("valenceRule", "valenceSmile", "arousalAudio", "arousalFace", "dominanceText")


def _config_defaults() -> FusionWeights:
    """Config weights; an unusable value falls back to the built-in default for that key."""
    builtin = FusionWeights().to_dict()
    usable = {}
    for key, value in config.get_fusion_weights_config().items():
        try:
            FusionWeights.from_dict({key: value})
        except (TypeError, ValueError):
            logger.warning("Ignoring config fusion weight %s=%r, using %s", key, value, builtin[key])
            continue
        usable[key] = value
    return FusionWeights.from_dict(usable)


# In-memory weights (updated by load_weights, set_weights)
_current: FusionWeights = _config_defaults()


def get_weights() -> FusionWeights:
    """Return the current default weights (immutable)."""
    return _current


def set_weights(data: Dict[str, Any]) -> FusionWeights:
    """
    Update in-memory weights. Partial update: only provided keys are changed.
    Raises ValueError for unknown keys, non-numeric or negative values.
    """
    global _current
    unknown = [k for k in data if k not in WEIGHT_KEYS]
    if unknown:
        raise ValueError(f"unknown weight keys: {', '.join(sorted(unknown))}")
    for key, value in data.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{key} must be a number")
    _current = FusionWeights.from_dict(data, base=_current)
    return _current


def reset_weights() -> FusionWeights:
    """Restore config defaults."""
    global _current
    _current = _config_defaults()
    return _current


def _apply(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    known = {k: v for k, v in data.items() if k in WEIGHT_KEYS}
    if not known:
        return False
    set_weights(known)
    return True


def load_weights(url: Optional[str] = None, path: Optional[str] = None) -> FusionWeights:
    """
    Load from FUSION_WEIGHTS_URL, else FUSION_WEIGHTS_PATH, else config defaults.
    Updates the current weights and returns them.
    """
    reset_weights()

    # 1) URL
    url = url if url is not None else config.FUSION_WEIGHTS_URL
    if url:
        try:
            r = requests.get(url, timeout=5)
            if r.ok and _apply(r.json()):
                return get_weights()
            logger.warning("Fusion weights URL returned no usable weights (status %s)", r.status_code)
        except (requests.RequestException, ValueError) as e:
            logger.warning("Fusion weights fetch from %s failed: %s", url, e)

    # 2) File
    path = path if path is not None else config.FUSION_WEIGHTS_PATH
    if path and os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                if _apply(json.load(f)):
                    return get_weights()
        except (OSError, ValueError) as e:
            logger.warning("Fusion weights file %s unusable: %s", path, e)
        reset_weights()

    # 3) Defaults (already restored above)
    return get_weights()
