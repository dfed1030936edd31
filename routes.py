"""
Flask routes for the Affect Coach Engine.

Handles session start/stop, capture inputs (audio blocks, blendshape scores,
transcript turns), live state and tip changes, window averages, summary,
tip catalog, fusion weights, and config.
"""

from typing import Optional

from flask import Blueprint, jsonify, request

import config
from affect_session import WINDOW_AXES, AffectSession
from services.transcript_store import SPEAKER_USER
from utils import fusion_weights
from utils.capability import ModalityCapability, get_signal_mode, set_signal_mode
from utils.cbt_tips import Bucket, tips_for_bucket
from utils.fusion import FusionWeights
from utils.session_summary import SessionSummary

# Create a blueprint for better organization
api = Blueprint('api', __name__)

# Global session instance (one live session per process).
affect_session: Optional[AffectSession] = None


def _require_json():
    if not request.is_json:
        return jsonify({"error": "Request must be JSON"}), 400
    data = request.get_json(silent=True)
    if data is not None and not isinstance(data, dict):
        return jsonify({"error": "Body must be an object"}), 400
    return None


def _no_session():
    return jsonify({"error": "Session not started"}), 404


# ============================================================================
# Session lifecycle
# ============================================================================

@api.route("/session/start", methods=["POST"])
def start_session():
    """
    Start a session (stops any previous one).

    Request Body:
        {
            "audioAvailable": bool,
            "faceAvailable": bool,
            "landmarkerReady": bool (optional, default true),
            "weights": {"valenceRule": ..., ...} (optional, partial)
        }

    Returns:
        JSON: {"success": true, "audioMode": ..., "faceMode": ..., "weights": {...}}
    """
    global affect_session
    err = _require_json()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    try:
        weights = fusion_weights.get_weights()
        override = data.get("weights")
        if override is not None:
            if not isinstance(override, dict):
                return jsonify({"error": "'weights' must be an object"}), 400
            weights = FusionWeights.from_dict(override, base=weights)
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    capability = ModalityCapability(
        audio_available=bool(data.get("audioAvailable", False)),
        camera_available=bool(data.get("faceAvailable", False)),
        landmarker_ready=bool(data.get("landmarkerReady", True)),
    )
    try:
        if affect_session:
            affect_session.stop()
        affect_session = AffectSession(weights=weights)
        affect_session.start(capability)
        state = affect_session.get_current_state()
        return jsonify({
            "success": True,
            "message": "Session started",
            "audioMode": state.audio_mode,
            "faceMode": state.face_mode,
            "weights": weights.to_dict(),
        })
    except Exception as e:
        return jsonify({"error": "Failed to start session", "details": str(e)}), 500


@api.route("/session/stop", methods=["POST"])
def stop_session():
    """
    Stop the session and return its export.

    Request Body (optional):
        {"previousSummary": {"avgV": ..., "avgA": ..., "avgD": ...}}
    adds a per-axis "trend" to the exported summary.
    """
    if not affect_session:
        return _no_session()
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Body must be an object"}), 400
    previous = data.get("previousSummary")
    if previous is not None:
        if not isinstance(previous, dict):
            return jsonify({"error": "'previousSummary' must be an object"}), 400
        try:
            SessionSummary.from_dict(previous)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
    try:
        affect_session.stop()
        return jsonify({"success": True, "session": affect_session.export(previous)})
    except Exception as e:
        return jsonify({"error": "Failed to stop session", "details": str(e)}), 500


# ============================================================================
# Capture inputs
# ============================================================================

@api.route("/session/audio", methods=["POST"])
def session_audio():
    """
    Push one raw audio block.

    Request Body:
        {"samples": [float, ...], "sampleRate": 44100, "available": true}
    "available": false reports the microphone lost; audio switches to synthetic.
    """
    if not affect_session:
        return _no_session()
    err = _require_json()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    if data.get("available") is False:
        affect_session.report_device_lost("audio")
        return jsonify({"accepted": False, "audioMode": affect_session.audio.mode})
    samples = data.get("samples")
    if not isinstance(samples, list):
        return jsonify({"error": "Missing 'samples' array"}), 400
    sample_rate = data.get("sampleRate")
    if sample_rate is not None and (not isinstance(sample_rate, (int, float)) or sample_rate <= 0):
        return jsonify({"error": "'sampleRate' must be a positive number"}), 400
    try:
        accepted = affect_session.push_audio_block(samples, sample_rate)
        return jsonify({"accepted": accepted, "audioMode": affect_session.audio.mode})
    except (TypeError, ValueError) as e:
        return jsonify({"error": "Invalid audio block", "details": str(e)}), 400


@api.route("/session/face", methods=["POST"])
def session_face():
    """
    Push one blendshape score dictionary.

    Request Body:
        {"scores": {"mouthSmileLeft": 0.3, ...} | null, "available": true}
    null scores means no face this frame (last proxies kept); "available": false
    reports the camera or landmarker lost and face switches to synthetic.
    """
    if not affect_session:
        return _no_session()
    err = _require_json()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    if data.get("available") is False:
        affect_session.report_device_lost("face")
        return jsonify({"accepted": False, "faceMode": affect_session.face.mode})
    scores = data.get("scores")
    if scores is not None and not isinstance(scores, dict):
        return jsonify({"error": "'scores' must be an object or null"}), 400
    try:
        accepted = affect_session.push_face_scores(scores)
        return jsonify({"accepted": accepted, "faceMode": affect_session.face.mode})
    except (TypeError, ValueError) as e:
        return jsonify({"error": "Invalid scores", "details": str(e)}), 400


@api.route("/session/transcript", methods=["POST"])
def session_transcript():
    """
    Append a transcript turn.

    Request Body:
        {"text": "I need to finish this", "speaker": "User" | "Coach"}
    """
    if not affect_session:
        return _no_session()
    err = _require_json()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    text = data.get("text")
    if not isinstance(text, str) or not text.strip():
        return jsonify({"error": "Missing 'text'"}), 400
    try:
        turn = affect_session.add_turn(text.strip(), speaker=data.get("speaker") or SPEAKER_USER)
        return jsonify({"success": True, "turn": turn.to_dict()})
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


# ============================================================================
# Live state
# ============================================================================

@api.route("/session/state", methods=["GET"])
def session_state():
    """
    Current VAD, bucket, tip and modes. Includes "tipChange" (bucket + tip)
    once after each bucket transition, then null until the next one.
    """
    if not affect_session:
        return _no_session()
    try:
        out = affect_session.get_current_state().to_dict()
        out["tipChange"] = affect_session.consume_tip_change()
        return jsonify(out)
    except Exception as e:
        return jsonify({"error": "Failed to get session state", "details": str(e)}), 500


@api.route("/session/window-average", methods=["GET"])
def session_window_average():
    """
    Mean of one series over the trailing window.

    Query: axis=v|a|d|rms|pitch, windowMs (default CHART_WINDOW_MS)
    """
    if not affect_session:
        return _no_session()
    axis = (request.args.get("axis") or "").strip().lower()
    if axis not in WINDOW_AXES:
        return jsonify({"error": f"axis must be one of {', '.join(WINDOW_AXES)}"}), 400
    try:
        window_ms = float(request.args.get("windowMs", config.CHART_WINDOW_MS))
        value = affect_session.window_average(axis, window_ms=window_ms)
        return jsonify({"axis": axis, "windowMs": window_ms, "value": value})
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@api.route("/session/tip/next", methods=["POST"])
def session_next_tip():
    """Rotate to the next tip in the current bucket."""
    if not affect_session:
        return _no_session()
    tip = affect_session.rotate_tip()
    return jsonify({"tip": tip.to_dict()})


@api.route("/session/bookmark", methods=["POST"])
def session_bookmark():
    """Mark the current moment. Body (optional): {"note": "..."}"""
    if not affect_session:
        return _no_session()
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Body must be an object"}), 400
    note = data.get("note") or ""
    if not isinstance(note, str):
        return jsonify({"error": "'note' must be a string"}), 400
    return jsonify({"bookmark": affect_session.mark_moment(note)})


@api.route("/session/summary", methods=["GET"])
def session_summary():
    """
    Mean V/A/D, description and top user tokens for the current session.

    Query (optional): prevAvgV, prevAvgA, prevAvgD of an earlier session adds a
    per-axis "trend".
    """
    if not affect_session:
        return _no_session()
    previous = None
    prev_args = {
        "avgV": request.args.get("prevAvgV"),
        "avgA": request.args.get("prevAvgA"),
        "avgD": request.args.get("prevAvgD"),
    }
    if any(v is not None for v in prev_args.values()):
        try:
            previous = SessionSummary.from_dict(
                {key: float(v) if v is not None else None for key, v in prev_args.items()}
            ).to_dict()
        except ValueError as e:
            return jsonify({"error": f"Invalid previous summary: {e}"}), 400
    try:
        return jsonify(affect_session.summarize(previous))
    except Exception as e:
        return jsonify({"error": "Failed to summarize session", "details": str(e)}), 500


# ============================================================================
# Catalog, weights and config
# ============================================================================

@api.route("/tips/<bucket>", methods=["GET"])
def tips_catalog(bucket):
    """Tip catalog for one bucket (lowV_highA | lowV_lowA | highV_highD | neutral)."""
    try:
        b = Bucket.from_value(bucket)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"bucket": b.value, "tips": [tip.to_dict() for tip in tips_for_bucket(b)]})


@api.route("/weights/fusion", methods=["GET", "PUT"])
def fusion_weights_route():
    """
    GET: Current default fusion weights for new sessions.
    PUT: Partial update. Body: {"valenceRule": 0.6, "arousalAudio": 0.5, ...}
    """
    if request.method == "GET":
        return jsonify(fusion_weights.get_weights().to_dict())
    if request.method == "PUT":
        err = _require_json()
        if err:
            return err
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Body must be an object"}), 400
        try:
            return jsonify(fusion_weights.set_weights(data).to_dict())
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
    return jsonify({"error": "Method not allowed"}), 405


@api.route("/config/all", methods=["GET"])
def get_all_config():
    """Complete configuration dictionary."""
    return jsonify(config.build_config_response())


@api.route("/config/signal-mode", methods=["GET", "PUT"])
def signal_mode_config():
    """
    GET: Current signal mode.
    PUT: Set mode. Body: {"mode": "auto" | "device" | "synthetic"}. Applies to the next session.
    """
    if request.method == "GET":
        return jsonify({"mode": get_signal_mode()})
    if request.method == "PUT":
        err = _require_json()
        if err:
            return err
        data = request.get_json(silent=True) or {}
        mode = data.get("mode")
        if not isinstance(mode, str) or not mode:
            return jsonify({"error": "Missing 'mode'"}), 400
        try:
            set_signal_mode(mode)
            return jsonify({"mode": get_signal_mode()})
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
    return jsonify({"error": "Method not allowed"}), 405


def register_routes(app):
    """Register the API blueprint with a Flask app."""
    app.register_blueprint(api)
