#!/usr/bin/env python3
"""
ChoreVoice Voice Task REST API

A Flask-based REST API for multi-turn voice task creation:
- Explicit sessions with ordered turns (duplicate and out-of-order safe)
- Slot extraction, merging and follow-up questions
- Speech-to-text for WAV uploads

Usage:
    python -m chorevoice.api

    or

    gunicorn -w 1 -b 0.0.0.0:9002 chorevoice.api:app

    (the default in-memory session store is per process; use
    SESSION_BACKEND=redis when running several workers)

Endpoints:
    GET  /voice/health         - Health check
    POST /voice/session/start  - Start a session (cancels the user's active one)
    POST /voice/turn           - Process one ordered turn
    POST /voice/parse          - Process an utterance with an implicit session
    POST /voice/stt            - Transcribe a WAV upload
    GET  /voice/session/debug  - Dump a user's sessions (ENABLE_DEBUG_ENDPOINT only)
"""
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import Flask, g, jsonify, request

from .app import DialogueService
from .config import config
from .data_types import Turn
from .errors import (
    ChoreVoiceError,
    ProtocolError,
    SessionInactiveError,
    SessionNotFoundError,
    TranscriptionError,
)
from .logging_config import generate_request_id, setup_logging
from .memory import SessionSweeper
from .stt import Transcriber, WhisperTranscriber, is_wav

# Apply config settings
PORT = config.API_PORT

# Flask app
app = Flask(__name__)
# Multipart overhead on top of the audio limit; the audio size itself is checked in /voice/stt
app.config["MAX_CONTENT_LENGTH"] = config.MAX_AUDIO_BYTES + 1024 * 1024

# Setup logging
logger = setup_logging(
    app_name="chorevoice",
    log_level=config.LOG_LEVEL,
    log_format=config.LOG_FORMAT,
    log_file=config.LOG_FILE,
)

# Global components
dialogue_service: Optional[DialogueService] = None
transcriber: Optional[Transcriber] = None
sweeper: Optional[SessionSweeper] = None

_ERROR_STATUS = {
    ProtocolError: 400,
    SessionNotFoundError: 409,
    SessionInactiveError: 409,
    TranscriptionError: 502,
}


def init_service(service: Optional[DialogueService] = None, stt: Optional[Transcriber] = None) -> bool:
    """Initialize the dialogue service (and optionally the transcriber)."""
    global dialogue_service, transcriber  # noqa: PLW0603

    logger.info("=" * 60)
    logger.info("Initializing ChoreVoice dialogue service")

    try:
        dialogue_service = service or DialogueService()
        if stt is not None:
            transcriber = stt
        logger.info(
            "Dialogue service initialized",
            extra={
                "store": type(dialogue_service.store).__name__,
                "extractor": type(dialogue_service.extractor).__name__,
            },
        )
        return True
    except Exception as e:  # noqa: BLE001
        logger.error(f"Failed to initialize dialogue service: {e}", exc_info=True)
        return False


def _get_service() -> DialogueService:
    if dialogue_service is None and not init_service():
        raise ChoreVoiceError("Dialogue service not initialized")
    return dialogue_service


def _get_transcriber() -> Transcriber:
    global transcriber  # noqa: PLW0603
    if transcriber is None:
        transcriber = WhisperTranscriber(model=config.STT_MODEL, api_key=config.OPENAI_API_KEY)
    return transcriber


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _require_transcript_and_children(body: Dict[str, Any]) -> None:
    transcript = body.get("transcript")
    if not isinstance(transcript, str) or not transcript.strip() or not isinstance(body.get("children"), list):
        raise ProtocolError("Missing required fields: transcript, children")


# Request tracking middleware
@app.before_request
def before_request():
    """Track request start time and generate request ID."""
    g.start_time = time.perf_counter()
    g.request_id = request.headers.get("X-Request-ID", generate_request_id())


@app.after_request
def after_request(response):
    """Log request completion with timing and status."""
    if hasattr(g, "start_time") and config.ENABLE_REQUEST_LOGGING:
        duration_ms = round((time.perf_counter() - g.start_time) * 1000, 2)

        # Create structured log
        log_record = logger.makeRecord(
            logger.name,
            20,  # INFO level
            "",
            0,
            f"{request.method} {request.path} {response.status_code}",
            (),
            None,
        )
        log_record.request_id = g.request_id
        log_record.method = request.method
        log_record.path = request.path
        log_record.status_code = response.status_code
        log_record.duration_ms = duration_ms
        if request.headers.get("X-Session-Id"):
            log_record.session_id = request.headers["X-Session-Id"]

        logger.handle(log_record)

    # Add request ID to response headers
    if hasattr(g, "request_id"):
        response.headers["X-Request-ID"] = g.request_id

    return response


@app.route("/voice/health", methods=["GET"])
def health():
    """Health check endpoint."""
    if dialogue_service is None:
        return jsonify({
            "status": "unhealthy",
            "message": "Dialogue service not initialized",
        }), 503

    return jsonify({
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "activeSessions": dialogue_service.store.count(),
    })


@app.route("/voice/session/start", methods=["POST"])
def start_session():
    """
    Start a new voice session, cancelling any active session of the user.

    Request body:
    {
        "userId": "parent-1",                          // required
        "children": [{"id": "1", "name": "Emma"}]      // optional
    }
    """
    body = _json_body()
    session = _get_service().start_session(body.get("userId"), body.get("children") or [])
    return jsonify({
        "sessionId": session.session_id,
        "status": "active",
        "message": "New voice session started",
    })


@app.route("/voice/turn", methods=["POST"])
def turn():
    """
    Process one turn of an active session.

    Headers: X-User-Id, X-Session-Id, X-Turn-Id, X-Turn-Index
    Request body:
    {
        "transcript": "clean room tomorrow for 20 points",
        "children": [{"id": "1", "name": "Emma"}]
    }

    Response:
    {
        "needsFollowup": true,
        "missing": ["points"],
        "question": "How many points is this worth?",
        "result": null,
        "speak": "How many points is this worth?",
        "sessionId": "...",
        "turnId": "...",
        "turnIndex": 1
    }
    """
    user_id = request.headers.get("X-User-Id")
    session_id = request.headers.get("X-Session-Id")
    turn_id = request.headers.get("X-Turn-Id")
    raw_index = request.headers.get("X-Turn-Index")
    try:
        turn_index = int(raw_index)
    except (TypeError, ValueError):
        turn_index = None

    if not user_id or not session_id or not turn_id or turn_index is None:
        raise ProtocolError("Missing required headers: x-user-id, x-session-id, x-turn-id, x-turn-index")

    body = _json_body()
    _require_transcript_and_children(body)

    result = _get_service().submit_turn(Turn(
        user_id=user_id,
        session_id=session_id,
        turn_id=turn_id,
        turn_index=turn_index,
        transcript=body["transcript"],
        roster=tuple(body["children"]),
    ))
    return jsonify(result.to_dict())


@app.route("/voice/parse", methods=["POST"])
def parse():
    """
    Process an utterance without turn metadata.

    Request body:
    {
        "transcript": "Emma",
        "children": [{"id": "1", "name": "Emma"}],
        "sessionId": "...",      // optional, a session is created when absent
        "userId": "parent-1"     // optional
    }
    """
    body = _json_body()
    _require_transcript_and_children(body)
    result = _get_service().parse_utterance(
        body["transcript"],
        body["children"],
        session_id=body.get("sessionId"),
        user_id=body.get("userId"),
    )
    return jsonify(result.to_dict())


@app.route("/voice/stt", methods=["POST"])
def speech_to_text():
    """Transcribe a WAV upload sent as multipart field 'audio'."""
    upload = request.files.get("audio")
    if upload is None:
        raise ProtocolError("No audio file provided")

    audio = upload.read()
    if len(audio) > config.MAX_AUDIO_BYTES:
        return jsonify({
            "error": f"Audio file too large (max {config.MAX_AUDIO_BYTES} bytes)",
            "code": "PAYLOAD_TOO_LARGE",
        }), 413
    if not is_wav(audio, upload.filename, upload.mimetype):
        raise ProtocolError("Only WAV audio files are supported")

    transcript = _get_transcriber().transcribe(audio, upload.filename or "audio.wav")
    return jsonify({"transcript": transcript})


@app.route("/voice/session/debug", methods=["GET"])
def session_debug():
    """Dump a user's sessions (development only)."""
    if not config.ENABLE_DEBUG_ENDPOINT:
        return not_found(None)
    return jsonify(_get_service().debug_sessions(request.args.get("userId")))


@app.errorhandler(ChoreVoiceError)
def handle_chorevoice_error(error: ChoreVoiceError):
    """Map engine errors to status codes; details of internal errors stay in the log."""
    status = next((code for cls, code in _ERROR_STATUS.items() if isinstance(error, cls)), 500)
    request_id = getattr(g, "request_id", None)

    if status >= 500:
        logger.error(
            f"{request.method} {request.path} failed: {error}",
            extra={"request_id": request_id, "error_type": type(error).__name__, "code": error.code},
            exc_info=status == 500,
        )
        message = "Internal server error" if status == 500 else str(error)
    else:
        logger.info(
            f"{request.method} {request.path} rejected: {error.code}",
            extra={"request_id": request_id, "code": error.code},
        )
        message = str(error)

    return jsonify({"error": message, "code": error.code}), status


@app.errorhandler(404)
def not_found(error):  # noqa: ARG001, pylint: disable=unused-argument
    """Handle 404 errors."""
    return jsonify({
        "error": "Endpoint not found",
        "available_endpoints": [
            "/voice/health",
            "/voice/session/start",
            "/voice/turn",
            "/voice/parse",
            "/voice/stt",
        ],
    }), 404


@app.errorhandler(413)
def too_large(error):  # noqa: ARG001, pylint: disable=unused-argument
    """Handle oversized uploads."""
    return jsonify({
        "error": f"Audio file too large (max {config.MAX_AUDIO_BYTES} bytes)",
        "code": "PAYLOAD_TOO_LARGE",
    }), 413


@app.errorhandler(500)
def internal_error(error):  # noqa: ARG001, pylint: disable=unused-argument
    """Handle 500 errors."""
    return jsonify({
        "error": "Internal server error",
        "code": "INTERNAL_ERROR",
    }), 500


def main():
    """Run the Flask development server."""
    global sweeper  # noqa: PLW0603

    logger.info("=" * 60)
    logger.info("ChoreVoice Voice Task API")
    logger.info(f"Starting server on http://{config.API_HOST}:{PORT}")
    for line in config.summary().splitlines():
        logger.info(line)

    if not init_service():
        logger.error("Failed to start API - dialogue service initialization failed")
        sys.exit(1)

    sweeper = SessionSweeper(dialogue_service.store, interval_seconds=config.SWEEP_INTERVAL_SECONDS)
    sweeper.start()

    logger.info(f"API ready! Listening on port {PORT}")
    logger.info(
        f"Try: curl -X POST http://localhost:{PORT}/voice/parse -H 'Content-Type: application/json' "
        f"-d '{{\"transcript\": \"Emma\", \"children\": [{{\"id\": \"1\", \"name\": \"Emma\"}}]}}'"
    )

    try:
        app.run(
            host=config.API_HOST,
            port=PORT,
            debug=False,
        )
    finally:
        sweeper.stop(timeout=5)


if __name__ == "__main__":
    main()
