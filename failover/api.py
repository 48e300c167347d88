"""Flask HTTP surface for sending messages and reading delivery history."""

from __future__ import annotations

import atexit
import logging
from datetime import datetime
from typing import Any

from flask import Blueprint, Flask, Response, current_app, jsonify, request
from pydantic import ValidationError

from .errors import AuditWriteError, InvalidRecipient, MessageRejected
from .history import DEFAULT_PAGE_SIZE, as_utc
from .orchestrator import FailoverOrchestrator
from .schemas import (
    NetworkStateRequest,
    SendMessageRequest,
    ValidateIdentifierRequest,
    record_to_dict,
    status_to_dict,
    summary_to_dict,
    validation_to_dict,
)
from .types import FinalOutcome

logger = logging.getLogger(__name__)

bp = Blueprint("failover", __name__)


def create_app(orchestrator: FailoverOrchestrator) -> Flask:
    """Flask application factory.

    Args:
        orchestrator: Fully wired orchestrator (real or built on mocks for tests).
    """
    app = Flask(__name__)
    app.extensions["failover"] = orchestrator
    app.register_blueprint(bp)

    atexit.register(orchestrator.close)

    logger.info("Delivery API initialized with channels: %s", ", ".join(c.value for c in orchestrator.channels))
    return app


def _orchestrator() -> FailoverOrchestrator:
    return current_app.extensions["failover"]


def _error(message: str, status: int, /, **extra: Any) -> tuple[Response, int]:
    body: dict[str, Any] = {"error": message}
    body.update(extra)
    return jsonify(body), status


def _json_body() -> dict[str, Any] | None:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else None


@bp.post("/messages")
def send_message() -> tuple[Response, int]:
    body = _json_body()
    if body is None:
        return _error("Request body must be a JSON object", 400)

    try:
        payload = SendMessageRequest.model_validate(body)
    except ValidationError as exc:
        return _error("Payload validation failed", 400, details=exc.errors(include_url=False))

    try:
        record = _orchestrator().dispatch(payload.to_message())
    except MessageRejected as exc:
        return _error(exc.code, 422, message=str(exc), finalOutcome=FinalOutcome.FAILED.value, attempts=[])
    except AuditWriteError as exc:
        return _error(exc.code, 500, message="Delivery completed but could not be audited", **record_to_dict(exc.record))

    return jsonify(record_to_dict(record)), 200


@bp.get("/messages")
def list_messages() -> tuple[Response, int]:
    orchestrator = _orchestrator()
    try:
        limit = int(request.args.get("limit", DEFAULT_PAGE_SIZE))
        offset = int(request.args.get("offset", 0))
    except ValueError:
        return _error("'limit' and 'offset' must be integers", 400)

    raw_recipient = request.args.get("recipient")
    recipient = None
    if raw_recipient:
        try:
            recipient = orchestrator.normalizer.normalize(raw_recipient)
        except InvalidRecipient as exc:
            return _error(exc.code, 422, message=str(exc))

    try:
        records = orchestrator.history.recent(recipient, limit=limit, offset=offset)
    except ValueError as exc:
        return _error(str(exc), 400)

    return jsonify([record_to_dict(r) for r in records]), 200


@bp.get("/messages/summary")
def usage_summary() -> tuple[Response, int]:
    since = None
    raw_since = request.args.get("since")
    if raw_since:
        try:
            since = as_utc(datetime.fromisoformat(raw_since))
        except ValueError:
            return _error("'since' must be an ISO 8601 timestamp", 400)
    return jsonify(summary_to_dict(_orchestrator().history.summary(since))), 200


@bp.get("/messages/<record_id>")
def get_message(record_id: str) -> tuple[Response, int]:
    record = _orchestrator().history.get(record_id)
    if record is None:
        return _error("Delivery record not found", 404)
    return jsonify(record_to_dict(record)), 200


@bp.get("/messages/<record_id>/status")
def get_message_status(record_id: str) -> tuple[Response, int]:
    orchestrator = _orchestrator()
    record = orchestrator.history.get(record_id)
    if record is None:
        return _error("Delivery record not found", 404)

    delivered = next((a for a in record.attempts if a.succeeded and a.provider_identifier), None)
    if delivered is None:
        return _error("Message has no provider identifier to look up", 404)

    report = orchestrator.fetch_status(delivered.channel, delivered.provider_identifier)  # type: ignore[arg-type]
    if report is None:
        return _error("Provider status unavailable", 404)
    return jsonify(status_to_dict(report)), 200


@bp.post("/validate-identifier")
def validate_identifier() -> tuple[Response, int]:
    body = _json_body()
    if body is None:
        return _error("Request body must be a JSON object", 400)
    try:
        payload = ValidateIdentifierRequest.model_validate(body)
    except ValidationError as exc:
        return _error("Payload validation failed", 400, details=exc.errors(include_url=False))

    result = _orchestrator().validator.validate(payload.sid)
    return jsonify(validation_to_dict(result)), 200


@bp.get("/network")
def get_network_state() -> tuple[Response, int]:
    return jsonify({"state": _orchestrator().network.state.value}), 200


@bp.put("/network")
def set_network_state() -> tuple[Response, int]:
    body = _json_body()
    if body is None:
        return _error("Request body must be a JSON object", 400)
    try:
        payload = NetworkStateRequest.model_validate(body)
    except ValidationError as exc:
        return _error("Payload validation failed", 400, details=exc.errors(include_url=False))

    changed = _orchestrator().network.set_state(payload.state)
    return jsonify({"state": payload.state.value, "changed": changed}), 200


@bp.get("/health")
def health() -> tuple[Response, int]:
    orchestrator = _orchestrator()
    return jsonify({
        "status": "degraded" if orchestrator.degraded else "healthy",
        "channels": [c.value for c in orchestrator.channels],
        "network": orchestrator.network.state.value,
    }), 200
