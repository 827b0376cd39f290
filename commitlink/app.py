# commitlink/app.py
import json
import logging
from flask import Blueprint, current_app, request, jsonify

from .linker import process_push
from .repositories import SourceRepository, TicketHistoryRepository
from .verify_signature import SIGNATURE_MISMATCH, extract_signature, match_source

logger = logging.getLogger(__name__)

bp = Blueprint("main", __name__)


def _failure(message: str, status: int):
    return jsonify({"success": False, "message": message}), status


@bp.route("/", methods=["GET"])
def health():
    return jsonify({"status": "ok"}), 200


@bp.route("/hook", methods=["POST"])
def hook():
    body = request.get_data()
    if not body:
        logger.warning("Hook: empty payload")
        return _failure("Empty payload", 400)

    signature = extract_signature(request.headers)

    try:
        payload = json.loads(body)
    except ValueError:
        logger.warning("Hook: invalid JSON")
        return _failure("Invalid JSON", 400)
    if not isinstance(payload, dict):
        logger.warning("Hook: JSON payload is not an object")
        return _failure("Invalid JSON", 400)

    match = match_source(
        SourceRepository().list_all(),
        body,
        signature,
        payload,
        allow_raw_secret=current_app.config.get("ACCEPT_LEGACY_SECRET_SIGNATURE", False),
    )
    if match.status == SIGNATURE_MISMATCH:
        return _failure("Signature mismatch", 403)
    if not match.ok:
        logger.warning("Hook: no matching config for incoming webhook")
        return _failure("No matching repository configuration found", 404)

    source = match.source
    logger.info("Hook: delivery for %s matched by %s", source.repository_url, match.matched_by)

    try:
        summary = process_push(source, payload, TicketHistoryRepository())
    except Exception:
        # verified deliveries are always acknowledged
        logger.exception("Hook: error while processing ticket linking")
        summary = {}

    return jsonify({"success": True, **summary}), 200
