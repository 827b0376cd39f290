# commitlink/settings.py
import hmac
import logging
from urllib.parse import urlsplit
from flask import Blueprint, current_app, request, jsonify

from .repositories import SourceRepository, generate_hook_secret
from .utils.gitea import check_connection

logger = logging.getLogger(__name__)

bp = Blueprint("settings", __name__, url_prefix="/settings")


def _reply(success: bool, message: str, status: int, **extra):
    return jsonify({"success": success, "message": message, **extra}), status


def _form() -> dict:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _field(data: dict, name: str, default: str = "") -> str:
    value = data.get(name, default)
    return str(value).strip() if value is not None else default


def _int_field(data: dict, name: str):
    value = _field(data, name)
    return int(value) if value.isdigit() else None


def _valid_url(url: str) -> bool:
    parsed = urlsplit(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@bp.before_request
def require_token():
    token = current_app.config.get("SETTINGS_API_TOKEN") or ""
    if not token:
        return None
    supplied = request.headers.get("Authorization", "")
    if not hmac.compare_digest(supplied.encode(), f"Bearer {token}".encode()):
        logger.warning("Settings: rejected request without a valid token")
        return _reply(False, "Unauthorized", 401)
    return None


@bp.route("", methods=["GET"])
def list_sources():
    try:
        sources = SourceRepository().list_all()
    except Exception as e:
        logger.exception("Settings: could not load configurations")
        return _reply(False, f"Could not load configurations: {e}", 500)
    return jsonify({"success": True, "configs": [s.to_dict() for s in sources]}), 200


@bp.route("", methods=["POST"])
def register_source():
    data = _form()
    repository_url = _field(data, "repository_url")
    access_token = _field(data, "repository_access_token")
    branch_filter = _field(data, "branch_filter", "*") or "*"

    if not repository_url or not _valid_url(repository_url):
        return _reply(False, "Repository URL is required and must be a valid URL.", 400)
    if not access_token:
        return _reply(False, "Repository access token is required.", 400)

    hook_secret = generate_hook_secret()
    saved_id = SourceRepository().save(
        repository_url=repository_url,
        access_token=access_token,
        hook_secret=hook_secret,
        branch_filter=branch_filter,
    )
    if saved_id is None:
        return _reply(False, "Failed to save configuration.", 500)

    return _reply(True, "Configuration saved", 201, id=saved_id, hook_secret=hook_secret)


@bp.route("/update", methods=["POST"])
def update_source():
    data = _form()
    source_id = _int_field(data, "id")
    if source_id is None:
        return _reply(False, "Invalid id", 400)

    branch_filter = _field(data, "branch_filter")
    hook_id = _int_field(data, "hook_id")
    if not branch_filter and hook_id is None:
        return _reply(False, "Branch filter cannot be empty", 400)

    repo = SourceRepository()
    try:
        ok = True
        if branch_filter:
            ok = repo.update_branch_filter(source_id, branch_filter)
        if ok and hook_id is not None:
            ok = repo.update_hook_id(source_id, hook_id)
    except Exception as e:
        logger.exception("Settings: update of %s failed", source_id)
        return _reply(False, f"Error: {e}", 500)

    if not ok:
        return _reply(False, "Configuration not found", 404)
    return _reply(True, "Configuration updated", 200)


@bp.route("/delete", methods=["POST"])
def delete_source():
    source_id = _int_field(_form(), "id")
    if source_id is None:
        return _reply(False, "Invalid id", 400)

    try:
        ok = SourceRepository().delete_by_id(source_id)
    except Exception as e:
        logger.exception("Settings: delete of %s failed", source_id)
        return _reply(False, f"Error: {e}", 500)

    if not ok:
        return _reply(False, "Configuration not found", 404)
    return _reply(True, "Configuration deleted", 200)


@bp.route("/test", methods=["POST"])
def test_connection():
    data = _form()
    repository_url = _field(data, "repository_url")
    access_token = _field(data, "repository_access_token")

    if not repository_url or not _valid_url(repository_url):
        return _reply(False, "Invalid repository URL", 400)
    if not access_token:
        return _reply(False, "Access token is required", 400)

    ok, message = check_connection(
        repository_url, access_token, timeout=current_app.config.get("GITEA_API_TIMEOUT", 8.0)
    )
    return _reply(ok, message, 200 if ok else 400)
