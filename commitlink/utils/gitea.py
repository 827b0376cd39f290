# commitlink/utils/gitea.py
import logging
from typing import Tuple
from urllib.parse import urlsplit

import requests

logger = logging.getLogger(__name__)

USER_AGENT = "commitlink/1.0"


def api_base(repository_url: str) -> str:
    """``scheme://host[:port]`` of a repository URL, or "" when it can't be parsed."""
    try:
        parsed = urlsplit(repository_url.strip().rstrip("/"))
        port = parsed.port
    except ValueError:
        return ""
    if not parsed.scheme or not parsed.hostname:
        return ""
    base = f"{parsed.scheme}://{parsed.hostname}"
    if port:
        base += f":{port}"
    return base


def check_connection(repository_url: str, access_token: str, timeout: float = 8.0) -> Tuple[bool, str]:
    """
    Validate an access token by asking the Gitea host who it belongs to.

    Returns ``(ok, message)``; network errors are reported, not raised.
    """
    base = api_base(repository_url)
    if not base:
        return False, "Could not parse repository URL"

    url = f"{base}/api/v1/user"
    headers = {
        "Accept": "application/json",
        "Authorization": f"token {access_token}",
        "User-Agent": USER_AGENT,
    }
    logger.debug("GET %s", url)

    try:
        resp = requests.get(url, headers=headers, timeout=timeout)
    except requests.RequestException as e:
        logger.warning("Gitea connection check failed: %s", e)
        return False, f"Connection failed: {e}"

    if 200 <= resp.status_code < 300:
        return True, "Connection successful"

    msg = f"API returned HTTP {resp.status_code}"
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        msg += f": {body['message']}"
    logger.warning("Gitea connection check failed: %s", msg)
    return False, msg
