# commitlink/config.py
from dotenv import load_dotenv
import logging
import os
from typing import Optional

# load local .env if present
load_dotenv()

logger = logging.getLogger(__name__)

# When set, settings are looked up under this SSM path before the environment.
SSM_PREFIX = os.getenv("COMMITLINK_SSM_PREFIX", "")


def _get_param_from_ssm(name: str, decrypt: bool = False) -> Optional[str]:
    """
    Try to fetch from SSM. Import boto3/ssm helper lazily so imports don't fail
    if boto3/SSM isn't available or the instance role can't access SSM.
    """
    if not SSM_PREFIX:
        return None
    try:
        from .utils.ssm import get_param
        return get_param(SSM_PREFIX, name, decrypt=decrypt)
    except Exception as e:
        logger.debug("SSM lookup for %s failed: %s", name, e)
        return None


def _get_param_with_fallback(name: str, decrypt: bool = False, default: Optional[str] = None) -> Optional[str]:
    val = _get_param_from_ssm(name, decrypt=decrypt)
    if val:
        return val
    return os.getenv(name, default)


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def _as_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value else default
    except ValueError:
        return default


def get_database_url() -> str:
    db = _get_param_with_fallback("DATABASE_URL", decrypt=True)
    if db:
        return db
    return "sqlite:///commitlink.sqlite"


class Config:
    SQLALCHEMY_DATABASE_URI = get_database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = _get_param_with_fallback("LOG_LEVEL", default="INFO")
    # Bearer token guarding the /settings routes; empty leaves them open
    SETTINGS_API_TOKEN = _get_param_with_fallback("SETTINGS_API_TOKEN", decrypt=True, default="")
    # Accept the bare hook secret in a signature header (old Gitea senders)
    ACCEPT_LEGACY_SECRET_SIGNATURE = _as_bool(_get_param_with_fallback("ACCEPT_LEGACY_SECRET_SIGNATURE"))
    # Seconds allowed for the Gitea "test connection" call
    GITEA_API_TIMEOUT = _as_float(_get_param_with_fallback("GITEA_API_TIMEOUT"), 8.0)
