# commitlink/utils/ssm.py
import os
from functools import lru_cache

import boto3

# Default region fallback (so code doesn't raise NoRegionError)
_REGION = os.getenv("AWS_DEFAULT_REGION", os.getenv("AWS_REGION", "us-east-1"))


@lru_cache(maxsize=1)
def _ssm_client():
    return boto3.client("ssm", region_name=_REGION)


def parameter_path(prefix: str, name: str) -> str:
    """Join an SSM prefix such as ``/commitlink/prod`` with a setting name."""
    return f"/{prefix.strip('/')}/{name}" if prefix.strip("/") else f"/{name}"


def get_param(prefix: str, name: str, decrypt: bool = True) -> str:
    """Fetch a parameter from AWS SSM Parameter Store (raises on AWS errors)."""
    resp = _ssm_client().get_parameter(Name=parameter_path(prefix, name), WithDecryption=decrypt)
    return resp["Parameter"]["Value"]
