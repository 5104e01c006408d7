"""Secrets Manager helper utilities.

Provides cached helpers to read the store API key (and any other deployment
secret) from AWS Secrets Manager when it is not set in the environment.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from typing import Any

import boto3


@lru_cache(maxsize=128)
def _get_secrets_client() -> Any:
    """Return a cached boto3 Secrets Manager client.

    Returns:
        Boto3 Secrets Manager client bound to AWS_REGION.
    """
    region = os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or "us-east-1"
    return boto3.client("secretsmanager", region_name=region)


@lru_cache(maxsize=256)
def get_secret_string(secret_name: str) -> str:
    """Fetch a secret string value by name with caching.

    Args:
        secret_name: Full name of the secret in Secrets Manager.

    Returns:
        Secret value as a raw string. JSON secrets of the form
        ``{"key": "..."}`` are unwrapped to the ``key`` value.
    """
    client = _get_secrets_client()
    response = client.get_secret_value(SecretId=secret_name)
    if "SecretString" in response:
        raw = str(response["SecretString"])
    else:
        raw = response.get("SecretBinary", b"").decode("utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    if isinstance(payload, dict) and "key" in payload:
        return str(payload["key"])
    return raw
