"""
Slack request signature verification.

Slack signs each request with ``v0=`` + HMAC-SHA256 over
``v0:{timestamp}:{body}`` using the app's signing secret. Requests older (or
newer) than the freshness window are rejected to stop replays.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from typing import Callable, Mapping, Optional, Union

from slackmod.exceptions import SignatureValidationError

SIGNATURE_VERSION = "v0"
SIGNATURE_HEADER = "x-slack-signature"
TIMESTAMP_HEADER = "x-slack-request-timestamp"
DEFAULT_MAX_AGE_SECONDS = 300


def compute_signature(signing_secret: str, timestamp: str, body: Union[str, bytes]) -> str:
    if isinstance(body, str):
        body = body.encode("utf-8")
    basestring = f"{SIGNATURE_VERSION}:{timestamp}:".encode("utf-8") + body
    digest = hmac.new(
        signing_secret.encode("utf-8"),
        basestring,
        hashlib.sha256,
    ).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_signature(
    signing_secret: str,
    timestamp: Optional[str],
    body: Union[str, bytes],
    signature: Optional[str],
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    clock: Callable[[], float] = time.time,
) -> None:
    """Verify a Slack request signature.

    Args:
        signing_secret: The app's signing secret
        timestamp: Value of the ``X-Slack-Request-Timestamp`` header
        body: Raw request body, exactly as received; bytes are signed as-is
        signature: Value of the ``X-Slack-Signature`` header
        max_age_seconds: Allowed clock difference in either direction

    Raises:
        SignatureValidationError: Missing headers, stale timestamp or mismatch
    """
    if not signature or not timestamp:
        raise SignatureValidationError("missing signature headers")

    try:
        request_time = int(timestamp)
    except ValueError:
        raise SignatureValidationError("malformed timestamp") from None

    if abs(clock() - request_time) > max_age_seconds:
        raise SignatureValidationError("request timestamp too old")

    expected = compute_signature(signing_secret, timestamp, body)
    if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
        raise SignatureValidationError("signature mismatch")


def is_valid_request(
    signing_secret: str,
    headers: Mapping[str, str],
    body: Union[str, bytes],
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
) -> bool:
    """Boolean form of :func:`verify_signature` reading Slack's headers."""
    try:
        verify_signature(
            signing_secret,
            headers.get(TIMESTAMP_HEADER),
            body,
            headers.get(SIGNATURE_HEADER),
            max_age_seconds,
        )
    except SignatureValidationError:
        return False
    return True
