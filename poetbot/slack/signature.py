"""Slack request signing (v0 scheme).

Slack signs every Events API request with HMAC-SHA256 over
``v0:{timestamp}:{raw body}`` keyed by the app's signing secret and sends the
result as ``X-Slack-Signature: v0=<hex digest>``. Requests whose timestamp is
further than the replay window from the local clock are rejected even when the
signature matches.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time

logger = logging.getLogger("poetbot")

SIGNATURE_VERSION = "v0"
REPLAY_WINDOW_SECONDS = 300


def _to_bytes(value: bytes | str) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def compute_signature(raw_body: bytes | str, timestamp: str, secret: bytes | str) -> str:
    base_string = b"%s:%s:%s" % (
        SIGNATURE_VERSION.encode("ascii"),
        timestamp.encode("utf-8"),
        _to_bytes(raw_body),
    )
    digest = hmac.new(_to_bytes(secret), base_string, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_request(
    raw_body: bytes | str,
    timestamp: str | None,
    signature: str | None,
    secret: bytes | str,
    now: float | None = None,
    window: int = REPLAY_WINDOW_SECONDS,
) -> bool:
    """Return True when ``signature`` is Slack's signature for this body and timestamp.

    Never raises: missing headers, a non-numeric timestamp, a stale timestamp or
    a mismatching digest all return False.
    """
    if not timestamp or not signature or not secret:
        logger.debug("Signature check failed: missing header or secret")
        return False

    try:
        request_ts = int(timestamp)
    except ValueError:
        logger.warning("Signature check failed: non-numeric timestamp")
        return False

    current = int(time.time() if now is None else now)
    if abs(current - request_ts) > window:
        logger.warning("Signature check failed: timestamp outside %ss window", window)
        return False

    expected = compute_signature(raw_body, timestamp, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
