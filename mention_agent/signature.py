"""
Webhook signature verification.

The platform signs every delivery with HMAC-SHA256 over "<timestamp>.<raw body>"
using the community's shared secret and sends it as

    x-signature: t=<unix ms or ISO-8601>,v1=<base64 signature>

The raw request bytes are signed, so verification must run over the bytes as
received and never over a re-serialized body.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional, Tuple

log = logging.getLogger(__name__)

REPLAY_WINDOW_SECONDS = 60


@dataclass(frozen=True)
class Verdict:
    accepted: bool
    reason: Optional[str] = None


ACCEPT = Verdict(True)


def _digest(raw_body: bytes, timestamp: str, key: str) -> bytes:
    msg = timestamp.encode("utf-8") + b"." + raw_body
    return hmac.new(key.encode("utf-8"), msg, hashlib.sha256).digest()


def compute_signature(raw_body: bytes, timestamp: str, key: str) -> str:
    return base64.b64encode(_digest(raw_body, timestamp, key)).decode("ascii")


def signature_header(raw_body: bytes, key: str, timestamp: Optional[str] = None) -> str:
    if timestamp is None:
        timestamp = str(int(time.time() * 1000))
    return f"t={timestamp},v1={compute_signature(raw_body, timestamp, key)}"


def parse_header(header: str) -> Optional[Tuple[str, str]]:
    parts = {}
    for item in header.split(","):
        # base64 padding contains '=', so only split on the first one
        name, sep, value = item.strip().partition("=")
        if sep:
            parts.setdefault(name, value.strip())
    ts, sig = parts.get("t"), parts.get("v1")
    if not ts or not sig:
        return None
    return ts, sig


def parse_timestamp(ts: str) -> Optional[float]:
    """Header timestamp -> unix seconds. Accepts unix milliseconds or ISO-8601."""
    if ts.isascii() and ts.isdigit():
        # ms timestamps are 13 digits; anything far longer cannot be a real clock value
        if len(ts) > 16:
            return None
        return int(ts) / 1000.0
    try:
        dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.timestamp()
    except (ValueError, OverflowError):
        return None


def verify_signature(raw_body: bytes, header: Optional[str], signing_key: str,
                     now: Optional[float] = None) -> Verdict:
    if not header:
        return Verdict(False, "missing_signature")
    parsed = parse_header(header)
    if parsed is None:
        return Verdict(False, "malformed_signature")
    ts, supplied = parsed

    try:
        supplied_bytes = base64.b64decode(supplied, validate=True)
    except (binascii.Error, ValueError):
        return Verdict(False, "bad_signature")
    valid = hmac.compare_digest(supplied_bytes, _digest(raw_body, ts, signing_key))

    sent_at = parse_timestamp(ts)
    if now is None:
        now = time.time()
    fresh = sent_at is not None and abs(now - sent_at) < REPLAY_WINDOW_SECONDS

    if not valid:
        return Verdict(False, "bad_signature")
    if not fresh:
        return Verdict(False, "stale_timestamp")
    return ACCEPT


def verify_request(raw_body: bytes, header: Optional[str], community_id: str,
                   signing_keys: Mapping[str, str], now: Optional[float] = None) -> Verdict:
    """Check a delivery against the key registered for its community."""
    if not signing_keys:
        log.warning("[WARN] webhook signing keys not set, skipping signature validation (insecure mode)")
        return ACCEPT

    key = signing_keys.get(community_id)
    if not key:
        return Verdict(False, "unknown_tenant")
    return verify_signature(raw_body, header, key, now=now)
