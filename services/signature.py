"""
Webhook signature verification for MercadoPago notifications.

MercadoPago signs each notification with the application's webhook secret:

    x-signature:  ts=1704908010,v1=618c85345248dd820d5fd456117c2ab2ef8eda45a0282ff693eac24131a5e839
    x-request-id: bb56a2f1-6aae-46ac-982e-9dcd3581d08e

v1 is HMAC-SHA256(secret, "id:<data.id>;request-id:<x-request-id>;ts:<ts>;") as
lowercase hex.
"""

from __future__ import annotations

import hashlib
import hmac
import re
from dataclasses import dataclass
from typing import Optional

# HMAC-SHA256 hex digest.
_V1_PATTERN = re.compile(r"[0-9a-fA-F]{64}")


@dataclass(frozen=True, slots=True)
class SignatureHeader:
    """Parsed `x-signature` header."""

    ts: str
    v1: str


def parse_signature_header(value: Optional[str]) -> Optional[SignatureHeader]:
    """
    Parse `ts=...,v1=...` into a SignatureHeader.

    Returns None when the header is missing, lacks either field, or v1 is not
    a hex SHA-256 digest.
    """
    if not value:
        return None

    parts: dict[str, str] = {}
    for part in value.split(","):
        if "=" in part:
            key, val = part.split("=", 1)
            parts[key.strip()] = val.strip()

    ts = parts.get("ts")
    v1 = parts.get("v1")
    if not ts or not v1 or not _V1_PATTERN.fullmatch(v1):
        return None
    return SignatureHeader(ts=ts, v1=v1)


def normalize_resource_id(data_id: str) -> str:
    """Alphanumeric resource ids are signed in lowercase."""
    data_id = data_id.strip()
    return data_id.lower() if data_id.isalnum() else data_id


def build_manifest(data_id: str, request_id: str, ts: str) -> str:
    return f"id:{normalize_resource_id(data_id)};request-id:{request_id};ts:{ts};"


def compute_signature(secret: str, data_id: str, request_id: str, ts: str) -> str:
    """Hex HMAC-SHA256 of the notification manifest."""
    return hmac.new(
        secret.encode(),
        build_manifest(data_id, request_id, ts).encode(),
        hashlib.sha256,
    ).hexdigest()


def verify_signature(
    secret: str,
    data_id: Optional[str],
    request_id: Optional[str],
    signature_header: Optional[str],
) -> bool:
    """
    Check a notification's `x-signature` against the expected HMAC.

    Any missing input fails verification. The comparison is constant-time.
    """
    if not data_id or not request_id:
        return False

    parsed = parse_signature_header(signature_header)
    if parsed is None:
        return False

    expected = compute_signature(secret, data_id, request_id, parsed.ts)
    return hmac.compare_digest(expected.encode(), parsed.v1.encode())


__all__ = [
    "SignatureHeader",
    "parse_signature_header",
    "build_manifest",
    "compute_signature",
    "verify_signature",
]
