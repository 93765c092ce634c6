"""HMAC-signed, time-limited share tokens."""

import base64
import binascii
import hashlib
import hmac
import json
import time
from typing import Optional

from pydantic import ValidationError

from docshelf.models.document import ShareTokenPayload


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def _serialize(payload: ShareTokenPayload) -> str:
    return json.dumps(
        {"documentId": payload.document_id, "expiresAt": payload.expires_at},
        separators=(",", ":"),
    )


def _sign(data: str, secret: str) -> str:
    return hmac.new(
        secret.encode("utf-8"), data.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def create_share_token(payload: ShareTokenPayload, secret: str) -> str:
    """
    Create a signed share token.

    The token is ``base64("<payload-json>.<hex-hmac>")``.

    Args:
        payload: Document ID and expiry in epoch milliseconds.
        secret: HMAC signing secret.

    Returns:
        Base64-encoded token.
    """
    data = _serialize(payload)
    signature = _sign(data, secret)
    return base64.b64encode(f"{data}.{signature}".encode("utf-8")).decode("ascii")


def verify_share_token(
    token: str, secret: str, current_ms: Optional[int] = None
) -> Optional[ShareTokenPayload]:
    """
    Verify a share token.

    Any malformed, tampered or expired token yields None; the reason is
    never reported.

    Args:
        token: Token produced by create_share_token.
        secret: HMAC signing secret.
        current_ms: Override for the current time in epoch milliseconds.

    Returns:
        The payload if the token is valid and unexpired, otherwise None.
    """
    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None

    data, _, signature = decoded.rpartition(".")
    if not data or not signature:
        return None

    expected = _sign(data, secret)
    if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
        return None

    try:
        payload = ShareTokenPayload.model_validate_json(data)
    except ValidationError:
        return None

    if payload.expires_at < (now_ms() if current_ms is None else current_ms):
        return None
    return payload
