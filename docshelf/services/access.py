"""Access decisions layered on top of the document store."""

import hmac
import math
from typing import Any, Optional, Tuple
from urllib.parse import urlencode

from docshelf.core.config import settings
from docshelf.core.exceptions import DocumentNotFoundError, ForbiddenError
from docshelf.models.document import DocumentVersion, DocumentView, ShareTokenPayload
from docshelf.services.document_store import DocumentStore, normalize_token, to_view
from docshelf.services.share_tokens import create_share_token, now_ms, verify_share_token


def clamp_page_size(raw: Any) -> int:
    """Parse a page size, falling back to the default and clamping to 1..max.

    Fractional values are clamped, then truncated.
    """
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = 0.0
    if not value or math.isnan(value):
        value = settings.default_page_size
    return int(min(max(value, 1), settings.max_page_size))


def clamp_share_minutes(raw: Any) -> int:
    """Parse a share lifetime in minutes, clamped to 1..one week."""
    if raw is None:
        return settings.default_share_minutes
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = settings.default_share_minutes
    return min(max(value, 1), settings.max_share_minutes)


def build_raw_url(
    base_url: str, document_id: str, version_id: str, token: Optional[str] = None
) -> str:
    """Build the absolute raw-content URL for a document version."""
    query = {"versionId": version_id}
    if token:
        query["token"] = token
    return f"{base_url.rstrip('/')}/api/documents/{document_id}/raw?{urlencode(query)}"


async def resolve_raw_content(
    store: DocumentStore,
    document_id: str,
    viewer_token: Optional[str] = None,
    version_id: Optional[str] = None,
    raw_key: Optional[str] = None,
    share_token: Optional[str] = None,
    secret: Optional[str] = None,
) -> Tuple[DocumentView, DocumentVersion]:
    """
    Resolve the content served by the raw endpoint.

    A private document is readable by its owner, or by anyone presenting
    its current raw-access key. A share token, when supplied, must be
    valid for this document; it never unlocks private content.

    Args:
        store: Document store.
        document_id: Requested document.
        viewer_token: Requester's user token.
        version_id: Specific version; the latest if omitted.
        raw_key: Raw-access key from the link.
        share_token: Share token from the link.
        secret: Share token signing secret.

    Returns:
        The document view and the resolved version.

    Raises:
        DocumentNotFoundError: Document or version does not exist.
        ForbiddenError: The requester may not read this content.
    """
    stored = await store.get_record(document_id)
    if stored is None:
        raise DocumentNotFoundError()
    view = to_view(stored, viewer_token)

    if view.is_private and not view.is_owner:
        if not raw_key or not stored.raw_access_key or not hmac.compare_digest(
            raw_key.encode("utf-8"), stored.raw_access_key.encode("utf-8")
        ):
            raise ForbiddenError("owner token required")

    if share_token:
        payload = verify_share_token(share_token, secret or settings.share_secret)
        if payload is None or payload.document_id != document_id:
            raise ForbiddenError("invalid token")

    target = view.versions[0]
    if version_id:
        target = next((v for v in view.versions if v.version_id == version_id), None)
        if target is None:
            raise DocumentNotFoundError()

    version = await store.get_version(document_id, target.version_id)
    if version is None:
        raise DocumentNotFoundError()
    return view, version


async def issue_share_token(
    store: DocumentStore,
    document_id: str,
    viewer_token: Optional[str],
    expires_in_minutes: Any = None,
    secret: Optional[str] = None,
    current_ms: Optional[int] = None,
) -> Tuple[DocumentView, str, ShareTokenPayload]:
    """
    Issue a share token for a document the requester owns.

    Returns:
        The document view, the signed token and its payload.

    Raises:
        DocumentNotFoundError: The document does not exist.
        ForbiddenError: The requester is not the owner.
    """
    view = await store.get_document(document_id, normalize_token(viewer_token))
    if view is None:
        raise DocumentNotFoundError()
    if not view.is_owner:
        raise ForbiddenError("owner token required")

    minutes = clamp_share_minutes(expires_in_minutes)
    issued_at = now_ms() if current_ms is None else current_ms
    payload = ShareTokenPayload(
        document_id=document_id, expires_at=issued_at + minutes * 60 * 1000
    )
    token = create_share_token(payload, secret or settings.share_secret)
    return view, token, payload


async def redeem_share_token(
    store: DocumentStore, token: str, secret: Optional[str] = None
) -> DocumentView:
    """
    Resolve a share token to the public document it names.

    Raises:
        ForbiddenError: The token is invalid or expired, or the document is
            private.
        DocumentNotFoundError: The document no longer exists.
    """
    payload = verify_share_token(token, secret or settings.share_secret)
    if payload is None:
        raise ForbiddenError("invalid token")
    view = await store.get_document(payload.document_id)
    if view is None:
        raise DocumentNotFoundError()
    if view.is_private:
        raise ForbiddenError("owner token required")
    return view
