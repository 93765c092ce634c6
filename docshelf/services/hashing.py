"""Content fingerprinting for stored versions."""

import hashlib


def content_bytes(content: str) -> bytes:
    """Return the UTF-8 encoding of document content."""
    return content.encode("utf-8")


def content_size(content: str) -> int:
    """Return the size of document content in bytes."""
    return len(content_bytes(content))


def hash_content(content: str) -> str:
    """
    Compute the hex SHA-256 digest of document content.

    Args:
        content: Document text.

    Returns:
        Lowercase hex digest of the UTF-8 bytes.
    """
    return hashlib.sha256(content_bytes(content)).hexdigest()
