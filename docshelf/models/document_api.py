"""Pydantic models for the document HTTP API."""

from typing import Optional

from pydantic import Field, StrictStr

from docshelf.models.document import CamelModel


class DocumentCreate(CamelModel):
    """Model for creating a document."""

    title: StrictStr = Field(..., min_length=1)
    content: StrictStr


class DocumentUpdate(CamelModel):
    """Model for appending a version to a document."""

    content: StrictStr


class ShareRequest(CamelModel):
    """Model for issuing a share token."""

    expires_in_minutes: Optional[int] = None


class ShareResponse(CamelModel):
    """Model for an issued share token."""

    token: str
    share_url: str
    expires_at: int


class UserTokenResponse(CamelModel):
    """Model for a freshly minted user token."""

    token: str
