"""Document models for the versioned document store."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VersionMetadata(CamelModel):
    """Metadata for a single immutable version."""

    version_id: str
    created_at: str
    size: int = Field(ge=0)
    hash: str


class StoredDocument(CamelModel):
    """Full document metadata as persisted, including credentials."""

    id: str
    title: str
    created_at: str
    updated_at: str
    size: int = Field(ge=0)
    versions: List[VersionMetadata] = Field(min_length=1)
    owner_token: Optional[str] = None
    raw_access_key: Optional[str] = None


class DocumentRecord(CamelModel):
    """Tagged, versioned envelope stored under ``doc:<id>``."""

    kind: Literal["document"] = "document"
    schema_version: Literal[1] = 1
    metadata: StoredDocument


class DocumentView(CamelModel):
    """Viewer-facing document metadata. Never carries the owner token."""

    id: str
    title: str
    created_at: str
    updated_at: str
    size: int
    versions: List[VersionMetadata]
    is_owner: bool
    is_private: bool
    raw_access_key: Optional[str] = None


class DocumentVersion(CamelModel):
    """Version metadata together with its content."""

    metadata: VersionMetadata
    content: str


class DocumentWriteResult(CamelModel):
    """Result of a create or update."""

    metadata: DocumentView
    version: DocumentVersion


class DocumentListResponse(CamelModel):
    """One page of an index listing."""

    documents: List[DocumentView]
    cursor: Optional[str] = None


class ShareTokenPayload(CamelModel):
    """Claims carried by a share token."""

    document_id: str
    expires_at: int
