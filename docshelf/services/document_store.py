"""Versioned document store on top of the key-value backing store.

Every multi-key write (record, version blob, index updates) is a
best-effort fan-out of independent operations issued concurrently. The
backing store has no transactions, so a failure between them can leave an
index entry without a record or a record without an index entry. Read
paths skip such entries instead of failing.

Updates to the same document are not serialized: two concurrent updates
both pass the ownership check from the same starting state, and whichever
record write lands last decides ``updatedAt``, ``size`` and the version
list. This is accepted weak consistency, not something to lock around.
"""

import asyncio
import secrets
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from docshelf.core.exceptions import (
    DocumentNotFoundError,
    FileTooLargeError,
    ForbiddenError,
    ValidationError,
)
from docshelf.models.document import (
    DocumentListResponse,
    DocumentRecord,
    DocumentVersion,
    DocumentView,
    DocumentWriteResult,
    StoredDocument,
    VersionMetadata,
)
from docshelf.services.hashing import content_size, hash_content
from docshelf.services.indexes import (
    PUBLIC_INDEX_KEY,
    IndexService,
    owner_index_key,
    slice_index,
)
from docshelf.services.kv_store import KVStoreService

DOCUMENT_KEY_PREFIX = "doc:"
VERSION_KEY_PREFIX = "version:"

# token_urlsafe(n) yields ceil(n * 4 / 3) characters
DOCUMENT_ID_BYTES = 9
VERSION_ID_BYTES = 8
RAW_ACCESS_KEY_BYTES = 12


def document_key(document_id: str) -> str:
    return f"{DOCUMENT_KEY_PREFIX}{document_id}"


def version_key(document_id: str, version_id: str) -> str:
    return f"{VERSION_KEY_PREFIX}{document_id}:{version_id}"


def normalize_token(token: Optional[str]) -> Optional[str]:
    """Treat empty or whitespace-only tokens as absent."""
    if token is None:
        return None
    token = token.strip()
    return token or None


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_view(metadata: StoredDocument, viewer_token: Optional[str] = None) -> DocumentView:
    """
    Build the viewer-facing view of a stored document.

    The owner token is never copied. The raw-access key is only exposed to
    the owner, who needs it to hand out raw links.

    Args:
        metadata: Stored document metadata.
        viewer_token: Credential presented by the requester, if any.

    Returns:
        Sanitized document view.
    """
    owner = normalize_token(metadata.owner_token)
    is_owner = owner is not None and normalize_token(viewer_token) == owner
    return DocumentView(
        id=metadata.id,
        title=metadata.title,
        created_at=metadata.created_at,
        updated_at=metadata.updated_at,
        size=metadata.size,
        versions=list(metadata.versions),
        is_owner=is_owner,
        is_private=owner is not None,
        raw_access_key=metadata.raw_access_key if is_owner else None,
    )


class DocumentStore:
    """Create, update, delete, fetch and list versioned documents.

    Holds only a backing store handle and the size limit, so one instance
    can serve any number of concurrent callers.
    """

    def __init__(self, kv_store: KVStoreService, max_size: int) -> None:
        """
        Initialize the document store.

        Args:
            kv_store: Backing key-value store.
            max_size: Maximum content size per version in bytes.
        """
        self.kv_store = kv_store
        self.indexes = IndexService(kv_store)
        self.max_size = max_size

    async def create_document(
        self, title: str, content: str, owner_token: Optional[str] = None
    ) -> DocumentWriteResult:
        """
        Create a document with its first version.

        Args:
            title: Document title.
            content: Content of the first version.
            owner_token: Optional owner credential; absent means public.

        Returns:
            Sanitized view and the full first version.

        Raises:
            ValidationError: Title is empty or content is not a string.
            FileTooLargeError: Content exceeds the size limit.
        """
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("title and content required")
        self._assert_size(content)

        owner_token = normalize_token(owner_token)
        document_id = secrets.token_urlsafe(DOCUMENT_ID_BYTES)
        version = self._new_version(content)

        stored = StoredDocument(
            id=document_id,
            title=title,
            created_at=version.created_at,
            updated_at=version.created_at,
            size=version.size,
            versions=[version],
            owner_token=owner_token,
            raw_access_key=secrets.token_urlsafe(RAW_ACCESS_KEY_BYTES) if owner_token else None,
        )

        tasks = [
            self._put_record(stored),
            self._put_version(document_id, version.version_id, content),
            self._update_public_index(document_id, owner_token is None),
        ]
        if owner_token:
            tasks.append(self.indexes.touch(owner_index_key(owner_token), document_id))
        await asyncio.gather(*tasks)

        return DocumentWriteResult(
            metadata=to_view(stored, owner_token),
            version=DocumentVersion(metadata=version, content=content),
        )

    async def update_document(
        self, document_id: str, content: str, owner_token: Optional[str] = None
    ) -> DocumentWriteResult:
        """
        Append a new version to a document.

        Args:
            document_id: Document to update.
            content: Content of the new version.
            owner_token: Caller's credential.

        Returns:
            Sanitized view and the new version.

        Raises:
            DocumentNotFoundError: The document does not exist.
            ForbiddenError: The token does not match the stored owner, or a
                token was supplied for a public document.
            FileTooLargeError: Content exceeds the size limit.
        """
        stored = await self.get_record(document_id)
        if stored is None:
            raise DocumentNotFoundError()
        owner_token = normalize_token(owner_token)
        existing_owner = self._check_ownership(stored, owner_token)
        self._assert_size(content)

        version = self._new_version(content)
        stored.updated_at = version.created_at
        stored.size = version.size
        stored.versions = [version] + stored.versions
        if existing_owner:
            stored.raw_access_key = secrets.token_urlsafe(RAW_ACCESS_KEY_BYTES)

        tasks = [
            self._put_record(stored),
            self._put_version(document_id, version.version_id, content),
            self._update_public_index(document_id, existing_owner is None),
        ]
        if existing_owner:
            tasks.append(self.indexes.touch(owner_index_key(existing_owner), document_id))
        await asyncio.gather(*tasks)

        return DocumentWriteResult(
            metadata=to_view(stored, owner_token),
            version=DocumentVersion(metadata=version, content=content),
        )

    async def delete_document(self, document_id: str, owner_token: Optional[str] = None) -> None:
        """
        Delete a document, its version contents and its index entries.

        Raises:
            DocumentNotFoundError: The document does not exist.
            ForbiddenError: Same ownership rule as update_document.
        """
        stored = await self.get_record(document_id)
        if stored is None:
            raise DocumentNotFoundError()
        existing_owner = self._check_ownership(stored, normalize_token(owner_token))

        tasks = [
            self.kv_store.delete(document_key(document_id)),
            self.indexes.remove(PUBLIC_INDEX_KEY, document_id),
        ]
        if existing_owner:
            tasks.append(self.indexes.remove(owner_index_key(existing_owner), document_id))
        for version in stored.versions:
            tasks.append(self.kv_store.delete(version_key(document_id, version.version_id)))
        await asyncio.gather(*tasks)

    async def get_document(
        self, document_id: str, viewer_token: Optional[str] = None
    ) -> Optional[DocumentView]:
        """Return the view of a document relative to viewer_token, or None."""
        stored = await self.get_record(document_id)
        if stored is None:
            return None
        return to_view(stored, viewer_token)

    async def get_record(self, document_id: str) -> Optional[StoredDocument]:
        """
        Load and validate a stored document record.

        Malformed or unrecognized records are reported as missing.
        """
        value = await self.kv_store.get(document_key(document_id))
        if not value:
            return None
        try:
            record = DocumentRecord.model_validate_json(value)
        except PydanticValidationError:
            return None
        return record.metadata

    async def get_version(self, document_id: str, version_id: str) -> Optional[DocumentVersion]:
        """
        Load one version's content.

        The blob is only returned if the version is listed in the document
        metadata, so orphaned blobs are never served.
        """
        content, stored = await asyncio.gather(
            self.kv_store.get(version_key(document_id, version_id)),
            self.get_record(document_id),
        )
        if content is None or stored is None:
            return None
        for version in stored.versions:
            if version.version_id == version_id:
                return DocumentVersion(metadata=version, content=content)
        return None

    async def list_public_documents(
        self,
        viewer_token: Optional[str] = None,
        limit: int = 20,
        cursor: Optional[str] = None,
    ) -> DocumentListResponse:
        """List one page of the public index."""
        index = await self.indexes.read(PUBLIC_INDEX_KEY)
        page, next_cursor = slice_index(index, limit, cursor)
        documents = await self._load_views(page, viewer_token)
        return DocumentListResponse(documents=documents, cursor=next_cursor)

    async def list_owner_documents(
        self,
        owner_token: Optional[str],
        limit: int = 20,
        cursor: Optional[str] = None,
    ) -> DocumentListResponse:
        """List one page of an owner's index. Empty without a token."""
        owner_token = normalize_token(owner_token)
        if owner_token is None:
            return DocumentListResponse(documents=[])
        index = await self.indexes.read(owner_index_key(owner_token))
        page, next_cursor = slice_index(index, limit, cursor)
        documents = await self._load_views(page, owner_token, owned_only=True)
        return DocumentListResponse(documents=documents, cursor=next_cursor)

    async def prune_index(self, owner_token: Optional[str] = None) -> int:
        """
        Drop index entries whose document record no longer exists.

        Args:
            owner_token: Prune this owner's index; the public index if None.

        Returns:
            Number of entries removed.
        """
        owner_token = normalize_token(owner_token)
        key = owner_index_key(owner_token) if owner_token else PUBLIC_INDEX_KEY
        index = await self.indexes.read(key)
        records = await asyncio.gather(*(self.get_record(i) for i in index))
        kept = [i for i, record in zip(index, records) if record is not None]
        if len(kept) != len(index):
            await self.indexes.write(key, kept)
        return len(index) - len(kept)

    async def _load_views(
        self,
        ids: List[str],
        viewer_token: Optional[str],
        owned_only: bool = False,
    ) -> List[DocumentView]:
        records = await asyncio.gather(*(self.get_record(i) for i in ids))
        views = []
        for stored in records:
            if stored is None:
                continue
            view = to_view(stored, viewer_token)
            if view.is_private and not view.is_owner:
                continue
            if owned_only and not view.is_owner:
                continue
            views.append(view)
        return views

    def _check_ownership(
        self, stored: StoredDocument, owner_token: Optional[str]
    ) -> Optional[str]:
        existing_owner = normalize_token(stored.owner_token)
        if existing_owner:
            if existing_owner != owner_token:
                raise ForbiddenError()
        elif owner_token:
            # Ownership cannot be claimed after creation
            raise ForbiddenError()
        return existing_owner

    def _assert_size(self, content: str) -> None:
        if not isinstance(content, str):
            raise ValidationError("content must be a string")
        if content_size(content) > self.max_size:
            raise FileTooLargeError()

    def _new_version(self, content: str) -> VersionMetadata:
        return VersionMetadata(
            version_id=secrets.token_urlsafe(VERSION_ID_BYTES),
            created_at=utc_now_iso(),
            size=content_size(content),
            hash=hash_content(content),
        )

    async def _put_record(self, stored: StoredDocument) -> None:
        record = DocumentRecord(metadata=stored)
        await self.kv_store.put(
            document_key(stored.id),
            record.model_dump_json(by_alias=True, exclude_none=True),
        )

    async def _put_version(self, document_id: str, version_id: str, content: str) -> None:
        await self.kv_store.put(version_key(document_id, version_id), content)

    async def _update_public_index(self, document_id: str, is_public: bool) -> None:
        if is_public:
            await self.indexes.touch(PUBLIC_INDEX_KEY, document_id)
        else:
            await self.indexes.remove(PUBLIC_INDEX_KEY, document_id)
