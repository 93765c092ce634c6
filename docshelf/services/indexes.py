"""Ordered document-ID indexes kept as JSON arrays in the backing store."""

from typing import List, Optional, Tuple

from docshelf.services.kv_store import KVStoreService

PUBLIC_INDEX_KEY = "documents:public:index"
OWNER_INDEX_PREFIX = "documents:owner:"


def owner_index_key(owner_token: str) -> str:
    """Key of the index listing one owner's documents."""
    return f"{OWNER_INDEX_PREFIX}{owner_token}"


def slice_index(
    index: List[str], limit: int, cursor: Optional[str] = None
) -> Tuple[List[str], Optional[str]]:
    """
    Take one page of an index.

    The cursor is the last ID of the previous page; an unknown cursor
    restarts from the beginning.

    Args:
        index: Document IDs, newest first.
        limit: Page size.
        cursor: Last ID returned by the previous page.

    Returns:
        The page and the cursor for the next page (None when exhausted).
    """
    start = 0
    if cursor and cursor in index:
        start = index.index(cursor) + 1
    end = start + limit
    page = index[start:end]
    next_cursor = index[end - 1] if end < len(index) else None
    return page, next_cursor


class IndexService:
    """Read-modify-write access to index records.

    Concurrent writers to the same index race; the last write wins. Every
    touch deduplicates, so a lost or duplicated entry heals on the next
    write to that index.
    """

    def __init__(self, kv_store: KVStoreService) -> None:
        self.kv_store = kv_store

    async def read(self, key: str) -> List[str]:
        """Return the index under key, or an empty list if absent or malformed."""
        parsed = await self.kv_store.get_json(key)
        if not isinstance(parsed, list):
            return []
        return [item for item in parsed if isinstance(item, str)]

    async def write(self, key: str, ids: List[str]) -> None:
        await self.kv_store.put_json(key, ids)

    async def touch(self, key: str, document_id: str) -> None:
        """Move document_id to the front of the index."""
        index = await self.read(key)
        filtered = [existing for existing in index if existing != document_id]
        await self.write(key, [document_id] + filtered)

    async def remove(self, key: str, document_id: str) -> None:
        """Drop every occurrence of document_id from the index."""
        index = await self.read(key)
        filtered = [existing for existing in index if existing != document_id]
        if len(filtered) == len(index):
            return
        await self.write(key, filtered)
