"""Dependency injection for services."""

from docshelf.core.config import settings
from docshelf.services.document_store import DocumentStore
from docshelf.services.kv_store import KVStoreService


class ServiceContainer:
    """Container for service instances."""

    def __init__(self) -> None:
        """Initialize service container."""
        self.kv_store = KVStoreService()
        self.document_store = DocumentStore(self.kv_store, settings.max_file_size)

    async def initialize(self) -> None:
        """Initialize all services."""
        await self.kv_store.connect()

    async def shutdown(self) -> None:
        """Shutdown all services."""
        await self.kv_store.disconnect()


services = ServiceContainer()
