"""Script to seed sample public documents into the backing store."""

import asyncio

from docshelf.core.dependencies import services


async def seed_sample_documents() -> None:
    """Create a few public sample documents."""
    await services.initialize()

    sample_documents = [
        {
            "title": "README.md",
            "content": "# docshelf\n\nPaste text, keep every version, share a link.\n",
        },
        {
            "title": "notes.txt",
            "content": "Each save creates a new immutable version. "
            "Older versions stay available until the document is deleted.\n",
        },
        {
            "title": "hello.py",
            "content": 'print("hello, world")\n',
        },
    ]

    try:
        for doc in sample_documents:
            result = await services.document_store.create_document(
                title=doc["title"], content=doc["content"]
            )
            print(f"Created document: {doc['title']} ({result.metadata.id})")
    finally:
        await services.shutdown()

    print(f"\nSeeded {len(sample_documents)} documents")


if __name__ == "__main__":
    asyncio.run(seed_sample_documents())
