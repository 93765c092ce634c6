"""Document Service: HTTP routing over the versioned document store."""

import logging
import secrets
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import quote

from fastapi import FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from docshelf.api.health import check_all_dependencies, check_readiness
from docshelf.core.config import settings
from docshelf.core.dependencies import services
from docshelf.core.exceptions import (
    DocumentNotFoundError,
    DocumentStoreError,
    ErrorKind,
    ForbiddenError,
    KVStoreError,
    ValidationError,
)
from docshelf.models.document import (
    DocumentListResponse,
    DocumentVersion,
    DocumentView,
    DocumentWriteResult,
)
from docshelf.models.document_api import (
    DocumentCreate,
    DocumentUpdate,
    ShareRequest,
    ShareResponse,
    UserTokenResponse,
)
from docshelf.monitoring.metrics import (
    documents_created_total,
    documents_deleted_total,
    documents_updated_total,
    operation_duration_seconds,
    request_errors_total,
    share_tokens_issued_total,
)
from docshelf.services.access import (
    build_raw_url,
    clamp_page_size,
    issue_share_token,
    redeem_share_token,
    resolve_raw_content,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.FILE_TOO_LARGE: 413,
    ErrorKind.BAD_REQUEST: 400,
}

USER_TOKEN_BYTES = 18


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    await services.initialize()
    logger.info("Document Service started")
    yield
    await services.shutdown()
    logger.info("Document Service stopped")


app = FastAPI(title="Document Service", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DocumentStoreError)
async def document_store_error_handler(
    request: Request, exc: DocumentStoreError
) -> JSONResponse:
    """Translate typed store failures into status codes."""
    request_errors_total.labels(kind=exc.kind.value).inc()
    return JSONResponse({"error": exc.message}, status_code=STATUS_BY_KIND[exc.kind])


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies as bad requests."""
    request_errors_total.labels(kind=ErrorKind.BAD_REQUEST.value).inc()
    fields = sorted({str(error["loc"][-1]) for error in exc.errors() if error.get("loc")})
    message = f"invalid request: {', '.join(fields)}" if fields else "invalid request"
    return JSONResponse({"error": message}, status_code=400)


@app.exception_handler(KVStoreError)
async def kv_store_error_handler(request: Request, exc: KVStoreError) -> JSONResponse:
    """Backing store unavailable."""
    logger.error(f"Backing store failure on {request.url.path}: {str(exc)}")
    request_errors_total.labels(kind="KV_STORE").inc()
    return JSONResponse({"error": "Service Unavailable"}, status_code=503)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected failures and answer with a generic 500."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    request_errors_total.labels(kind="INTERNAL").inc()
    return JSONResponse({"error": "Internal Server Error"}, status_code=500)


def _content_disposition(title: str) -> str:
    fallback = title.encode("ascii", "ignore").decode("ascii").replace('"', "").strip()
    return (
        f'inline; filename="{fallback or "document"}.txt"; '
        f"filename*=UTF-8''{quote(title)}.txt"
    )


@app.post("/api/token", response_model=UserTokenResponse)
async def create_user_token() -> UserTokenResponse:
    """
    Mint a new random user token.

    Returns:
        Token the client keeps and sends as ``x-user-token``.
    """
    return UserTokenResponse(token=secrets.token_urlsafe(USER_TOKEN_BYTES))


@app.post("/api/documents", response_model=DocumentWriteResult)
async def create_document(
    document: DocumentCreate,
    x_user_token: Optional[str] = Header(None),
) -> DocumentWriteResult:
    """
    Create a new document.

    Args:
        document: Title and first version content.
        x_user_token: Optional owner token; documents without one are public.

    Returns:
        Created document and its first version.
    """
    with operation_duration_seconds.labels(operation="create").time():
        result = await services.document_store.create_document(
            title=document.title,
            content=document.content,
            owner_token=x_user_token,
        )
    documents_created_total.inc()
    logger.info(
        f"Created document {result.metadata.id} (private={result.metadata.is_private})")
    return result


@app.get("/api/documents", response_model=DocumentListResponse)
async def list_documents(
    limit: Optional[str] = None,
    cursor: Optional[str] = None,
    scope: Optional[str] = None,
    x_user_token: Optional[str] = Header(None),
) -> DocumentListResponse:
    """
    List documents newest first.

    Args:
        limit: Page size, clamped to 1..50.
        cursor: Last document ID of the previous page.
        scope: ``mine`` lists the caller's own documents.
        x_user_token: Viewer token.

    Returns:
        One page of documents and the next cursor.
    """
    page_size = clamp_page_size(limit)
    store = services.document_store
    with operation_duration_seconds.labels(operation="list").time():
        if x_user_token and scope == "mine":
            return await store.list_owner_documents(x_user_token, page_size, cursor)
        return await store.list_public_documents(x_user_token, page_size, cursor)


@app.get("/api/documents/{document_id}", response_model=DocumentView)
async def get_document(
    document_id: str,
    x_user_token: Optional[str] = Header(None),
) -> DocumentView:
    """
    Get a document by ID.

    Args:
        document_id: Document ID.
        x_user_token: Viewer token.

    Returns:
        Document metadata.
    """
    document = await services.document_store.get_document(document_id, x_user_token)
    if document is None:
        raise DocumentNotFoundError()
    if document.is_private and not document.is_owner:
        raise ForbiddenError("owner token required")
    return document


@app.put("/api/documents/{document_id}", response_model=DocumentWriteResult)
async def update_document(
    document_id: str,
    document: DocumentUpdate,
    x_user_token: Optional[str] = Header(None),
) -> DocumentWriteResult:
    """
    Save a new version of a document.

    Args:
        document_id: Document ID.
        document: New content.
        x_user_token: Owner token for private documents.

    Returns:
        Updated document and the new version.
    """
    with operation_duration_seconds.labels(operation="update").time():
        result = await services.document_store.update_document(
            document_id, content=document.content, owner_token=x_user_token
        )
    documents_updated_total.inc()
    logger.info(
        f"Saved version {result.version.metadata.version_id} of document {document_id}")
    return result


@app.delete("/api/documents/{document_id}")
async def delete_document(
    document_id: str,
    x_user_token: Optional[str] = Header(None),
) -> dict:
    """
    Delete a document with all of its versions.

    Args:
        document_id: Document ID.
        x_user_token: Owner token for private documents.
    """
    with operation_duration_seconds.labels(operation="delete").time():
        await services.document_store.delete_document(document_id, x_user_token)
    documents_deleted_total.inc()
    logger.info(f"Deleted document {document_id}")
    return {"ok": True}


@app.get("/api/documents/{document_id}/version", response_model=DocumentVersion)
async def get_document_version(
    document_id: str,
    version_id: Optional[str] = Query(None, alias="versionId"),
    x_user_token: Optional[str] = Header(None),
) -> DocumentVersion:
    """
    Get one version with its content.

    Args:
        document_id: Document ID.
        version_id: Version ID.
        x_user_token: Viewer token.

    Returns:
        Version metadata and content.
    """
    if not version_id:
        raise ValidationError("versionId required")
    store = services.document_store
    document = await store.get_document(document_id, x_user_token)
    if document is None:
        raise DocumentNotFoundError()
    if document.is_private and not document.is_owner:
        raise ForbiddenError("owner token required")
    version = await store.get_version(document_id, version_id)
    if version is None:
        raise DocumentNotFoundError()
    return version


@app.get("/api/documents/{document_id}/raw")
async def get_raw_content(
    document_id: str,
    version_id: Optional[str] = Query(None, alias="versionId"),
    raw_key: Optional[str] = Query(None, alias="rawKey"),
    token: Optional[str] = None,
    x_user_token: Optional[str] = Header(None),
) -> PlainTextResponse:
    """
    Serve document content as plain text.

    Args:
        document_id: Document ID.
        version_id: Version to serve; latest if omitted.
        raw_key: Raw-access key for private documents.
        token: Share token.
        x_user_token: Viewer token.

    Returns:
        Plain text content.
    """
    document, version = await resolve_raw_content(
        services.document_store,
        document_id,
        viewer_token=x_user_token,
        version_id=version_id,
        raw_key=raw_key,
        share_token=token,
        secret=settings.share_secret,
    )
    return PlainTextResponse(
        version.content,
        headers={"content-disposition": _content_disposition(document.title)},
    )


@app.post("/api/documents/{document_id}/share", response_model=ShareResponse)
async def share_document(
    document_id: str,
    request: Request,
    body: Optional[ShareRequest] = None,
    x_user_token: Optional[str] = Header(None),
) -> ShareResponse:
    """
    Issue a time-limited share link.

    Args:
        document_id: Document ID.
        body: Optional lifetime in minutes.
        x_user_token: Owner token.

    Returns:
        Signed token, raw URL and expiry in epoch milliseconds.
    """
    document, token, payload = await issue_share_token(
        services.document_store,
        document_id,
        x_user_token,
        expires_in_minutes=body.expires_in_minutes if body else None,
        secret=settings.share_secret,
    )
    share_tokens_issued_total.inc()
    share_url = build_raw_url(
        str(request.base_url), document_id, document.versions[0].version_id, token
    )
    return ShareResponse(token=token, share_url=share_url, expires_at=payload.expires_at)


@app.get("/api/share", response_model=DocumentView)
async def redeem_share(token: Optional[str] = None) -> DocumentView:
    """
    Resolve a share token to its document.

    Args:
        token: Share token.

    Returns:
        Public document metadata.
    """
    if not token:
        raise ValidationError("token required")
    return await redeem_share_token(
        services.document_store, token, secret=settings.share_secret
    )


@app.get("/health")
async def health() -> dict:
    """
    Health check endpoint with dependency verification.

    Returns:
        Health status with service dependencies.
    """
    result = await check_all_dependencies(services.kv_store)
    return {"service": settings.service_name, **result}


@app.get("/ready")
async def readiness() -> dict:
    """
    Readiness check endpoint.

    Returns:
        Readiness status.
    """
    result = await check_readiness(services.kv_store)
    return {"service": settings.service_name, **result}


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
