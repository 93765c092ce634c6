"""Document HTTP API tests."""

from __future__ import annotations

import logging

import pytest
from httpx import ASGITransport, AsyncClient
from prometheus_client import REGISTRY

from docshelf.core.config import settings
from docshelf.core.dependencies import services
from docshelf.document_service import app
from docshelf.models.document import ShareTokenPayload
from docshelf.services.document_store import DocumentStore
from docshelf.services.share_tokens import create_share_token, now_ms

from conftest import MAX_SIZE

pytestmark = pytest.mark.asyncio


async def _create(
    client: AsyncClient, title: str, content: str, token: str | None = None
) -> dict:
    headers = {"x-user-token": token} if token else {}
    response = await client.post(
        "/api/documents", json={"title": title, "content": content}, headers=headers
    )
    assert response.status_code == 200, response.text
    return response.json()


async def test_public_then_private_end_to_end(async_client: AsyncClient) -> None:
    created = await _create(async_client, "a.md", "hello")
    document_id = created["metadata"]["id"]

    fetched = await async_client.get(f"/api/documents/{document_id}")
    assert fetched.status_code == 200
    body = fetched.json()
    assert body["isPrivate"] is False
    assert body["isOwner"] is False
    assert len(body["versions"]) == 1

    updated = await async_client.put(
        f"/api/documents/{document_id}", json={"content": "hello2"}
    )
    assert updated.status_code == 200, updated.text
    versions = updated.json()["metadata"]["versions"]
    assert len(versions) == 2
    assert versions[0]["size"] == 6

    private = await _create(async_client, "secret.md", "shh", token="T1")
    private_id = private["metadata"]["id"]
    raw_key = private["metadata"]["rawAccessKey"]
    assert private["metadata"]["isPrivate"] is True
    assert "ownerToken" not in private["metadata"]

    denied = await async_client.get(
        f"/api/documents/{private_id}/raw", headers={"x-user-token": "T2"}
    )
    assert denied.status_code == 403

    allowed = await async_client.get(
        f"/api/documents/{private_id}/raw", params={"rawKey": raw_key}
    )
    assert allowed.status_code == 200
    assert allowed.text == "shh"
    assert allowed.headers["content-type"].startswith("text/plain")
    assert 'filename="secret.md.txt"' in allowed.headers["content-disposition"]


async def test_private_document_metadata_requires_owner(async_client: AsyncClient) -> None:
    created = await _create(async_client, "secret.md", "shh", token="T1")
    document_id = created["metadata"]["id"]

    assert (await async_client.get(f"/api/documents/{document_id}")).status_code == 403
    owner_view = await async_client.get(
        f"/api/documents/{document_id}", headers={"x-user-token": "T1"}
    )
    assert owner_view.status_code == 200
    assert owner_view.json()["isOwner"] is True


async def test_missing_document_is_404(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/documents/nope")

    assert response.status_code == 404
    assert response.json() == {"error": "Not found"}


async def test_create_validation(async_client: AsyncClient) -> None:
    missing_title = await async_client.post("/api/documents", json={"content": "x"})
    assert missing_title.status_code == 400
    assert "error" in missing_title.json()

    blank_title = await async_client.post(
        "/api/documents", json={"title": "   ", "content": "x"}
    )
    assert blank_title.status_code == 400

    numeric_content = await async_client.post(
        "/api/documents", json={"title": "a.md", "content": 5}
    )
    assert numeric_content.status_code == 400

    not_json = await async_client.post("/api/documents", content=b"{nope")
    assert not_json.status_code == 400


async def test_oversized_content_is_413(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/api/documents", json={"title": "big.txt", "content": "x" * (MAX_SIZE + 1)}
    )

    assert response.status_code == 413
    assert response.json() == {"error": "file exceeds size limit"}


async def test_update_forbidden_and_not_found(async_client: AsyncClient) -> None:
    public = await _create(async_client, "a.md", "hello")
    private = await _create(async_client, "b.md", "hello", token="T1")

    claim = await async_client.put(
        f"/api/documents/{public['metadata']['id']}",
        json={"content": "mine now"},
        headers={"x-user-token": "T1"},
    )
    assert claim.status_code == 403

    wrong_owner = await async_client.put(
        f"/api/documents/{private['metadata']['id']}",
        json={"content": "x"},
        headers={"x-user-token": "T2"},
    )
    assert wrong_owner.status_code == 403

    missing = await async_client.put("/api/documents/nope", json={"content": "x"})
    assert missing.status_code == 404


async def test_delete_flow(async_client: AsyncClient) -> None:
    created = await _create(async_client, "a.md", "hello", token="T1")
    document_id = created["metadata"]["id"]

    forbidden = await async_client.delete(
        f"/api/documents/{document_id}", headers={"x-user-token": "T2"}
    )
    assert forbidden.status_code == 403

    deleted = await async_client.delete(
        f"/api/documents/{document_id}", headers={"x-user-token": "T1"}
    )
    assert deleted.status_code == 200
    assert deleted.json() == {"ok": True}

    gone = await async_client.delete(
        f"/api/documents/{document_id}", headers={"x-user-token": "T1"}
    )
    assert gone.status_code == 404


async def test_listing_scopes_and_clamping(async_client: AsyncClient) -> None:
    for n in range(3):
        await _create(async_client, f"p{n}.md", "p")
    mine = await _create(async_client, "mine.md", "m", token="T1")

    public = await async_client.get("/api/documents", params={"limit": "2"})
    assert public.status_code == 200
    page = public.json()
    assert len(page["documents"]) == 2
    assert page["cursor"] == page["documents"][-1]["id"]

    rest = await async_client.get(
        "/api/documents", params={"limit": "2", "cursor": page["cursor"]}
    )
    assert len(rest.json()["documents"]) == 1
    assert rest.json().get("cursor") is None

    garbage = await async_client.get("/api/documents", params={"limit": "abc"})
    assert len(garbage.json()["documents"]) == 3

    owned = await async_client.get(
        "/api/documents", params={"scope": "mine"}, headers={"x-user-token": "T1"}
    )
    assert [d["id"] for d in owned.json()["documents"]] == [mine["metadata"]["id"]]

    anonymous_mine = await async_client.get("/api/documents", params={"scope": "mine"})
    assert len(anonymous_mine.json()["documents"]) == 3


async def test_version_endpoint(async_client: AsyncClient) -> None:
    created = await _create(async_client, "a.md", "hello")
    document_id = created["metadata"]["id"]
    version_id = created["version"]["metadata"]["versionId"]

    missing_param = await async_client.get(f"/api/documents/{document_id}/version")
    assert missing_param.status_code == 400

    found = await async_client.get(
        f"/api/documents/{document_id}/version", params={"versionId": version_id}
    )
    assert found.status_code == 200
    assert found.json()["content"] == "hello"

    unknown = await async_client.get(
        f"/api/documents/{document_id}/version", params={"versionId": "nope"}
    )
    assert unknown.status_code == 404


async def test_raw_serves_requested_version(async_client: AsyncClient) -> None:
    created = await _create(async_client, "a.md", "v0")
    document_id = created["metadata"]["id"]
    first_version = created["version"]["metadata"]["versionId"]
    await async_client.put(f"/api/documents/{document_id}", json={"content": "v1"})

    latest = await async_client.get(f"/api/documents/{document_id}/raw")
    assert latest.text == "v1"

    older = await async_client.get(
        f"/api/documents/{document_id}/raw", params={"versionId": first_version}
    )
    assert older.text == "v0"

    unknown = await async_client.get(
        f"/api/documents/{document_id}/raw", params={"versionId": "nope"}
    )
    assert unknown.status_code == 404


async def test_old_raw_key_stops_working_after_update(async_client: AsyncClient) -> None:
    created = await _create(async_client, "a.md", "v0", token="T1")
    document_id = created["metadata"]["id"]
    old_key = created["metadata"]["rawAccessKey"]

    updated = await async_client.put(
        f"/api/documents/{document_id}",
        json={"content": "v1"},
        headers={"x-user-token": "T1"},
    )
    new_key = updated.json()["metadata"]["rawAccessKey"]

    stale = await async_client.get(
        f"/api/documents/{document_id}/raw", params={"rawKey": old_key}
    )
    assert stale.status_code == 403
    fresh = await async_client.get(
        f"/api/documents/{document_id}/raw", params={"rawKey": new_key}
    )
    assert fresh.status_code == 200
    assert fresh.text == "v1"


async def test_share_issue_requires_owner(async_client: AsyncClient) -> None:
    created = await _create(async_client, "a.md", "v0", token="T1")
    document_id = created["metadata"]["id"]

    denied = await async_client.post(
        f"/api/documents/{document_id}/share", headers={"x-user-token": "T2"}
    )
    assert denied.status_code == 403

    started = now_ms()
    issued = await async_client.post(
        f"/api/documents/{document_id}/share",
        json={"expiresInMinutes": 999_999},
        headers={"x-user-token": "T1"},
    )
    assert issued.status_code == 200, issued.text
    body = issued.json()
    week_ms = settings.max_share_minutes * 60 * 1000
    assert started + week_ms <= body["expiresAt"] <= now_ms() + week_ms
    assert body["shareUrl"].startswith(f"http://testserver/api/documents/{document_id}/raw?")
    assert "versionId=" in body["shareUrl"]

    # Share scope is public-only, so redeeming a private document fails
    redeemed = await async_client.get("/api/share", params={"token": body["token"]})
    assert redeemed.status_code == 403


async def test_redeem_share_token_for_public_document(async_client: AsyncClient) -> None:
    created = await _create(async_client, "a.md", "hello")
    document_id = created["metadata"]["id"]
    token = create_share_token(
        ShareTokenPayload(document_id=document_id, expires_at=now_ms() + 60_000),
        settings.share_secret,
    )

    redeemed = await async_client.get("/api/share", params={"token": token})
    assert redeemed.status_code == 200
    assert redeemed.json()["id"] == document_id

    raw = await async_client.get(
        f"/api/documents/{document_id}/raw", params={"token": token}
    )
    assert raw.status_code == 200
    assert raw.text == "hello"


async def test_invalid_share_tokens(async_client: AsyncClient) -> None:
    created = await _create(async_client, "a.md", "hello")
    document_id = created["metadata"]["id"]
    expired = create_share_token(
        ShareTokenPayload(document_id=document_id, expires_at=now_ms() - 1),
        settings.share_secret,
    )
    other_document = create_share_token(
        ShareTokenPayload(document_id="other", expires_at=now_ms() + 60_000),
        settings.share_secret,
    )

    assert (await async_client.get("/api/share")).status_code == 400
    assert (await async_client.get("/api/share", params={"token": "junk"})).status_code == 403
    assert (await async_client.get("/api/share", params={"token": expired})).status_code == 403

    wrong_target = await async_client.get(
        f"/api/documents/{document_id}/raw", params={"token": other_document}
    )
    assert wrong_target.status_code == 403


async def test_mint_user_token(async_client: AsyncClient) -> None:
    first = await async_client.post("/api/token")
    second = await async_client.post("/api/token")

    assert first.status_code == 200
    assert len(first.json()["token"]) == 24
    assert first.json()["token"] != second.json()["token"]


async def test_health_and_metrics(async_client: AsyncClient) -> None:
    health = await async_client.get("/health")
    assert health.json()["status"] == "healthy"

    ready = await async_client.get("/ready")
    assert ready.json()["ready"] is True

    metrics = await async_client.get("/metrics")
    assert "docshelf_documents_created_total" in metrics.text


async def test_unexpected_error_returns_json_500_and_is_logged(
    store: DocumentStore,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    async def broken_get_document(*args: object, **kwargs: object) -> None:
        raise RuntimeError("boom")

    monkeypatch.setattr(services, "document_store", store)
    monkeypatch.setattr(store, "get_document", broken_get_document)

    def internal_errors() -> float:
        value = REGISTRY.get_sample_value(
            "docshelf_request_errors_total", {"kind": "INTERNAL"}
        )
        return value or 0.0

    before = internal_errors()
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    with caplog.at_level(logging.ERROR, logger="docshelf.document_service"):
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            response = await client.get("/api/documents/x")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error"}
    assert any(
        record.exc_info and isinstance(record.exc_info[1], RuntimeError)
        for record in caplog.records
    )
    assert internal_errors() == before + 1
