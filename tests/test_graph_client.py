# tests/test_graph_client.py
import httpx
import pytest

from stale_account_report.graph.client import GraphAPIError, GraphClient
from stale_account_report.safety.guardian import SafetyGuardian, SafetyViolation


def _client(handler, **kwargs) -> GraphClient:
    return GraphClient(
        access_token="fake-token",
        guardian=SafetyGuardian(),
        transport=httpx.MockTransport(handler),
        initial_backoff=0,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_get_all_pages_follows_next_link():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if "$skiptoken" not in request.url.params:
            return httpx.Response(200, json={
                "value": [{"id": "1"}, {"id": "2"}],
                "@odata.nextLink": "https://graph.microsoft.com/v1.0/users?$skiptoken=abc",
            })
        return httpx.Response(200, json={"value": [{"id": "3"}]})

    async with _client(handler) as client:
        items = await client.get_all_pages("users", params={"$select": "id"})

    assert [i["id"] for i in items] == ["1", "2", "3"]
    assert len(seen) == 2
    assert seen[0].url.params["$select"] == "id"
    assert seen[0].url.params["$top"] == "999"
    assert seen[0].headers["Authorization"] == "Bearer fake-token"
    # nextLink is used verbatim
    assert "$select" not in seen[1].url.params


@pytest.mark.asyncio
async def test_skip_top_omits_page_size():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"value": []})

    async with _client(handler) as client:
        await client.get_all_pages("subscribedSkus", skip_top=True)

    assert "$top" not in seen[0].url.params


@pytest.mark.asyncio
async def test_throttled_request_is_retried():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(429, headers={"Retry-After": "0"})
        return httpx.Response(200, json={"value": [{"id": "ok"}]})

    async with _client(handler) as client:
        items = await client.get_all_pages("users")
        stats = client.get_stats()

    assert items == [{"id": "ok"}]
    assert stats["throttle_events"] == 1
    assert stats["total_requests"] == 2


@pytest.mark.asyncio
async def test_forbidden_page_raises_graph_error():
    def handler(request):
        return httpx.Response(403, json={"error": {"message": "Insufficient privileges"}})

    async with _client(handler) as client:
        with pytest.raises(GraphAPIError) as exc:
            await client.get_all_pages("subscribedSkus")

    assert exc.value.status_code == 403
    assert "Insufficient privileges" in str(exc.value)


@pytest.mark.asyncio
async def test_server_error_raises():
    def handler(request):
        return httpx.Response(400, json={"error": {"message": "Bad filter"}})

    async with _client(handler) as client:
        with pytest.raises(GraphAPIError) as exc:
            await client.get_all_pages("users")

    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_not_found_raises():
    def handler(request):
        return httpx.Response(404, json={"error": {"message": "Resource not found"}})

    async with _client(handler) as client:
        with pytest.raises(GraphAPIError) as exc:
            await client.get_all_pages("users")

    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_http_date_retry_after_falls_back_to_backoff():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(503, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"})
        return httpx.Response(200, json={"value": [{"id": "ok"}]})

    async with _client(handler) as client:
        items = await client.get_all_pages("users")

    assert items == [{"id": "ok"}]
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_max_pages_caps_pagination():
    def handler(request):
        return httpx.Response(200, json={
            "value": [{"id": "x"}],
            "@odata.nextLink": "https://graph.microsoft.com/v1.0/users?$skiptoken=again",
        })

    async with _client(handler, max_pages=3) as client:
        items = await client.get_all_pages("users")

    assert len(items) == 3


@pytest.mark.asyncio
async def test_client_requires_context_manager():
    client = _client(lambda r: httpx.Response(200, json={}))
    with pytest.raises(RuntimeError):
        await client.get_all_pages("users")


def test_build_url():
    client = _client(lambda r: httpx.Response(200))
    assert client._build_url("/users") == "https://graph.microsoft.com/v1.0/users"
    assert client._build_url("https://example.test/x") == "https://example.test/x"


# ── Safety guardian ─────────────────────────────────────────────────────────

def test_guardian_allows_reads():
    guardian = SafetyGuardian()
    assert guardian.validate_request("GET", "https://graph.microsoft.com/v1.0/users")
    assert guardian.checks_performed == 1
    assert guardian.get_audit_record()["status"] == "CLEAN"


@pytest.mark.parametrize("method", ["POST", "PATCH", "PUT", "DELETE"])
def test_guardian_blocks_writes(method):
    guardian = SafetyGuardian()
    with pytest.raises(SafetyViolation):
        guardian.validate_request(method, "https://graph.microsoft.com/v1.0/users/1")
    assert guardian.get_audit_record()["violations_detected"] == 1


def test_guardian_blocks_write_pattern_urls():
    guardian = SafetyGuardian()
    with pytest.raises(SafetyViolation):
        guardian.validate_request("GET", "https://graph.microsoft.com/v1.0/users/1/revokeSignInSessions")
