"""Unit tests for mdportable/store/sanity.py.

Covers:
- _raise_for_status status mapping
- AsyncSanityTransport.request (success, network errors, timeouts, debug dump)
- SanityContentStore mutations, revision reads, slug lookups and listings
"""

from __future__ import annotations

import json

import httpx
import pytest

from mdportable.config import MdPortableConfig
from mdportable.errors import (
    ErrorCode,
    RemoteUnavailableError,
    RevisionConflictError,
    StoreAuthError,
    StoreNotFoundError,
    StoreValidationError,
    SyncTimeoutError,
)
from mdportable.store.base import ContentStore
from mdportable.store.sanity import AsyncSanityTransport, SanityContentStore, _raise_for_status

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_response(status_code: int = 200, body: dict | None = None) -> httpx.Response:
    content = json.dumps(body).encode() if body is not None else b""
    return httpx.Response(
        status_code,
        content=content,
        request=httpx.Request("POST", "https://testproj.api.sanity.io/v1/data/mutate/production"),
    )


class Recorder:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


def make_store(config: MdPortableConfig, *responses: httpx.Response) -> tuple[SanityContentStore, Recorder]:
    recorder = Recorder(*responses)
    return SanityContentStore(config, transport=httpx.MockTransport(recorder)), recorder


# ---------------------------------------------------------------------------
# _raise_for_status
# ---------------------------------------------------------------------------

class TestRaiseForStatus:
    @pytest.mark.parametrize(
        ("status", "exc_type"),
        [
            (401, StoreAuthError),
            (403, StoreAuthError),
            (404, StoreNotFoundError),
            (409, RevisionConflictError),
            (500, RemoteUnavailableError),
            (503, RemoteUnavailableError),
            (400, StoreValidationError),
            (422, StoreValidationError),
        ],
    )
    def test_status_mapping(self, status, exc_type):
        with pytest.raises(exc_type) as exc_info:
            _raise_for_status(make_response(status, {"error": {"description": "nope"}}), "POST", "/x")
        assert exc_info.value.context["status_code"] == status
        assert "nope" in exc_info.value.message

    def test_plain_message_body(self):
        with pytest.raises(StoreValidationError, match="bad mutation"):
            _raise_for_status(make_response(400, {"message": "bad mutation"}), "POST", "/x")

    def test_non_json_body(self):
        response = httpx.Response(502, content=b"<html>gateway</html>", request=httpx.Request("GET", "https://h/x"))
        with pytest.raises(RemoteUnavailableError, match="gateway"):
            _raise_for_status(response, "GET", "/x")


# ---------------------------------------------------------------------------
# AsyncSanityTransport
# ---------------------------------------------------------------------------

class TestTransport:
    def test_requires_base_url(self):
        with pytest.raises(ValueError, match="project_id"):
            AsyncSanityTransport(MdPortableConfig())

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, config):
        recorder = Recorder(make_response(200, {"ok": True}))
        transport = AsyncSanityTransport(config, transport=httpx.MockTransport(recorder))
        assert await transport.request("GET", "/v1/ping") == {"ok": True}
        request = recorder.requests[0]
        assert request.headers["Authorization"] == "Bearer sk_test_token_1234"
        assert request.url.host == "testproj.api.sanity.io"
        await transport.close()

    @pytest.mark.asyncio
    async def test_empty_success_body(self, config):
        transport = AsyncSanityTransport(
            config, transport=httpx.MockTransport(lambda request: httpx.Response(204)),
        )
        assert await transport.request("POST", "/x") == {}
        await transport.close()

    @pytest.mark.asyncio
    async def test_network_error_maps_to_remote_unavailable(self, config):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        transport = AsyncSanityTransport(config, transport=httpx.MockTransport(handler))
        with pytest.raises(RemoteUnavailableError) as exc_info:
            await transport.request("GET", "/x")
        assert exc_info.value.code == ErrorCode.REMOTE_UNAVAILABLE
        assert isinstance(exc_info.value.cause, httpx.ConnectError)
        await transport.close()

    @pytest.mark.asyncio
    async def test_timeout_maps_to_sync_timeout(self, config):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        transport = AsyncSanityTransport(config, transport=httpx.MockTransport(handler))
        with pytest.raises(SyncTimeoutError) as exc_info:
            await transport.request("GET", "/x")
        assert exc_info.value.code == ErrorCode.SYNC_TIMEOUT
        await transport.close()

    @pytest.mark.asyncio
    async def test_debug_dump_redacts_token(self, capsys):
        config = MdPortableConfig(
            project_id="testproj", token="sk_test_token_1234", debug_dump_payload=True,
        )
        recorder = Recorder(make_response(200, {"echo": "sk_test_token_1234"}))
        transport = AsyncSanityTransport(config, transport=httpx.MockTransport(recorder))
        await transport.request("POST", "/x", json={"token": "sk_test_token_1234"})
        err = capsys.readouterr().err
        assert "sk_test_token_1234" not in err
        assert '"method": "POST"' in err
        await transport.close()

    @pytest.mark.asyncio
    async def test_metrics_per_request(self, config):
        calls = []

        class Metrics:
            def increment(self, name, value=1, tags=None):
                calls.append((name, tags))

            def timing(self, name, ms, tags=None):
                pass

            def gauge(self, name, value, tags=None):
                pass

        config.metrics = Metrics()
        transport = AsyncSanityTransport(
            config, transport=httpx.MockTransport(lambda request: make_response(500, {})),
        )
        with pytest.raises(RemoteUnavailableError):
            await transport.request("POST", "/x")
        assert calls == [("mdportable.store_requests_total", {"method": "POST", "status": "500"})]
        await transport.close()


# ---------------------------------------------------------------------------
# SanityContentStore
# ---------------------------------------------------------------------------

class TestSanityContentStore:
    def test_satisfies_protocol(self, config):
        store, _ = make_store(config)
        assert isinstance(store, ContentStore)

    @pytest.mark.asyncio
    async def test_create_document(self, config):
        store, recorder = make_store(
            config,
            make_response(200, {"transactionId": "tx1", "results": [{"id": "abc", "operation": "create"}]}),
        )
        result = await store.create_document("log", {"content": [{"_type": "block"}]})
        assert result.id == "abc"
        assert result.revision == "tx1"
        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v2024-01-01/data/mutate/production"
        assert request.url.params["returnIds"] == "true"
        assert recorder.body() == {
            "mutations": [{"create": {"_type": "log", "content": [{"_type": "block"}]}}],
        }
        await store.close()

    @pytest.mark.asyncio
    async def test_create_without_id_is_rejected(self, config):
        store, _ = make_store(config, make_response(200, {"transactionId": "tx1", "results": []}))
        with pytest.raises(StoreValidationError):
            await store.create_document("log", {})
        await store.close()

    @pytest.mark.asyncio
    async def test_patch_sets_single_field(self, config):
        store, recorder = make_store(config, make_response(200, {"transactionId": "tx2"}))
        revision = await store.patch_field("author-1", "zh", [{"_type": "block"}])
        assert revision == "tx2"
        assert recorder.body() == {
            "mutations": [{"patch": {"id": "author-1", "set": {"zh": [{"_type": "block"}]}}}],
        }
        await store.close()

    @pytest.mark.asyncio
    async def test_patch_sends_if_revision_id(self, config):
        store, recorder = make_store(config, make_response(200, {"transactionId": "tx3"}))
        await store.patch_field("log-1", "content", [], expected_revision="tx2")
        assert recorder.body()["mutations"][0]["patch"]["ifRevisionID"] == "tx2"
        await store.close()

    @pytest.mark.asyncio
    async def test_patch_conflict(self, config):
        store, _ = make_store(
            config, make_response(409, {"error": {"description": "revision mismatch"}}),
        )
        with pytest.raises(RevisionConflictError) as exc_info:
            await store.patch_field("log-1", "content", [], expected_revision="tx1")
        ctx = exc_info.value.context
        assert ctx["document_id"] == "log-1"
        assert ctx["expected_revision"] == "tx1"
        assert ctx["status_code"] == 409
        await store.close()

    @pytest.mark.asyncio
    async def test_auth_failure(self, config):
        store, _ = make_store(config, make_response(401, {"error": {"description": "bad token"}}))
        with pytest.raises(StoreAuthError):
            await store.patch_field("log-1", "content", [])
        await store.close()

    @pytest.mark.asyncio
    async def test_get_revision(self, config):
        store, recorder = make_store(
            config, make_response(200, {"documents": [{"_id": "log 1", "_rev": "tx9"}]}),
        )
        assert await store.get_revision("log 1") == "tx9"
        assert recorder.requests[0].method == "GET"
        assert recorder.requests[0].url.raw_path.decode().endswith("/data/doc/production/log%201")
        await store.close()

    @pytest.mark.asyncio
    async def test_get_revision_missing(self, config):
        store, _ = make_store(
            config,
            make_response(200, {"documents": []}),
            make_response(404, {"error": {"description": "gone"}}),
        )
        assert await store.get_revision("x") is None
        assert await store.get_revision("y") is None
        await store.close()

    @pytest.mark.asyncio
    async def test_find_document_id_queries_groq(self, config):
        store, recorder = make_store(config, make_response(200, {"result": "log-7", "ms": 3}))
        assert await store.find_document_id("log", "week-7") == "log-7"
        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.url.path.endswith("/data/query/production")
        assert request.url.params["query"] == "*[_type == $type && slug.current == $slug][0]._id"
        assert json.loads(request.url.params["$type"]) == "log"
        assert json.loads(request.url.params["$slug"]) == "week-7"
        await store.close()

    @pytest.mark.asyncio
    async def test_find_document_id_no_match(self, config):
        store, _ = make_store(config, make_response(200, {"result": None}))
        assert await store.find_document_id("log", "missing") is None
        await store.close()

    @pytest.mark.asyncio
    async def test_list_documents(self, config):
        result = {
            "total": 3,
            "documents": [
                {"_id": "drafts.log-2", "_type": "log", "title": "Retro", "slug": "retro",
                 "_createdAt": "2024-05-02T00:00:00Z", "isDraft": True},
                {"_id": "log-1", "_type": "log", "title": "Kickoff", "slug": None,
                 "_createdAt": "2024-05-01T00:00:00Z", "isDraft": False},
            ],
        }
        store, recorder = make_store(config, make_response(200, {"result": result}))
        page = await store.list_documents("log", search=" retro ", limit=2)
        assert [d.id for d in page.documents] == ["drafts.log-2", "log-1"]
        assert page.documents[0].is_draft
        assert page.documents[0].created_at == "2024-05-02T00:00:00Z"
        assert page.total == 3
        assert page.has_more
        params = recorder.requests[0].url.params
        assert "title match $search" in params["query"]
        assert "[0...2]" in params["query"]
        assert json.loads(params["$search"]) == "*retro*"
        await store.close()

    @pytest.mark.asyncio
    async def test_list_documents_without_search(self, config):
        store, recorder = make_store(config, make_response(200, {"result": {"total": 0, "documents": []}}))
        page = await store.list_documents("author", offset=6)
        assert page.documents == []
        assert not page.has_more
        params = recorder.requests[0].url.params
        assert "$search" not in params
        assert "[6...12]" in params["query"]
        await store.close()

    @pytest.mark.asyncio
    async def test_async_context_manager(self, config):
        store, _ = make_store(config, make_response(200, {"transactionId": "t"}))
        async with store as s:
            assert await s.patch_field("a", "b", []) == "t"
