"""Sanity content store adapter over ``httpx.AsyncClient``.

Request lifecycle:

1. Send the request with the bearer token to the versioned data API.
2. On ``2xx`` -- return the parsed JSON body.
3. On ``409`` -- raise :class:`RevisionConflictError` (``ifRevisionID``
   did not match).
4. On ``5xx`` or a network error -- raise :class:`RemoteUnavailableError`;
   on an HTTP timeout -- :class:`SyncTimeoutError`.
5. On any other ``4xx`` -- raise the matching typed error immediately.

There are no automatic retries.  The caller decides whether to try again,
and every attempt is audited by the sync engine.
"""

from __future__ import annotations

import json as _json
import sys
import time
from typing import Any
from urllib.parse import quote

import httpx

from mdportable.config import MdPortableConfig
from mdportable.errors import (
    RemoteUnavailableError,
    RevisionConflictError,
    StoreAuthError,
    StoreNotFoundError,
    StoreValidationError,
    SyncTimeoutError,
)
from mdportable.observability import get_logger, resolve_metrics
from mdportable.store.base import DocumentPage, DocumentSummary, StoreWriteResult

log = get_logger("mdportable.store.sanity")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _raise_for_status(response: httpx.Response, method: str, path: str) -> None:
    """Raise the typed :class:`SyncError` for a non-2xx *response*."""
    status = response.status_code
    try:
        body = response.json()
    except (ValueError, KeyError):
        body = {}
    if not isinstance(body, dict):
        body = {}

    error = body.get("error")
    if isinstance(error, dict):
        store_message = error.get("description") or error.get("type", "")
    else:
        store_message = body.get("message") or error or response.text[:500]

    if status in (401, 403):
        raise StoreAuthError(
            f"Authentication failed on {method} {path}: {store_message}",
            context={"status_code": status},
        )
    if status == 404:
        raise StoreNotFoundError(
            f"Resource not found on {method} {path}: {store_message}",
            context={"status_code": status, "path": path},
        )
    if status == 409:
        raise RevisionConflictError(
            f"Revision conflict on {method} {path}: {store_message}",
            context={"status_code": status},
        )
    if status >= 500:
        raise RemoteUnavailableError(
            f"Content store error {status} on {method} {path}: {store_message}",
            context={"status_code": status, "url": path},
        )
    raise StoreValidationError(
        f"Client error {status} on {method} {path}: {store_message}",
        context={"status_code": status, "body": body},
    )


def _dump_payload(
    method: str,
    url: str,
    payload: Any | None,
    response_status: int | None,
    response_body: Any | None,
    token: str | None = None,
) -> None:
    """Write a redacted debug dump of the request/response to stderr."""
    from mdportable.utils.redact import redact

    dump: dict[str, Any] = {"method": method, "url": url}
    if payload is not None:
        dump["request_body"] = payload
    if response_status is not None:
        dump["response_status"] = response_status
    if response_body is not None:
        dump["response_body"] = response_body
    print(_json.dumps(redact(dump, token), indent=2, default=str), file=sys.stderr)


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class AsyncSanityTransport:
    """Authenticated JSON transport for the Sanity HTTP API.

    Parameters
    ----------
    config:
        Supplies ``base_url``, ``token``, ``timeout_seconds``,
        ``http_proxy`` and the metrics hook.
    transport:
        Optional ``httpx`` transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        config: MdPortableConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not config.base_url:
            raise ValueError("A project_id or base_url is required to reach the content store")
        self._config = config
        self._metrics = resolve_metrics(config.metrics)
        kwargs: dict[str, Any] = {}
        if transport is not None:
            kwargs["transport"] = transport
        elif config.http_proxy:
            kwargs["proxy"] = config.http_proxy
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "Authorization": f"Bearer {config.token}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(config.timeout_seconds),
            **kwargs,
        )

    async def request(self, method: str, path: str, **kwargs: Any) -> dict:
        """Send one request and return the parsed JSON body.

        Raises
        ------
        SyncTimeoutError
            When the HTTP timeout expires.
        RemoteUnavailableError
            On network errors and 5xx responses.
        StoreAuthError, StoreNotFoundError, RevisionConflictError, StoreValidationError
            On the corresponding 4xx responses.
        """
        start = time.monotonic()
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            self._metrics.increment(
                "mdportable.store_requests_total",
                tags={"method": method, "status": "timeout"},
            )
            log.warning(
                "Content store request timed out",
                extra={"extra_fields": {"method": method, "path": path, "error": str(exc)}},
            )
            raise SyncTimeoutError(
                f"Timed out on {method} {path}",
                context={"operation": f"{method} {path}", "timeout_seconds": self._config.timeout_seconds},
                cause=exc,
            ) from exc
        except httpx.TransportError as exc:
            self._metrics.increment(
                "mdportable.store_requests_total",
                tags={"method": method, "status": "error"},
            )
            log.warning(
                "Content store network error",
                extra={"extra_fields": {"method": method, "path": path, "error": str(exc)}},
            )
            raise RemoteUnavailableError(
                f"Network error on {method} {path}: {exc}",
                context={"url": path},
                cause=exc,
            ) from exc

        elapsed_ms = (time.monotonic() - start) * 1000
        self._metrics.increment(
            "mdportable.store_requests_total",
            tags={"method": method, "status": str(response.status_code)},
        )
        log.debug(
            "Content store request",
            extra={"extra_fields": {
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "elapsed_ms": round(elapsed_ms, 1),
            }},
        )

        if self._config.debug_dump_payload:
            try:
                resp_body: Any = response.json()
            except (ValueError, KeyError):
                resp_body = response.text[:1000]
            _dump_payload(
                method, str(response.url), kwargs.get("json"),
                response.status_code, resp_body, token=self._config.token,
            )

        if 200 <= response.status_code < 300:
            if not response.content:
                return {}
            result: dict = response.json()
            return result

        _raise_for_status(response, method, path)
        return {}

    async def close(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class SanityContentStore:
    """:class:`~mdportable.store.base.ContentStore` backed by the Sanity data API.

    Writes go through ``/data/mutate`` with ``returnIds=true``; the
    transaction id of a mutation is the document's new revision.  Reads use
    ``/data/doc``; slug lookups and listings run GROQ through ``/data/query``.

    Parameters
    ----------
    config:
        Must carry ``project_id`` (or ``base_url``), ``dataset`` and ``token``.
    transport:
        Optional ``httpx`` transport override.
    """

    def __init__(
        self,
        config: MdPortableConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = AsyncSanityTransport(config, transport=transport)

    @property
    def _mutate_path(self) -> str:
        return f"/{self._config.api_version}/data/mutate/{self._config.dataset}"

    async def _mutate(self, mutations: list[dict[str, Any]]) -> dict:
        return await self._transport.request(
            "POST",
            self._mutate_path,
            params={"returnIds": "true", "visibility": "sync"},
            json={"mutations": mutations},
        )

    async def create_document(self, document_type: str, fields: dict[str, Any]) -> StoreWriteResult:
        body = await self._mutate([{"create": {"_type": document_type, **fields}}])
        results = body.get("results") or []
        document_id = results[0].get("id") if results else None
        if not document_id:
            raise StoreValidationError(
                "Create mutation returned no document id.",
                context={"document_type": document_type, "body": body},
            )
        return StoreWriteResult(id=document_id, revision=body.get("transactionId"))

    async def patch_field(
        self,
        document_id: str,
        field_name: str,
        value: Any,
        expected_revision: str | None = None,
    ) -> str:
        patch: dict[str, Any] = {"id": document_id, "set": {field_name: value}}
        if expected_revision is not None:
            patch["ifRevisionID"] = expected_revision
        try:
            body = await self._mutate([{"patch": patch}])
        except RevisionConflictError as exc:
            raise RevisionConflictError(
                f"Document '{document_id}' is not at revision {expected_revision}.",
                context={
                    "document_id": document_id,
                    "expected_revision": expected_revision,
                    **exc.context,
                },
                cause=exc,
            ) from exc
        return str(body.get("transactionId", ""))

    async def get_revision(self, document_id: str) -> str | None:
        path = f"/{self._config.api_version}/data/doc/{self._config.dataset}/{quote(document_id, safe='')}"
        try:
            body = await self._transport.request("GET", path)
        except StoreNotFoundError:
            return None
        documents = body.get("documents") or []
        if not documents:
            return None
        return documents[0].get("_rev")

    async def _query(self, query: str, params: dict[str, Any]) -> Any:
        path = f"/{self._config.api_version}/data/query/{self._config.dataset}"
        # GROQ parameters travel as ``$name`` query args holding JSON values.
        args = {"query": query}
        args.update({f"${name}": _json.dumps(value, ensure_ascii=False) for name, value in params.items()})
        body = await self._transport.request("GET", path, params=args)
        return body.get("result")

    async def find_document_id(self, document_type: str, slug: str) -> str | None:
        result = await self._query(
            "*[_type == $type && slug.current == $slug][0]._id",
            {"type": document_type, "slug": slug},
        )
        return result or None

    async def list_documents(
        self,
        document_type: str,
        search: str | None = None,
        limit: int = 6,
        offset: int = 0,
    ) -> DocumentPage:
        condition = "_type == $type"
        params: dict[str, Any] = {"type": document_type}
        if search and search.strip():
            condition += " && (title match $search || slug.current match $search)"
            params["search"] = f"*{search.strip()}*"
        query = (
            f'{{"total": count(*[{condition}]), '
            f'"documents": *[{condition}] | order(_createdAt desc) [{offset}...{offset + limit}]'
            '{_id, _type, title, "slug": slug.current, _createdAt, "isDraft": _id in path("drafts.**")}}'
        )
        result = await self._query(query, params) or {}
        documents = [
            DocumentSummary(
                id=doc["_id"],
                document_type=doc.get("_type", document_type),
                title=doc.get("title"),
                slug=doc.get("slug"),
                created_at=doc.get("_createdAt"),
                is_draft=bool(doc.get("isDraft")),
            )
            for doc in result.get("documents") or []
        ]
        total = int(result.get("total") or 0)
        return DocumentPage(documents=documents, total=total, has_more=offset + limit < total)

    async def close(self) -> None:
        await self._transport.close()

    async def __aenter__(self) -> SanityContentStore:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
