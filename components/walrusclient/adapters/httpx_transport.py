from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

import httpx

from ..builder import OCTET_STREAM
from ..contracts import HttpRequestSpec, HttpResponse
from ..errors import TransportError
from ..ports import AsyncTransport, SyncTransport

log = logging.getLogger("walrusclient.http")


def to_httpx_request(client: Union[httpx.Client, httpx.AsyncClient], spec: HttpRequestSpec) -> httpx.Request:
    """Single translation point shared by both transports."""
    kwargs: Dict[str, Any] = {"params": list(spec.params), "headers": list(spec.headers)}
    if spec.files:
        kwargs["files"] = [
            (part.name, (part.filename, part.content, part.content_type or OCTET_STREAM))
            for part in spec.files
        ]
    elif spec.content is not None:
        kwargs["content"] = spec.content
    return client.build_request(spec.method, spec.url, **kwargs)


def from_httpx_response(response: httpx.Response) -> HttpResponse:
    return HttpResponse(
        status_code=response.status_code,
        headers=dict(response.headers),
        content=response.content,
    )


def _client_kwargs(timeout: Optional[float]) -> Dict[str, Any]:
    # leave httpx's own default in place unless the caller picked a timeout
    return {} if timeout is None else {"timeout": timeout}


class HttpxSyncTransport(SyncTransport):
    name = "httpx"

    def __init__(self, timeout: Optional[float] = None, client: Optional[httpx.Client] = None):
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(**_client_kwargs(timeout))

    def send(self, spec: HttpRequestSpec) -> HttpResponse:
        request = to_httpx_request(self._client, spec)
        try:
            response = self._client.send(request)
        except httpx.HTTPError as e:
            log.warning("http %s %s failed: %s", spec.method, spec.url, e)
            raise TransportError(f"{spec.method} {spec.url} failed: {e}") from e
        log.debug("http %s %s status=%s bytes=%s", spec.method, request.url, response.status_code, len(response.content))
        return from_httpx_response(response)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class HttpxAsyncTransport(AsyncTransport):
    name = "httpx"

    def __init__(self, timeout: Optional[float] = None, client: Optional[httpx.AsyncClient] = None):
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(**_client_kwargs(timeout))

    async def send(self, spec: HttpRequestSpec) -> HttpResponse:
        request = to_httpx_request(self._client, spec)
        try:
            response = await self._client.send(request)
        except httpx.HTTPError as e:
            log.warning("http %s %s failed: %s", spec.method, spec.url, e)
            raise TransportError(f"{spec.method} {spec.url} failed: {e}") from e
        log.debug("http %s %s status=%s bytes=%s", spec.method, request.url, response.status_code, len(response.content))
        return from_httpx_response(response)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
