from __future__ import annotations
import base64
import logging
import time
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Optional, Union

from .builder import QuiltFiles
from .client import MetadataInput, WalrusClient
from .codec import QuiltPatchId
from .contracts import ErrorPayload, MetaPayload, UWFResponse
from .errors import (
    EmptyQuiltInput, HttpError, InvalidConfiguration, InvalidIdentifier, InvalidQuiltMetadata,
    NotFound, QuiltPatchCountMismatch, TransportError, UnexpectedResponseShape, WalrusError,
)

log = logging.getLogger("walrusclient.service")

# Optional OpenTelemetry
try:
    from opentelemetry import trace
    tracer = trace.get_tracer("walrusclient")
except ImportError:  # pragma: no cover
    tracer = None

@contextmanager
def _span(name: str, **attrs):
    if tracer:
        with tracer.start_as_current_span(name) as span:
            for k, v in attrs.items():
                if v is not None:
                    span.set_attribute(f"walrus.{k}", v)
            yield
    else:
        yield

_ERROR_CODES = (
    (InvalidConfiguration, "VALIDATION", "WALRUS_INVALID_CONFIGURATION"),
    (EmptyQuiltInput, "VALIDATION", "WALRUS_EMPTY_QUILT"),
    (InvalidQuiltMetadata, "VALIDATION", "WALRUS_INVALID_QUILT_METADATA"),
    (InvalidIdentifier, "VALIDATION", "WALRUS_INVALID_IDENTIFIER"),
    (NotFound, "NOT_FOUND", "WALRUS_NOT_FOUND"),
    (HttpError, "UPSTREAM", "WALRUS_HTTP_ERROR"),
    (TransportError, "UPSTREAM", "WALRUS_TRANSPORT_ERROR"),
    (UnexpectedResponseShape, "UPSTREAM", "WALRUS_UNEXPECTED_RESPONSE"),
    (QuiltPatchCountMismatch, "UPSTREAM", "WALRUS_PATCH_COUNT_MISMATCH"),
)

def _details(e: WalrusError) -> Optional[dict]:
    if isinstance(e, HttpError):
        return {"status": e.status, "excerpt": e.excerpt}
    if isinstance(e, NotFound):
        return {"url": e.url} if e.url else None
    if isinstance(e, InvalidIdentifier):
        return {"value": e.value, "reason": e.reason}
    if isinstance(e, QuiltPatchCountMismatch):
        return {"expected": e.expected, "actual": e.actual}
    return None

def _uwf_ok(result, meta: MetaPayload) -> UWFResponse:
    return UWFResponse(ok=True, result=result, meta=meta)

def _uwf_err(e: WalrusError, meta: MetaPayload) -> UWFResponse:
    t, code = "INTERNAL", "WALRUS_INTERNAL"
    for cls, err_type, err_code in _ERROR_CODES:
        if isinstance(e, cls):
            t, code = err_type, err_code
            break
    err = ErrorPayload(type=t, code=code, message=str(e), details=_details(e))
    return UWFResponse(ok=False, error=err, meta=meta)

def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")

class WalrusService:
    """
    Envelope façade over WalrusClient.

    Every call returns a UWFResponse; client errors become ErrorPayload values
    instead of exceptions. Anything outside WalrusError propagates.
    """

    def __init__(self, client: WalrusClient, trace_id: Optional[str] = None):
        self.client = client
        self.trace_id = trace_id

    async def _call(self, operation: str, fn: Callable[[], Awaitable[Any]], render: Callable[[Any], Any], **attrs) -> UWFResponse:
        t0 = time.time()
        meta = MetaPayload(trace_id=self.trace_id, operation=operation, transport=self.client.transport.name)
        with _span(f"walrus.{operation}", transport=meta.transport, **attrs):
            try:
                res = await fn()
            except WalrusError as e:
                meta.duration_ms = int((time.time() - t0) * 1000)
                resp = _uwf_err(e, meta)
                if resp.error.type == "UPSTREAM":
                    log.exception("walrus.%s err code=%s dur_ms=%s", operation, resp.error.code, meta.duration_ms)
                else:
                    log.warning("walrus.%s rejected code=%s: %s", operation, resp.error.code, e)
                return resp
            meta.duration_ms = int((time.time() - t0) * 1000)
            log.info("walrus.%s ok transport=%s dur_ms=%s", operation, meta.transport, meta.duration_ms)
            return _uwf_ok(render(res), meta)

    async def store_blob(self, data: bytes, **options) -> UWFResponse:
        return await self._call(
            "store_blob",
            lambda: self.client.store_blob(data, **options),
            lambda r: r.model_dump(by_alias=True),
            size=len(data),
        )

    async def read_blob_by_id(self, blob_id: str) -> UWFResponse:
        return await self._call(
            "read_blob_by_id", lambda: self.client.read_blob_by_id(blob_id), _b64, blob_id=blob_id
        )

    async def read_blob_by_object_id(self, object_id: str) -> UWFResponse:
        return await self._call(
            "read_blob_by_object_id", lambda: self.client.read_blob_by_object_id(object_id), _b64, object_id=object_id
        )

    async def get_blob_metadata(self, blob_id: str) -> UWFResponse:
        return await self._call(
            "get_blob_metadata", lambda: self.client.get_blob_metadata(blob_id), lambda r: r.model_dump(), blob_id=blob_id
        )

    async def store_quilt(self, files: QuiltFiles, metadata: MetadataInput = None, **options) -> UWFResponse:
        return await self._call(
            "store_quilt",
            lambda: self.client.store_quilt(files, metadata=metadata, **options),
            lambda r: r.model_dump(by_alias=True),
        )

    async def read_quilt_blob_by_patch_id(self, patch_id: Union[str, QuiltPatchId]) -> UWFResponse:
        return await self._call(
            "read_quilt_blob_by_patch_id",
            lambda: self.client.read_quilt_blob_by_patch_id(patch_id),
            _b64,
            patch_id=str(patch_id),
        )

    async def read_quilt_blob_by_quilt_id_and_identifier(self, quilt_id: str, identifier: str) -> UWFResponse:
        return await self._call(
            "read_quilt_blob_by_quilt_id_and_identifier",
            lambda: self.client.read_quilt_blob_by_quilt_id_and_identifier(quilt_id, identifier),
            _b64,
            quilt_id=quilt_id,
            identifier=identifier,
        )
