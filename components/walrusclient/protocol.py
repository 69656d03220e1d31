"""
Blob and quilt protocols.

Each operation is one request/response exchange with no retries. The
protocols only build the request and bind the matching interpreter; sending
is left to the facade, which is what lets the async and blocking clients
share this module unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Optional, Sequence, TypeVar, Union

from .builder import (
    QuiltFiles,
    build_blob_metadata_request,
    build_read_blob_by_object_id_request,
    build_read_blob_request,
    build_read_quilt_identifier_request,
    build_read_quilt_patch_request,
    build_store_blob_request,
    build_store_quilt_request,
)
from .codec import QuiltPatchId
from .config import ClientConfig
from .contracts import (
    BlobMetadata,
    HttpRequestSpec,
    HttpResponse,
    QuiltMetadata,
    QuiltStoreResult,
    StoreOptions,
    StoreResult,
)
from .interpreter import (
    parse_metadata_response,
    parse_quilt_store_response,
    parse_read_response,
    parse_store_response,
)

T = TypeVar("T")


@dataclass(frozen=True)
class Exchange(Generic[T]):
    operation: str
    request: HttpRequestSpec
    interpret: Callable[[HttpResponse], T]


def _read_exchange(operation: str, request: HttpRequestSpec) -> Exchange[bytes]:
    return Exchange(
        operation=operation,
        request=request,
        interpret=lambda r: parse_read_response(r.status_code, r.content, request.url),
    )


class BlobProtocol:
    def __init__(self, config: ClientConfig):
        self.config = config

    def store_blob(self, data: bytes, options: Optional[StoreOptions] = None) -> Exchange[StoreResult]:
        request = build_store_blob_request(self.config.publisher_url, data, options)
        return Exchange(
            operation="store_blob",
            request=request,
            interpret=lambda r: parse_store_response(r.status_code, r.content),
        )

    def read_blob_by_id(self, blob_id: str) -> Exchange[bytes]:
        return _read_exchange("read_blob_by_id", build_read_blob_request(self.config.aggregator_url, blob_id))

    def read_blob_by_object_id(self, object_id: str) -> Exchange[bytes]:
        return _read_exchange(
            "read_blob_by_object_id", build_read_blob_by_object_id_request(self.config.aggregator_url, object_id)
        )

    def get_blob_metadata(self, blob_id: str) -> Exchange[BlobMetadata]:
        request = build_blob_metadata_request(self.config.aggregator_url, blob_id)
        return Exchange(
            operation="get_blob_metadata",
            request=request,
            interpret=lambda r: parse_metadata_response(r.status_code, r.headers, request.url),
        )


class QuiltProtocol:
    def __init__(self, config: ClientConfig):
        self.config = config

    def store_quilt(
        self,
        files: QuiltFiles,
        options: Optional[StoreOptions] = None,
        metadata: Optional[Sequence[QuiltMetadata]] = None,
    ) -> Exchange[QuiltStoreResult]:
        request = build_store_quilt_request(self.config.publisher_url, files, options, metadata)
        # file parts carry a filename, the metadata part does not
        identifiers = tuple(part.name for part in request.files if part.filename is not None)
        return Exchange(
            operation="store_quilt",
            request=request,
            interpret=lambda r: parse_quilt_store_response(r.status_code, r.content, identifiers),
        )

    def read_quilt_blob_by_patch_id(self, patch_id: Union[str, QuiltPatchId]) -> Exchange[bytes]:
        return _read_exchange(
            "read_quilt_blob_by_patch_id", build_read_quilt_patch_request(self.config.aggregator_url, patch_id)
        )

    def read_quilt_blob_by_quilt_id_and_identifier(self, quilt_id: str, identifier: str) -> Exchange[bytes]:
        return _read_exchange(
            "read_quilt_blob_by_quilt_id_and_identifier",
            build_read_quilt_identifier_request(self.config.aggregator_url, quilt_id, identifier),
        )
