"""
Client facades.

``WalrusClient`` awaits the network exchange, ``BlockingWalrusClient`` blocks
the calling thread on it. Both drive the same BlobProtocol/QuiltProtocol
objects, so equal calls produce equal HttpRequestSpec values; the only
difference is the transport port they send through.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional, Sequence, TypeVar, Union

from .adapters.httpx_transport import HttpxAsyncTransport, HttpxSyncTransport
from .builder import QuiltFiles, make_store_options
from .codec import QuiltPatchId
from .config import ClientConfig
from .contracts import BlobMetadata, QuiltMetadata, QuiltStoreResult, StoreOptions, StoreResult
from .errors import WalrusError
from .ports import AsyncTransport, SyncTransport
from .protocol import BlobProtocol, Exchange, QuiltProtocol

log = logging.getLogger("walrusclient")

T = TypeVar("T")

MetadataInput = Optional[Sequence[Union[QuiltMetadata, Mapping[str, Any]]]]


class _ClientCore:
    def __init__(self, aggregator_url: str, publisher_url: str, default_epochs: Optional[int] = None):
        self.config = ClientConfig(aggregator_url=aggregator_url, publisher_url=publisher_url)
        self.default_epochs = default_epochs
        self.blobs = BlobProtocol(self.config)
        self.quilts = QuiltProtocol(self.config)

    @property
    def aggregator_url(self) -> str:
        return self.config.aggregator_url

    @property
    def publisher_url(self) -> str:
        return self.config.publisher_url

    def _options(
        self,
        epochs: Optional[int],
        deletable: Optional[bool],
        permanent: Optional[bool],
        send_object_to: Optional[str],
        force: Optional[bool],
    ) -> StoreOptions:
        return make_store_options(
            epochs=epochs if epochs is not None else self.default_epochs,
            deletable=deletable,
            permanent=permanent,
            send_object_to=send_object_to,
            force=force,
        )


def _log_ok(exchange: Exchange, transport: str, status: int, t0: float) -> None:
    log.info(
        "walrus.%s ok status=%s transport=%s dur_ms=%s",
        exchange.operation, status, transport, int((time.perf_counter() - t0) * 1000),
    )


def _log_err(exchange: Exchange, transport: str, error: WalrusError, t0: float) -> None:
    log.warning(
        "walrus.%s err %s transport=%s dur_ms=%s: %s",
        exchange.operation, type(error).__name__, transport, int((time.perf_counter() - t0) * 1000), error,
    )


class WalrusClient(_ClientCore):
    """Asynchronous client; any number of calls may be in flight on one instance."""

    def __init__(
        self,
        aggregator_url: str,
        publisher_url: str,
        *,
        transport: Optional[AsyncTransport] = None,
        timeout: Optional[float] = None,
        default_epochs: Optional[int] = None,
    ):
        super().__init__(aggregator_url, publisher_url, default_epochs)
        self.transport = transport if transport is not None else HttpxAsyncTransport(timeout=timeout)

    async def _run(self, exchange: Exchange[T]) -> T:
        t0 = time.perf_counter()
        try:
            response = await self.transport.send(exchange.request)
            result = exchange.interpret(response)
        except WalrusError as e:
            _log_err(exchange, self.transport.name, e, t0)
            raise
        _log_ok(exchange, self.transport.name, response.status_code, t0)
        return result

    async def store_blob(
        self,
        data: bytes,
        *,
        epochs: Optional[int] = None,
        deletable: Optional[bool] = None,
        permanent: Optional[bool] = None,
        send_object_to: Optional[str] = None,
        force: Optional[bool] = None,
    ) -> StoreResult:
        options = self._options(epochs, deletable, permanent, send_object_to, force)
        return await self._run(self.blobs.store_blob(data, options))

    async def read_blob_by_id(self, blob_id: str) -> bytes:
        return await self._run(self.blobs.read_blob_by_id(blob_id))

    async def read_blob_by_object_id(self, object_id: str) -> bytes:
        return await self._run(self.blobs.read_blob_by_object_id(object_id))

    async def get_blob_metadata(self, blob_id: str) -> BlobMetadata:
        return await self._run(self.blobs.get_blob_metadata(blob_id))

    async def store_quilt(
        self,
        files: QuiltFiles,
        *,
        metadata: MetadataInput = None,
        epochs: Optional[int] = None,
        deletable: Optional[bool] = None,
        permanent: Optional[bool] = None,
        send_object_to: Optional[str] = None,
        force: Optional[bool] = None,
    ) -> QuiltStoreResult:
        options = self._options(epochs, deletable, permanent, send_object_to, force)
        return await self._run(self.quilts.store_quilt(files, options, metadata))

    async def read_quilt_blob_by_patch_id(self, patch_id: Union[str, QuiltPatchId]) -> bytes:
        return await self._run(self.quilts.read_quilt_blob_by_patch_id(patch_id))

    async def read_quilt_blob_by_quilt_id_and_identifier(self, quilt_id: str, identifier: str) -> bytes:
        return await self._run(self.quilts.read_quilt_blob_by_quilt_id_and_identifier(quilt_id, identifier))

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> "WalrusClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class BlockingWalrusClient(_ClientCore):
    """Thread-blocking client. Holds only immutable config, so threads may share one instance."""

    def __init__(
        self,
        aggregator_url: str,
        publisher_url: str,
        *,
        transport: Optional[SyncTransport] = None,
        timeout: Optional[float] = None,
        default_epochs: Optional[int] = None,
    ):
        super().__init__(aggregator_url, publisher_url, default_epochs)
        self.transport = transport if transport is not None else HttpxSyncTransport(timeout=timeout)

    def _run(self, exchange: Exchange[T]) -> T:
        t0 = time.perf_counter()
        try:
            response = self.transport.send(exchange.request)
            result = exchange.interpret(response)
        except WalrusError as e:
            _log_err(exchange, self.transport.name, e, t0)
            raise
        _log_ok(exchange, self.transport.name, response.status_code, t0)
        return result

    def store_blob(
        self,
        data: bytes,
        *,
        epochs: Optional[int] = None,
        deletable: Optional[bool] = None,
        permanent: Optional[bool] = None,
        send_object_to: Optional[str] = None,
        force: Optional[bool] = None,
    ) -> StoreResult:
        options = self._options(epochs, deletable, permanent, send_object_to, force)
        return self._run(self.blobs.store_blob(data, options))

    def read_blob_by_id(self, blob_id: str) -> bytes:
        return self._run(self.blobs.read_blob_by_id(blob_id))

    def read_blob_by_object_id(self, object_id: str) -> bytes:
        return self._run(self.blobs.read_blob_by_object_id(object_id))

    def get_blob_metadata(self, blob_id: str) -> BlobMetadata:
        return self._run(self.blobs.get_blob_metadata(blob_id))

    def store_quilt(
        self,
        files: QuiltFiles,
        *,
        metadata: MetadataInput = None,
        epochs: Optional[int] = None,
        deletable: Optional[bool] = None,
        permanent: Optional[bool] = None,
        send_object_to: Optional[str] = None,
        force: Optional[bool] = None,
    ) -> QuiltStoreResult:
        options = self._options(epochs, deletable, permanent, send_object_to, force)
        return self._run(self.quilts.store_quilt(files, options, metadata))

    def read_quilt_blob_by_patch_id(self, patch_id: Union[str, QuiltPatchId]) -> bytes:
        return self._run(self.quilts.read_quilt_blob_by_patch_id(patch_id))

    def read_quilt_blob_by_quilt_id_and_identifier(self, quilt_id: str, identifier: str) -> bytes:
        return self._run(self.quilts.read_quilt_blob_by_quilt_id_and_identifier(quilt_id, identifier))

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "BlockingWalrusClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
