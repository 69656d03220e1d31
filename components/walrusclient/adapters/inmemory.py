from __future__ import annotations

import hashlib
import json
import logging
import struct
import threading
from dataclasses import dataclass
from typing import Dict, List, Tuple
from urllib.parse import unquote, urlsplit

from ..builder import METADATA_PART, OCTET_STREAM
from ..codec import QuiltPatchId, blob_id_from_digest
from ..contracts import HttpRequestSpec, HttpResponse
from ..errors import InvalidIdentifier
from ..ports import AsyncTransport, SyncTransport

log = logging.getLogger("walrusclient.inmemory")

# slot 0 of a quilt holds its index, files start at slot 1
_FIRST_PATCH_SLOT = 1


@dataclass
class _Certified:
    object_id: str
    end_epoch: int
    deletable: bool


@dataclass
class _QuiltPatch:
    identifier: str
    data: bytes
    start_index: int
    end_index: int


@dataclass
class _Failure:
    status_code: int
    body: bytes = b""


class InMemoryWalrusNetwork:
    """
    Deterministic, test-friendly aggregator + publisher.

    Blob ids are content addresses (sha256 of the payload). The first store
    of some bytes answers ``newlyCreated``, later stores ``alreadyCertified``
    unless ``force=true``. Quilts are stored as one packed blob and every file
    gets a real quilt patch id that resolves back to its bytes.
    """

    def __init__(self, current_epoch: int = 1, default_epochs: int = 1, reverse_quilt_listing: bool = False):
        self.current_epoch = current_epoch
        self.default_epochs = default_epochs
        self.reverse_quilt_listing = reverse_quilt_listing
        self.requests: List[HttpRequestSpec] = []
        self._blobs: Dict[str, bytes] = {}
        self._certified: Dict[str, _Certified] = {}
        self._objects: Dict[str, str] = {}
        self._quilts: Dict[str, List[_QuiltPatch]] = {}
        self._failures: List[_Failure] = []
        self._object_seq = 0
        self._lock = threading.RLock()

    # -------- test hooks --------

    def fail_next(self, status_code: int, body: bytes = b"") -> None:
        with self._lock:
            self._failures.append(_Failure(status_code=status_code, body=body))

    def sync_transport(self) -> "InMemorySyncTransport":
        return InMemorySyncTransport(self)

    def async_transport(self) -> "InMemoryAsyncTransport":
        return InMemoryAsyncTransport(self)

    # -------- dispatch --------

    def handle(self, spec: HttpRequestSpec) -> HttpResponse:
        with self._lock:
            self.requests.append(spec)
            if self._failures:
                failure = self._failures.pop(0)
                return HttpResponse(status_code=failure.status_code, content=failure.body)

            path = urlsplit(spec.url).path
            if "/v1/" not in path:
                return _text(404, "unknown route")
            segments = path.split("/v1/", 1)[1].split("/")
            params = dict(spec.params)

            if spec.method == "PUT" and segments == ["blobs"]:
                return self._store_blob(spec.content or b"", params)
            if spec.method == "PUT" and segments == ["quilts"]:
                return self._store_quilt(spec, params)
            if segments[0] != "blobs" or len(segments) < 2:
                return _text(404, "unknown route")
            if spec.method == "HEAD" and len(segments) == 2:
                return self._head_blob(unquote(segments[1]))
            if spec.method != "GET":
                return _text(405, "method not allowed")
            if len(segments) == 2:
                return self._read_blob(unquote(segments[1]))
            if segments[1] == "by-object-id" and len(segments) == 3:
                blob_id = self._objects.get(unquote(segments[2]))
                return self._read_blob(blob_id) if blob_id else _text(404, "object not found")
            if segments[1] == "by-quilt-patch-id" and len(segments) == 3:
                return self._read_patch(unquote(segments[2]))
            if segments[1] == "by-quilt-id" and len(segments) == 4:
                return self._read_quilt_identifier(unquote(segments[2]), unquote(segments[3]))
            return _text(404, "unknown route")

    # -------- publisher --------

    def _store_result(self, data: bytes, params: Dict[str, str]) -> Dict[str, object]:
        blob_id = blob_id_from_digest(hashlib.sha256(data).digest())
        epochs = int(params.get("epochs", self.default_epochs))
        force = params.get("force") == "true"
        existing = self._certified.get(blob_id)
        if existing is not None and not force:
            log.debug("inmemory dedup blob_id=%s", blob_id)
            return {
                "alreadyCertified": {
                    "blobId": blob_id,
                    "event": {"txDigest": hashlib.sha256(existing.object_id.encode()).hexdigest(), "eventSeq": "0"},
                    "endEpoch": existing.end_epoch,
                }
            }

        self._object_seq += 1
        object_id = "0x" + hashlib.sha256(f"{blob_id}:{self._object_seq}".encode()).hexdigest()
        end_epoch = self.current_epoch + epochs
        deletable = params.get("deletable") == "true"
        encoded_length = max(len(data), 1) * 5
        self._blobs[blob_id] = data
        self._certified[blob_id] = _Certified(object_id=object_id, end_epoch=end_epoch, deletable=deletable)
        self._objects[object_id] = blob_id
        return {
            "newlyCreated": {
                "blobObject": {
                    "id": object_id,
                    "registeredEpoch": self.current_epoch,
                    "blobId": blob_id,
                    "size": len(data),
                    "encodingType": "RS2",
                    "certifiedEpoch": self.current_epoch,
                    "storage": {
                        "id": "0x" + hashlib.sha256(object_id.encode()).hexdigest(),
                        "startEpoch": self.current_epoch,
                        "endEpoch": end_epoch,
                        "storageSize": encoded_length,
                    },
                    "deletable": deletable,
                },
                "resourceOperation": {
                    "registerFromScratch": {"encodedLength": encoded_length, "epochsAhead": epochs},
                },
                "cost": encoded_length * epochs,
            }
        }

    def _store_blob(self, data: bytes, params: Dict[str, str]) -> HttpResponse:
        return _json(200, self._store_result(data, params))

    def _store_quilt(self, spec: HttpRequestSpec, params: Dict[str, str]) -> HttpResponse:
        files = [(p.name, p.content) for p in spec.files if p.name != METADATA_PART]
        if not files:
            return _text(400, "quilt must contain at least one file")
        names = [name for name, _ in files]
        if len(set(names)) != len(names):
            return _text(400, "duplicate quilt identifiers")
        if len(files) + _FIRST_PATCH_SLOT > 0xFFFF:
            return _text(400, "too many files for one quilt")

        packed = _pack_quilt(files)
        result = self._store_result(packed, params)
        quilt_id = blob_id_from_digest(hashlib.sha256(packed).digest())
        patches = [
            _QuiltPatch(identifier=name, data=data, start_index=slot, end_index=slot + 1)
            for slot, (name, data) in enumerate(files, start=_FIRST_PATCH_SLOT)
        ]
        self._quilts[quilt_id] = patches

        listing = [
            {
                "identifier": p.identifier,
                "quiltPatchId": str(QuiltPatchId(quilt_id=quilt_id, start_index=p.start_index, end_index=p.end_index)),
            }
            for p in patches
        ]
        if self.reverse_quilt_listing:
            listing.reverse()
        return _json(200, {"blobStoreResult": result, "storedQuiltBlobs": listing})

    # -------- aggregator --------

    def _read_blob(self, blob_id: str) -> HttpResponse:
        data = self._blobs.get(blob_id)
        if data is None:
            return _text(404, "blob not found")
        return HttpResponse(status_code=200, headers={"content-type": OCTET_STREAM}, content=data)

    def _head_blob(self, blob_id: str) -> HttpResponse:
        data = self._blobs.get(blob_id)
        if data is None:
            return HttpResponse(status_code=404)
        return HttpResponse(
            status_code=200,
            headers={"content-length": str(len(data)), "content-type": OCTET_STREAM, "etag": f'"{blob_id}"'},
        )

    def _read_patch(self, text: str) -> HttpResponse:
        try:
            pid = QuiltPatchId.parse(text)
        except InvalidIdentifier as e:
            return _text(400, str(e))
        for patch in self._quilts.get(pid.quilt_id, []):
            if (patch.start_index, patch.end_index) == (pid.start_index, pid.end_index):
                return HttpResponse(status_code=200, headers={"content-type": OCTET_STREAM}, content=patch.data)
        return _text(404, "quilt patch not found")

    def _read_quilt_identifier(self, quilt_id: str, identifier: str) -> HttpResponse:
        for patch in self._quilts.get(quilt_id, []):
            if patch.identifier == identifier:
                return HttpResponse(status_code=200, headers={"content-type": OCTET_STREAM}, content=patch.data)
        return _text(404, "quilt file not found")


def _pack_quilt(files: List[Tuple[str, bytes]]) -> bytes:
    out = bytearray()
    for name, data in files:
        encoded = name.encode("utf-8")
        out += struct.pack("<HI", len(encoded), len(data)) + encoded + data
    return bytes(out)


def _json(status_code: int, payload: Dict[str, object]) -> HttpResponse:
    return HttpResponse(
        status_code=status_code,
        headers={"content-type": "application/json"},
        content=json.dumps(payload).encode("utf-8"),
    )


def _text(status_code: int, message: str) -> HttpResponse:
    return HttpResponse(status_code=status_code, headers={"content-type": "text/plain"}, content=message.encode("utf-8"))


class InMemorySyncTransport(SyncTransport):
    name = "inmemory"

    def __init__(self, network: InMemoryWalrusNetwork):
        self.network = network

    def send(self, spec: HttpRequestSpec) -> HttpResponse:
        return self.network.handle(spec)


class InMemoryAsyncTransport(AsyncTransport):
    name = "inmemory"

    def __init__(self, network: InMemoryWalrusNetwork):
        self.network = network

    async def send(self, spec: HttpRequestSpec) -> HttpResponse:
        return self.network.handle(spec)
