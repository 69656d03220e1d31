import json

import httpx
import pytest

from components.walrusclient.adapters.httpx_transport import HttpxAsyncTransport, HttpxSyncTransport
from components.walrusclient.client import BlockingWalrusClient, WalrusClient
from components.walrusclient.contracts import AlreadyCertified, NewlyCreated
from components.walrusclient.errors import HttpError, NotFound, TransportError

AGG = "https://aggregator.test"
PUB = "https://publisher.test"
BLOB_ID = "M4hsZGQ1oCktdzegB6HnI6Mi28S2nqOPHxK-W7_4BUk"
QUILT_ID = "A" * 43

NEWLY_CREATED = {
    "newlyCreated": {
        "blobObject": {
            "id": "0x01",
            "registeredEpoch": 1,
            "blobId": BLOB_ID,
            "size": 5,
            "encodingType": "RS2",
            "certifiedEpoch": 1,
            "storage": {"id": "0x02", "startEpoch": 1, "endEpoch": 2, "storageSize": 100},
            "deletable": False,
        },
        "resourceOperation": {"registerFromScratch": {"encodedLength": 100, "epochsAhead": 1}},
        "cost": 7,
    }
}


def _blocking(handler) -> BlockingWalrusClient:
    transport = HttpxSyncTransport(client=httpx.Client(transport=httpx.MockTransport(handler)))
    return BlockingWalrusClient(AGG, PUB, transport=transport)


def _async(handler) -> WalrusClient:
    transport = HttpxAsyncTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    return WalrusClient(AGG, PUB, transport=transport)


def test_store_blob_over_httpx():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=NEWLY_CREATED)

    client = _blocking(handler)
    res = client.store_blob(b"hello", epochs=1, deletable=False)
    assert isinstance(res, NewlyCreated)
    assert res.blob_id == BLOB_ID

    req = seen[0]
    assert req.method == "PUT"
    assert req.url.host == "publisher.test"
    assert req.url.path == "/v1/blobs"
    assert list(req.url.params.multi_items()) == [("epochs", "1"), ("deletable", "false")]
    assert req.content == b"hello"
    assert req.headers["content-type"] == "application/octet-stream"


def test_store_quilt_sends_multipart():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={
            "blobStoreResult": {"alreadyCertified": {"blobId": QUILT_ID, "object": "0x0b", "endEpoch": 9}},
            "storedQuiltBlobs": [
                {"identifier": "b.txt", "quiltPatchId": "PB"},
                {"identifier": "a.txt", "quiltPatchId": "PA"},
            ],
        })

    client = _blocking(handler)
    res = client.store_quilt([("a.txt", b"AAA"), ("b.txt", b"BBB")], metadata=[{"identifier": "a.txt"}])
    assert isinstance(res.blob_store_result, AlreadyCertified)
    assert [e.quilt_patch_id for e in res.stored_quilt_blobs] == ["PA", "PB"]

    req = seen[0]
    assert req.url.path == "/v1/quilts"
    assert req.headers["content-type"].startswith("multipart/form-data")
    body = req.content
    assert b'name="a.txt"; filename="a.txt"' in body
    assert b'name="b.txt"; filename="b.txt"' in body
    assert body.index(b"AAA") < body.index(b"BBB")
    assert b'name="_metadata"' in body
    assert b'filename="_metadata"' not in body


def test_reads_and_status_mapping():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == f"/v1/blobs/{BLOB_ID}":
            if request.method == "HEAD":
                return httpx.Response(200, headers={
                    "content-length": "5", "content-type": "text/plain", "etag": f'"{BLOB_ID}"',
                })
            return httpx.Response(200, content=b"hello")
        if request.url.path.startswith("/v1/blobs/by-quilt-id/"):
            assert request.url.raw_path.endswith(b"/dir%2Fa%20b.txt")
            return httpx.Response(200, content=b"nested")
        if request.url.path == f"/v1/blobs/{QUILT_ID}":
            return httpx.Response(404, text="missing")
        return httpx.Response(502, text="bad gateway")

    client = _blocking(handler)
    assert client.read_blob_by_id(BLOB_ID) == b"hello"
    meta = client.get_blob_metadata(BLOB_ID)
    assert (meta.content_length, meta.content_type) == (5, "text/plain")
    assert client.read_quilt_blob_by_quilt_id_and_identifier(QUILT_ID, "dir/a b.txt") == b"nested"
    with pytest.raises(NotFound):
        client.read_blob_by_id(QUILT_ID)
    with pytest.raises(HttpError) as ei:
        client.read_blob_by_object_id("0xabc")
    assert ei.value.status == 502
    assert ei.value.excerpt == "bad gateway"


def test_network_failure_is_a_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused")

    client = _blocking(handler)
    with pytest.raises(TransportError) as ei:
        client.read_blob_by_id(BLOB_ID)
    assert isinstance(ei.value.__cause__, httpx.ConnectError)


def test_caller_supplied_client_is_not_closed():
    http = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    HttpxSyncTransport(client=http).close()
    assert not http.is_closed
    http.close()

    owned = HttpxSyncTransport(timeout=5)
    assert owned._client.timeout == httpx.Timeout(5)
    owned.close()
    assert owned._client.is_closed


@pytest.mark.asyncio
async def test_async_roundtrip_over_httpx():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "PUT":
            assert request.content == b"hello"
            return httpx.Response(200, json=NEWLY_CREATED)
        return httpx.Response(200, content=b"hello")

    async with _async(handler) as client:
        res = await client.store_blob(b"hello", epochs=1)
        assert (await client.read_blob_by_id(res.blob_id)) == b"hello"


@pytest.mark.asyncio
async def test_async_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow aggregator")

    client = _async(handler)
    with pytest.raises(TransportError):
        await client.read_blob_by_id(BLOB_ID)
    await client.aclose()


def test_read_body_is_returned_verbatim():
    raw = json.dumps({"newlyCreated": None}).encode()
    client = _blocking(lambda r: httpx.Response(200, content=raw))
    assert client.read_blob_by_id(BLOB_ID) == raw
