import json

import pytest

from components.walrusclient.builder import (
    build_blob_metadata_request,
    build_read_blob_by_object_id_request,
    build_read_blob_request,
    build_read_quilt_identifier_request,
    build_read_quilt_patch_request,
    build_store_blob_request,
    build_store_quilt_request,
    make_store_options,
    store_params,
)
from components.walrusclient.codec import QuiltPatchId
from components.walrusclient.contracts import QuiltMetadata
from components.walrusclient.errors import (
    EmptyQuiltInput,
    InvalidConfiguration,
    InvalidIdentifier,
    InvalidQuiltMetadata,
)

PUB = "https://publisher.test"
AGG = "https://aggregator.test"
QUILT_ID = "A" * 43


def test_store_blob_request():
    req = build_store_blob_request(PUB + "/", b"hello", make_store_options(epochs=1))
    assert req.method == "PUT"
    assert req.url == "https://publisher.test/v1/blobs"
    assert req.params == (("epochs", "1"),)
    assert req.content == b"hello"
    assert ("content-type", "application/octet-stream") in req.headers


def test_store_params_order_and_boolean_rendering():
    opts = make_store_options(epochs=5, deletable=True, force=False, send_object_to="0xabc")
    assert store_params(opts) == (
        ("epochs", "5"),
        ("deletable", "true"),
        ("force", "false"),
        ("send_object_to", "0xabc"),
    )
    assert store_params(make_store_options()) == ()
    assert store_params(None) == ()


def test_store_options_are_validated():
    with pytest.raises(InvalidConfiguration):
        make_store_options(deletable=True, permanent=True)
    with pytest.raises(InvalidConfiguration):
        make_store_options(epochs=0)
    with pytest.raises(InvalidConfiguration):
        make_store_options(send_object_to="  ")


def test_equal_inputs_give_equal_requests():
    a = build_store_blob_request(PUB, b"x", make_store_options(epochs=2))
    b = build_store_blob_request(PUB, b"x", make_store_options(epochs=2))
    assert a == b


def test_store_quilt_request_parts_follow_input_order():
    req = build_store_quilt_request(PUB, [("a.txt", b"AAA"), ("b.txt", b"BBB")], make_store_options(epochs=1))
    assert req.method == "PUT"
    assert req.url == "https://publisher.test/v1/quilts"
    assert req.params == (("epochs", "1"),)
    assert [(p.name, p.filename, p.content) for p in req.files] == [
        ("a.txt", "a.txt", b"AAA"),
        ("b.txt", "b.txt", b"BBB"),
    ]


def test_store_quilt_accepts_mapping_and_metadata():
    req = build_store_quilt_request(
        PUB,
        {"a.txt": b"AAA", "b.txt": b"BBB"},
        metadata=[QuiltMetadata(identifier="a.txt", tags={"k": "v"}), {"identifier": "b.txt"}],
    )
    names = [p.name for p in req.files]
    assert names == ["a.txt", "b.txt", "_metadata"]
    meta_part = req.files[-1]
    assert meta_part.filename is None
    assert meta_part.content_type == "application/json"
    assert json.loads(meta_part.content) == [
        {"identifier": "a.txt", "tags": {"k": "v"}},
        {"identifier": "b.txt", "tags": {}},
    ]


def test_store_quilt_rejects_empty_and_unknown_metadata():
    with pytest.raises(EmptyQuiltInput):
        build_store_quilt_request(PUB, [])
    with pytest.raises(EmptyQuiltInput):
        build_store_quilt_request(PUB, {})
    with pytest.raises(InvalidQuiltMetadata):
        build_store_quilt_request(PUB, [("a.txt", b"A")], metadata=[QuiltMetadata(identifier="zzz")])
    with pytest.raises(InvalidQuiltMetadata):
        build_store_quilt_request(PUB, [("a.txt", b"A")], metadata=[{"identifier": ""}])
    with pytest.raises(InvalidQuiltMetadata):
        build_store_quilt_request(PUB, [("", b"A")])


def test_read_requests():
    assert build_read_blob_request(AGG, QUILT_ID).url == f"{AGG}/v1/blobs/{QUILT_ID}"
    head = build_blob_metadata_request(AGG, QUILT_ID)
    assert head.method == "HEAD"
    assert head.url == f"{AGG}/v1/blobs/{QUILT_ID}"
    assert build_read_blob_by_object_id_request(AGG, "0xabc").url == f"{AGG}/v1/blobs/by-object-id/0xabc"


def test_read_requests_validate_before_any_io():
    with pytest.raises(InvalidIdentifier):
        build_read_blob_request(AGG, "bad=id")
    with pytest.raises(InvalidIdentifier):
        build_read_blob_by_object_id_request(AGG, "")
    with pytest.raises(InvalidIdentifier):
        build_read_quilt_patch_request(AGG, QUILT_ID)


def test_quilt_read_requests():
    pid = QuiltPatchId(quilt_id=QUILT_ID, start_index=1, end_index=2)
    assert build_read_quilt_patch_request(AGG, pid).url == f"{AGG}/v1/blobs/by-quilt-patch-id/{pid}"
    assert build_read_quilt_patch_request(AGG, str(pid)) == build_read_quilt_patch_request(AGG, pid)

    req = build_read_quilt_identifier_request(AGG, QUILT_ID, "dir/a b.txt")
    assert req.url == f"{AGG}/v1/blobs/by-quilt-id/{QUILT_ID}/dir%2Fa%20b.txt"
    with pytest.raises(InvalidIdentifier):
        build_read_quilt_identifier_request(AGG, QUILT_ID, "")


def test_metadata_part_name_is_reserved():
    with pytest.raises(InvalidQuiltMetadata):
        build_store_quilt_request(PUB, [("_metadata", b"x")], metadata=[{"identifier": "_metadata"}])
    with pytest.raises(InvalidQuiltMetadata):
        build_store_quilt_request(PUB, {"a.txt": b"A", "_metadata": b"x"})
