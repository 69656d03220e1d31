"""
Request builder: pure functions from caller input to HttpRequestSpec.

Nothing here performs I/O, so the async and blocking facades share it and
produce equal requests for equal inputs.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import quote

from pydantic import ValidationError

from .codec import QuiltPatchId, check_identifier
from .contracts import HttpRequestSpec, MultipartPart, QuiltMetadata, StoreOptions
from .errors import EmptyQuiltInput, InvalidConfiguration, InvalidIdentifier, InvalidQuiltMetadata

BLOBS_ROUTE = "v1/blobs"
QUILTS_ROUTE = "v1/quilts"
OCTET_STREAM = "application/octet-stream"
METADATA_PART = "_metadata"

QuiltFiles = Union[Iterable[Tuple[str, bytes]], Mapping[str, bytes]]


def join_url(base: str, *segments: str) -> str:
    return "/".join([base.rstrip("/"), *segments])


def make_store_options(
    epochs: Optional[int] = None,
    deletable: Optional[bool] = None,
    permanent: Optional[bool] = None,
    send_object_to: Optional[str] = None,
    force: Optional[bool] = None,
) -> StoreOptions:
    try:
        options = StoreOptions(
            epochs=epochs,
            deletable=deletable,
            permanent=permanent,
            send_object_to=send_object_to,
            force=force,
        )
    except ValidationError as e:
        raise InvalidConfiguration(f"invalid store options: {e}") from e
    if options.deletable and options.permanent:
        raise InvalidConfiguration("a blob cannot be both deletable and permanent")
    return options


def store_params(options: Optional[StoreOptions]) -> Tuple[Tuple[str, str], ...]:
    """Encode store options as ordered query pairs; absent options are omitted."""
    if options is None:
        return ()
    if options.deletable and options.permanent:
        raise InvalidConfiguration("a blob cannot be both deletable and permanent")
    pairs = []
    if options.epochs is not None:
        pairs.append(("epochs", str(options.epochs)))
    for name in ("deletable", "permanent", "force"):
        value = getattr(options, name)
        if value is not None:
            pairs.append((name, "true" if value else "false"))
    if options.send_object_to is not None:
        pairs.append(("send_object_to", options.send_object_to))
    return tuple(pairs)


def _path_segment(value: str) -> str:
    return quote(value, safe="")


def build_store_blob_request(
    publisher_url: str, data: bytes, options: Optional[StoreOptions] = None
) -> HttpRequestSpec:
    return HttpRequestSpec(
        method="PUT",
        url=join_url(publisher_url, BLOBS_ROUTE),
        params=store_params(options),
        headers=(("content-type", OCTET_STREAM),),
        content=bytes(data),
    )


def _normalize_files(files: QuiltFiles) -> list[Tuple[str, bytes]]:
    items: Iterable = files.items() if isinstance(files, Mapping) else files
    out = []
    for item in items:
        name, data = item
        if not isinstance(name, str) or not name:
            raise InvalidQuiltMetadata(f"quilt file identifier must be a non-empty string, got {name!r}")
        if name == METADATA_PART:
            raise InvalidQuiltMetadata(f"quilt file identifier {name!r} is reserved for the metadata part")
        out.append((name, bytes(data)))
    return out


def build_store_quilt_request(
    publisher_url: str,
    files: QuiltFiles,
    options: Optional[StoreOptions] = None,
    metadata: Optional[Sequence[Union[QuiltMetadata, Mapping[str, Any]]]] = None,
) -> HttpRequestSpec:
    """Multipart PUT with one part per file, named by the file's identifier.

    Names are sent as given, duplicates included; the publisher decides how
    to treat collisions.
    """
    normalized = _normalize_files(files)
    if not normalized:
        raise EmptyQuiltInput()

    parts = [
        MultipartPart(name=name, filename=name, content=data, content_type=OCTET_STREAM)
        for name, data in normalized
    ]
    if metadata:
        try:
            metadata = [m if isinstance(m, QuiltMetadata) else QuiltMetadata.model_validate(m) for m in metadata]
        except ValidationError as e:
            raise InvalidQuiltMetadata(f"invalid quilt metadata: {e}") from e
        known = {name for name, _ in normalized}
        unknown = [m.identifier for m in metadata if m.identifier not in known]
        if unknown:
            raise InvalidQuiltMetadata(f"metadata for unknown quilt identifiers: {unknown}")
        payload = json.dumps([m.model_dump() for m in metadata], separators=(",", ":"), sort_keys=True)
        parts.append(MultipartPart(name=METADATA_PART, content=payload.encode("utf-8"), content_type="application/json"))

    return HttpRequestSpec(
        method="PUT",
        url=join_url(publisher_url, QUILTS_ROUTE),
        params=store_params(options),
        files=tuple(parts),
    )


def build_read_blob_request(aggregator_url: str, blob_id: str) -> HttpRequestSpec:
    return HttpRequestSpec(method="GET", url=join_url(aggregator_url, BLOBS_ROUTE, check_identifier(blob_id)))


def build_blob_metadata_request(aggregator_url: str, blob_id: str) -> HttpRequestSpec:
    return HttpRequestSpec(method="HEAD", url=join_url(aggregator_url, BLOBS_ROUTE, check_identifier(blob_id)))


def build_read_blob_by_object_id_request(aggregator_url: str, object_id: str) -> HttpRequestSpec:
    if not isinstance(object_id, str) or not object_id.strip():
        raise InvalidIdentifier(str(object_id), "empty object id")
    return HttpRequestSpec(
        method="GET",
        url=join_url(aggregator_url, BLOBS_ROUTE, "by-object-id", _path_segment(object_id.strip())),
    )


def build_read_quilt_patch_request(aggregator_url: str, patch_id: Union[str, QuiltPatchId]) -> HttpRequestSpec:
    pid = patch_id if isinstance(patch_id, QuiltPatchId) else QuiltPatchId.parse(patch_id)
    return HttpRequestSpec(
        method="GET",
        url=join_url(aggregator_url, BLOBS_ROUTE, "by-quilt-patch-id", str(pid)),
    )


def build_read_quilt_identifier_request(aggregator_url: str, quilt_id: str, identifier: str) -> HttpRequestSpec:
    if not isinstance(identifier, str) or not identifier:
        raise InvalidIdentifier(str(identifier), "empty quilt file identifier")
    return HttpRequestSpec(
        method="GET",
        url=join_url(aggregator_url, BLOBS_ROUTE, "by-quilt-id", check_identifier(quilt_id), _path_segment(identifier)),
    )
