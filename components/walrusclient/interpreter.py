"""
Response interpreter: status + body -> typed result or typed error.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from .contracts import (
    AlreadyCertified,
    BlobMetadata,
    NewlyCreated,
    QuiltStoreResult,
    StoredQuiltBlob,
    StoreResult,
)
from .errors import HttpError, NotFound, QuiltPatchCountMismatch, UnexpectedResponseShape

EXCERPT_CHARS = 512

NEWLY_CREATED_KEY = "newlyCreated"
ALREADY_CERTIFIED_KEY = "alreadyCertified"


def excerpt(body: bytes) -> str:
    return bytes(body[: EXCERPT_CHARS * 4]).decode("utf-8", errors="replace")[:EXCERPT_CHARS]


def is_success(status: int) -> bool:
    return 200 <= status < 300


def _load_json_object(body: bytes) -> Dict[str, Any]:
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise UnexpectedResponseShape(f"response body is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise UnexpectedResponseShape(f"expected a JSON object, got {type(payload).__name__}")
    return payload


def store_result_from_json(payload: Mapping[str, Any]) -> StoreResult:
    """Select the store variant; a key whose value is null counts as absent."""
    newly = payload.get(NEWLY_CREATED_KEY)
    already = payload.get(ALREADY_CERTIFIED_KEY)
    if (newly is None) == (already is None):
        raise UnexpectedResponseShape(
            f"store response must contain exactly one of {NEWLY_CREATED_KEY!r} or "
            f"{ALREADY_CERTIFIED_KEY!r}, got keys {sorted(payload)}"
        )
    try:
        if newly is not None:
            return NewlyCreated.model_validate(newly)
        return AlreadyCertified.model_validate(already)
    except ValidationError as e:
        raise UnexpectedResponseShape(f"malformed store result: {e}") from e


def parse_store_response(status: int, body: bytes) -> StoreResult:
    if not is_success(status):
        raise HttpError(status, excerpt(body))
    return store_result_from_json(_load_json_object(body))


def order_quilt_blobs(identifiers: Sequence[str], entries: Sequence[StoredQuiltBlob]) -> List[StoredQuiltBlob]:
    """Put returned patches back into submission order.

    Unique identifiers are matched by name. With duplicate identifiers there
    is nothing to match on, so the publisher's order is taken as-is.
    """
    if len(set(identifiers)) != len(identifiers):
        return list(entries)
    by_name = {e.identifier: e for e in entries}
    if len(by_name) != len(entries) or set(by_name) != set(identifiers):
        raise UnexpectedResponseShape(
            f"quilt patches {sorted(e.identifier for e in entries)} do not match submitted files {sorted(identifiers)}"
        )
    return [by_name[name] for name in identifiers]


def parse_quilt_store_response(status: int, body: bytes, identifiers: Sequence[str]) -> QuiltStoreResult:
    if not is_success(status):
        raise HttpError(status, excerpt(body))
    payload = _load_json_object(body)

    blob_payload = payload.get("blobStoreResult")
    if not isinstance(blob_payload, dict):
        raise UnexpectedResponseShape("quilt store response is missing 'blobStoreResult'")
    blob_result = store_result_from_json(blob_payload)

    raw_patches = payload.get("storedQuiltBlobs")
    if not isinstance(raw_patches, list):
        raise UnexpectedResponseShape("quilt store response is missing 'storedQuiltBlobs'")
    try:
        entries = [StoredQuiltBlob.model_validate(p) for p in raw_patches]
    except ValidationError as e:
        raise UnexpectedResponseShape(f"malformed stored quilt blob: {e}") from e

    if len(entries) != len(identifiers):
        raise QuiltPatchCountMismatch(expected=len(identifiers), actual=len(entries))

    return QuiltStoreResult(
        blob_store_result=blob_result,
        stored_quilt_blobs=order_quilt_blobs(identifiers, entries),
    )


def parse_read_response(status: int, body: bytes, url: Optional[str] = None) -> bytes:
    """2xx bodies are returned untouched; the caller decides how to decode them."""
    if is_success(status):
        return bytes(body)
    if status == 404:
        raise NotFound(url)
    raise HttpError(status, excerpt(body))


def parse_metadata_response(status: int, headers: Mapping[str, str], url: Optional[str] = None) -> BlobMetadata:
    if status == 404:
        raise NotFound(url)
    if not is_success(status):
        raise HttpError(status)

    lowered = {k.lower(): v for k, v in headers.items()}
    missing = [h for h in ("content-length", "content-type", "etag") if h not in lowered]
    if missing:
        raise UnexpectedResponseShape(f"metadata response is missing headers: {missing}")
    try:
        content_length = int(lowered["content-length"])
    except ValueError as e:
        raise UnexpectedResponseShape(f"invalid content-length {lowered['content-length']!r}") from e
    return BlobMetadata(
        content_length=content_length,
        content_type=lowered["content-type"],
        etag=lowered["etag"],
    )
