from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, constr, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .codec import QuiltPatchId

# ---------- Unified Wire Format (UWF) ----------

class ErrorPayload(BaseModel):
    type: Literal["VALIDATION", "NOT_FOUND", "UPSTREAM", "INTERNAL"]
    code: constr(strip_whitespace=True, min_length=1)
    message: constr(strip_whitespace=True, min_length=1)
    details: Optional[Dict[str, Any]] = None

class MetaPayload(BaseModel):
    trace_id: Optional[str] = None
    request_id: Optional[str] = None
    operation: Optional[str] = None
    duration_ms: Optional[int] = None
    transport: Optional[str] = None

class UWFResponse(BaseModel):
    ok: bool
    result: Optional[Any] = None
    error: Optional[ErrorPayload] = None
    meta: MetaPayload = Field(default_factory=MetaPayload)

# ---------- Network models (camelCase on the wire) ----------

class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

class StorageInfo(WireModel):
    id: str
    start_epoch: int
    end_epoch: int
    storage_size: int

class BlobObject(WireModel):
    id: str
    registered_epoch: int
    blob_id: str
    size: int
    encoding_type: str
    certified_epoch: Optional[int] = None
    storage: StorageInfo
    deletable: bool

class RegisterFromScratch(WireModel):
    encoded_length: int
    epochs_ahead: int

class ResourceOperation(WireModel):
    # the publisher may also report reuse operations; keep them as extra fields
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="allow")

    register_from_scratch: Optional[RegisterFromScratch] = None

class NewlyCreated(WireModel):
    """Fresh storage was registered and the blob certified."""

    kind: Literal["newlyCreated"] = "newlyCreated"
    blob_object: BlobObject
    resource_operation: ResourceOperation
    cost: Optional[int] = None

    @property
    def blob_id(self) -> str:
        return self.blob_object.blob_id

    @property
    def end_epoch(self) -> int:
        return self.blob_object.storage.end_epoch

class Event(WireModel):
    tx_digest: str
    event_seq: str

class AlreadyCertified(WireModel):
    """Identical content was already certified; nothing new was stored."""

    kind: Literal["alreadyCertified"] = "alreadyCertified"
    blob_id: str
    event: Optional[Event] = None
    object: Optional[str] = None
    end_epoch: int

    @model_validator(mode="after")
    def exactly_one_of_event_or_object(self) -> "AlreadyCertified":
        if (self.event is None) == (self.object is None):
            raise ValueError("alreadyCertified must carry exactly one of 'event' or 'object'")
        return self

StoreResult = Annotated[Union[NewlyCreated, AlreadyCertified], Field(discriminator="kind")]

class StoredQuiltBlob(WireModel):
    identifier: str
    quilt_patch_id: str

    @property
    def patch_id(self) -> QuiltPatchId:
        return QuiltPatchId.parse(self.quilt_patch_id)

class QuiltStoreResult(WireModel):
    blob_store_result: StoreResult
    stored_quilt_blobs: List[StoredQuiltBlob]

class QuiltMetadata(BaseModel):
    identifier: constr(min_length=1)
    tags: Dict[str, str] = Field(default_factory=dict)

class BlobMetadata(BaseModel):
    content_length: int
    content_type: str
    etag: str

# ---------- Request side ----------

class StoreOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    epochs: Optional[PositiveInt] = None
    deletable: Optional[bool] = None
    permanent: Optional[bool] = None
    send_object_to: Optional[constr(strip_whitespace=True, min_length=1)] = None
    force: Optional[bool] = None

class MultipartPart(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    content: bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None

class HttpRequestSpec(BaseModel):
    """Transport-independent description of one HTTP request."""

    model_config = ConfigDict(frozen=True)

    method: Literal["GET", "HEAD", "PUT"]
    url: str
    params: Tuple[Tuple[str, str], ...] = ()
    headers: Tuple[Tuple[str, str], ...] = ()
    content: Optional[bytes] = None
    files: Tuple[MultipartPart, ...] = ()

class HttpResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status_code: int
    headers: Dict[str, str] = Field(default_factory=dict)
    content: bytes = b""

    @field_validator("headers")
    @classmethod
    def lower_header_names(cls, v: Dict[str, str]) -> Dict[str, str]:
        return {k.lower(): val for k, val in v.items()}

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())
