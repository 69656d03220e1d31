from __future__ import annotations

from typing import Optional


class WalrusError(RuntimeError):
    """Base class for walrus client errors."""


class InvalidConfiguration(WalrusError):
    """Malformed base URL or conflicting store options."""


class EmptyQuiltInput(WalrusError):
    """A quilt store was requested with no files."""

    def __init__(self) -> None:
        super().__init__("quilt store requires at least one file")


class InvalidQuiltMetadata(WalrusError):
    """Unusable quilt file identifier (empty, non-string or the reserved `_metadata` part name) or
    metadata that references identifiers not part of the upload."""


class InvalidIdentifier(WalrusError):
    """Identifier string is not a valid blob id or quilt patch id."""

    def __init__(self, value: str, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"invalid identifier {value!r}: {reason}")


class HttpError(WalrusError):
    """Non-2xx response from the aggregator or publisher."""

    def __init__(self, status: int, excerpt: str = ""):
        self.status = status
        self.excerpt = excerpt
        msg = f"HTTP {status}"
        if excerpt:
            msg += f": {excerpt}"
        super().__init__(msg)


class NotFound(WalrusError):
    """Aggregator answered 404 for a read."""

    def __init__(self, url: Optional[str] = None):
        self.url = url
        super().__init__(f"not found: {url}" if url else "not found")


class UnexpectedResponseShape(WalrusError):
    """2xx body that matches none (or more than one) of the known shapes."""


class QuiltPatchCountMismatch(WalrusError):
    """Publisher returned a patch list whose length differs from the file count."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"expected {expected} quilt patches, got {actual}")


class TransportError(WalrusError):
    """Underlying network or timeout failure; the httpx exception is chained as __cause__."""
