from __future__ import annotations

from abc import ABC, abstractmethod

from .contracts import HttpRequestSpec, HttpResponse


class AsyncTransport(ABC):
    """Sends one request without blocking the event loop."""

    name: str = "async"

    @abstractmethod
    async def send(self, spec: HttpRequestSpec) -> HttpResponse: ...

    async def aclose(self) -> None:
        return None


class SyncTransport(ABC):
    """Sends one request, blocking the calling thread until the response is read."""

    name: str = "sync"

    @abstractmethod
    def send(self, spec: HttpRequestSpec) -> HttpResponse: ...

    def close(self) -> None:
        return None
