from .httpx_transport import HttpxAsyncTransport, HttpxSyncTransport
from .inmemory import InMemoryAsyncTransport, InMemorySyncTransport, InMemoryWalrusNetwork
