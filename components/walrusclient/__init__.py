from __future__ import annotations
from .contracts import *
from .errors import *
from .codec import QuiltPatchId, decode, decode_blob_id, encode
from .ports import AsyncTransport, SyncTransport
from .adapters.httpx_transport import HttpxAsyncTransport, HttpxSyncTransport
from .adapters.inmemory import InMemoryWalrusNetwork
from .client import BlockingWalrusClient, WalrusClient
from .service import WalrusService

from .config import WalrusSettings

def make_client_from_env(settings: WalrusSettings | None = None) -> WalrusClient:
    cfg = settings or WalrusSettings()
    return WalrusClient(
        cfg.WALRUS_AGGREGATOR_URL,
        cfg.WALRUS_PUBLISHER_URL,
        timeout=cfg.WALRUS_TIMEOUT_SECONDS,
        default_epochs=cfg.WALRUS_DEFAULT_EPOCHS,
    )

def make_blocking_client_from_env(settings: WalrusSettings | None = None) -> BlockingWalrusClient:
    cfg = settings or WalrusSettings()
    return BlockingWalrusClient(
        cfg.WALRUS_AGGREGATOR_URL,
        cfg.WALRUS_PUBLISHER_URL,
        timeout=cfg.WALRUS_TIMEOUT_SECONDS,
        default_epochs=cfg.WALRUS_DEFAULT_EPOCHS,
    )
