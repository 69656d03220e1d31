from pathlib import Path
import sys

import pytest

# Ensure project root is on sys.path before tests import modules
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from components.walrusclient.adapters.inmemory import InMemoryWalrusNetwork  # noqa: E402
from components.walrusclient.client import BlockingWalrusClient, WalrusClient  # noqa: E402

AGGREGATOR = "https://aggregator.test"
PUBLISHER = "https://publisher.test"


@pytest.fixture
def network():
    return InMemoryWalrusNetwork(current_epoch=10)


@pytest.fixture
def blocking_client(network):
    return BlockingWalrusClient(AGGREGATOR, PUBLISHER, transport=network.sync_transport())


@pytest.fixture
def async_client(network):
    return WalrusClient(AGGREGATOR, PUBLISHER, transport=network.async_transport())
