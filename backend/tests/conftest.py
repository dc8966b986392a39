import sys
from pathlib import Path

import pytest

# Add project root (2 levels up from tests/) to sys.path so tests can import 'relay'
root = Path(__file__).resolve().parents[1]
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from relay.services.signaling import SignalRouter
from tests.helpers import TEST_RETRY_INTERVAL_MS


@pytest.fixture
async def router():
    """A fresh router with a short retry interval; retries are stopped afterwards."""
    signal_router = SignalRouter(retry_interval_ms=TEST_RETRY_INTERVAL_MS)
    yield signal_router
    await signal_router.shutdown()
