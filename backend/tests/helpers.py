import asyncio
from typing import Any, Dict, List, Optional

from relay.services.connection import PeerConnection

# Short enough that a few ticks fit in a test, long enough to stay deterministic
TEST_RETRY_INTERVAL_MS = 40


class FakeWebSocket:
    """Records what the relay sends; optionally starts failing after N sends."""

    def __init__(self, fail_after: Optional[int] = None):
        self.sent: List[Dict[str, Any]] = []
        self.fail_after = fail_after

    async def send_json(self, data: Dict[str, Any]):
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def signals(self) -> List[Dict[str, Any]]:
        return [m for m in self.sent if m.get("type") == "signal"]


class StalledWebSocket(FakeWebSocket):
    """A peer that never reads: every send waits until ``release`` is set."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()
        self.attempts = 0

    async def send_json(self, data: Dict[str, Any]):
        self.attempts += 1
        await self.release.wait()
        self.sent.append(data)


def make_peer(fail_after: Optional[int] = None) -> PeerConnection:
    return PeerConnection(FakeWebSocket(fail_after=fail_after))


def make_stalled_peer(send_timeout: float = 60.0) -> PeerConnection:
    return PeerConnection(StalledWebSocket(), send_timeout=send_timeout)


def signal(data: Any, from_user_id: str) -> Dict[str, Any]:
    return {"type": "signal", "data": data, "fromUserId": from_user_id}
