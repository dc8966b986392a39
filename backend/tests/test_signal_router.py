import asyncio

import pytest

from relay.services.signaling import (
    ROUTE_BROADCAST,
    ROUTE_BUFFERED,
    ROUTE_CONFLICT,
    ROUTE_DIRECT,
    ROUTE_DROPPED,
    ROUTE_SUPPRESSED,
    SignalRouter,
)
from tests.helpers import TEST_RETRY_INTERVAL_MS, make_peer, make_stalled_peer, signal

INTERVAL_SEC = TEST_RETRY_INTERVAL_MS / 1000


async def connect(router, user_id=None, role=None, conn=None, **kwargs):
    conn = conn or make_peer(**kwargs)
    await router.connect(conn)
    if user_id:
        assert await router.register(conn, user_id, role)
    return conn


@pytest.mark.asyncio
async def test_caller_admin_handshake(router):
    caller = await connect(router, "c1", "caller")
    admin1 = await connect(router, "a1", "admin")

    assert await router.route_signal(caller, {"sdp": "offer"}) == ROUTE_BROADCAST
    assert admin1.websocket.signals()[0] == signal({"sdp": "offer"}, "c1")

    assert await router.route_signal(admin1, {"sdp": "answer"}, target_user_id="c1") == ROUTE_DIRECT
    assert caller.websocket.sent == [signal({"sdp": "answer"}, "a1")]
    assert not router.pending.has_retry("c1")

    admin2 = await connect(router, "a2", "admin")
    assert await router.route_signal(admin2, "hijack", target_user_id="c1") == ROUTE_CONFLICT
    assert caller.websocket.sent == [signal({"sdp": "answer"}, "a1")]
    assert router.bindings.admin_for("c1") is admin1


@pytest.mark.asyncio
async def test_unknown_sender_is_dropped(router):
    stranger = await connect(router)
    admin = await connect(router, "a1", "admin")
    before = router.get_stats()

    assert await router.route_signal(stranger, "hello") == ROUTE_DROPPED
    assert await router.route_signal(stranger, "hello", target_user_id="c1") == ROUTE_DROPPED

    assert router.get_stats() == before
    assert admin.websocket.sent == []


@pytest.mark.asyncio
async def test_repeated_broadcasts_keep_one_retry(router):
    caller = await connect(router, "c1", "caller")
    admin = await connect(router, "a1", "admin")

    outcomes = [await router.route_signal(caller, f"offer-{i}") for i in range(5)]

    assert outcomes == [ROUTE_BROADCAST] + [ROUTE_SUPPRESSED] * 4
    assert router.pending.get_active_retry_count() == 1
    # Only the first payload is ever re-broadcast
    assert {m["data"] for m in admin.websocket.signals()} == {"offer-0"}


@pytest.mark.asyncio
async def test_retry_reaches_admin_that_registers_later(router):
    caller = await connect(router, "c1", "caller")

    assert await router.route_signal(caller, "offer") == ROUTE_BROADCAST
    admin = await connect(router, "a1", "admin")
    await asyncio.sleep(INTERVAL_SEC * 2.5)

    assert signal("offer", "c1") in admin.websocket.signals()


@pytest.mark.asyncio
async def test_binding_stops_retry_broadcast(router):
    caller = await connect(router, "c1", "caller")
    admin = await connect(router, "a1", "admin")
    await router.route_signal(caller, "offer")

    await router.route_signal(admin, "answer", target_user_id="c1")
    received = len(admin.websocket.signals())
    await asyncio.sleep(INTERVAL_SEC * 3)

    assert len(admin.websocket.signals()) == received
    assert router.pending.get_active_retry_count() == 0


@pytest.mark.asyncio
async def test_bound_caller_broadcast_is_ignored(router):
    caller = await connect(router, "c1", "caller")
    admin = await connect(router, "a1", "admin")
    await router.route_signal(admin, "answer", target_user_id="c1")

    assert await router.route_signal(caller, "offer") == ROUTE_SUPPRESSED
    assert admin.websocket.signals() == []


@pytest.mark.asyncio
async def test_reply_to_offline_caller_is_buffered_until_register(router):
    admin = await connect(router, "a1", "admin")

    for payload in ("P1", "P2", "P3"):
        assert await router.route_signal(admin, payload, target_user_id="c1") == ROUTE_BUFFERED

    caller = await connect(router, "c1", "caller")

    assert caller.websocket.sent == [signal("P1", "a1"), signal("P2", "a1"), signal("P3", "a1")]
    assert router.pending.pending_for("c1") == []


@pytest.mark.asyncio
async def test_reply_uses_explicit_from_user_id(router):
    caller = await connect(router, "c1", "caller")
    unregistered_admin = await connect(router)

    outcome = await router.route_signal(
        unregistered_admin, "answer", target_user_id="c1", from_user_id="desk-7"
    )

    assert outcome == ROUTE_DIRECT
    assert caller.websocket.sent == [signal("answer", "desk-7")]


@pytest.mark.asyncio
async def test_failed_direct_delivery_is_buffered(router):
    caller = await connect(router, "c1", "caller", fail_after=0)
    admin = await connect(router, "a1", "admin")

    await router.route_signal(admin, "answer", target_user_id="c1")

    assert [p.data for p in router.pending.pending_for("c1")] == ["answer"]
    assert not caller.is_open


@pytest.mark.asyncio
async def test_replies_after_failed_send_stay_in_order(router):
    caller = await connect(router, "c1", "caller", fail_after=0)
    admin = await connect(router, "a1", "admin")

    await router.route_signal(admin, "answer", target_user_id="c1")
    # The dead connection is no longer a delivery target
    assert await router.route_signal(admin, "candidate", target_user_id="c1") == ROUTE_BUFFERED
    assert caller.websocket.sent == []

    await router.disconnect(caller)
    fresh = await connect(router, "c1", "caller")

    assert fresh.websocket.sent == [signal("answer", "a1"), signal("candidate", "a1")]


@pytest.mark.asyncio
async def test_interrupted_flush_keeps_remaining_payloads(router):
    admin = await connect(router, "a1", "admin")
    for payload in ("P1", "P2", "P3"):
        await router.route_signal(admin, payload, target_user_id="c1")

    caller = await connect(router, "c1", "caller", fail_after=1)

    assert caller.websocket.sent == [signal("P1", "a1")]
    assert [p.data for p in router.pending.pending_for("c1")] == ["P2", "P3"]


@pytest.mark.asyncio
async def test_stalled_admin_does_not_block_other_peers(router):
    stalled = make_stalled_peer()
    await connect(router, "a1", "admin", conn=stalled)
    caller = await connect(router, "c1", "caller")

    broadcast = asyncio.create_task(router.route_signal(caller, "offer"))
    await asyncio.sleep(0.01)
    assert stalled.websocket.attempts == 1

    other = make_peer()
    await router.connect(other)
    assert await asyncio.wait_for(router.register(other, "c2", "caller"), timeout=1.0)

    admin2 = await connect(router, "a2", "admin")
    reply = router.route_signal(admin2, "answer", target_user_id="c2")
    assert await asyncio.wait_for(reply, timeout=1.0) == ROUTE_DIRECT
    assert other.websocket.sent == [signal("answer", "a2")]

    stalled.websocket.release.set()
    assert await asyncio.wait_for(broadcast, timeout=1.0) == ROUTE_BROADCAST
    assert stalled.websocket.sent[0] == signal("offer", "c1")


@pytest.mark.asyncio
async def test_stalled_admin_does_not_block_disconnect(router):
    stalled = make_stalled_peer()
    await connect(router, "a1", "admin", conn=stalled)
    caller = await connect(router, "c1", "caller")
    broadcast = asyncio.create_task(router.route_signal(caller, "offer"))
    await asyncio.sleep(0.01)

    assert await asyncio.wait_for(router.disconnect(caller), timeout=1.0) == "c1"

    broadcast.cancel()
    await asyncio.gather(broadcast, return_exceptions=True)



@pytest.mark.asyncio
async def test_admin_disconnect_releases_only_its_callers(router):
    admin_a = await connect(router, "a", "admin")
    admin_b = await connect(router, "b", "admin")
    for caller_id in ("x", "y"):
        await router.route_signal(admin_a, "answer", target_user_id=caller_id)
    await router.route_signal(admin_b, "answer", target_user_id="z")

    assert await router.disconnect(admin_a) == "a"

    assert not router.bindings.is_bound("x")
    assert not router.bindings.is_bound("y")
    assert router.bindings.admin_for("z") is admin_b
    assert router.registry.admin_connections() == [admin_b]
    assert await router.route_signal(admin_b, "answer", target_user_id="x") == ROUTE_BUFFERED


@pytest.mark.asyncio
async def test_caller_disconnect_keeps_retry_running(router):
    caller = await connect(router, "c1", "caller")
    await router.route_signal(caller, "offer")

    await router.disconnect(caller)

    assert router.pending.has_retry("c1")
    assert router.registry.lookup_connection("c1") is None


@pytest.mark.asyncio
async def test_caller_disconnect_can_cancel_retry():
    router = SignalRouter(retry_interval_ms=TEST_RETRY_INTERVAL_MS, cancel_retry_on_caller_disconnect=True)
    caller = await connect(router, "c1", "caller")
    await router.route_signal(caller, "offer")

    await router.disconnect(caller)

    assert not router.pending.has_retry("c1")
    await router.shutdown()


@pytest.mark.asyncio
async def test_invalid_registration_changes_nothing(router):
    conn = await connect(router)

    assert not await router.register(conn, "c1", None)
    assert not await router.register(conn, None, "admin")

    assert router.registry.lookup_identity(conn) is None
    assert router.registry.get_admin_count() == 0


@pytest.mark.asyncio
async def test_disconnect_marks_connection_closed(router):
    caller = await connect(router, "c1", "caller")

    await router.disconnect(caller)

    assert not caller.is_open
    assert router.get_stats()["total_connections"] == 0
