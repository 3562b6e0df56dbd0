"""Tests for the realtime broadcaster."""
import asyncio
import json

from hazardwatch.common.models import CitizenReportCreate, HazardType, Severity
from hazardwatch.realtime.broadcaster import RealtimeBroadcaster
from hazardwatch.storage.memory import MemoryStorage
from tests.conftest import FailingStatsStorage, RecordingConnection, SlowStatsStorage


async def open_connection(broadcaster, user_id=None, channels=()):
    """Connect, optionally authenticate and subscribe, then clear the handshake frames."""
    connection = RecordingConnection()
    connection_id = await broadcaster.connect(connection)
    if user_id is not None:
        await broadcaster.handle_message(connection_id, json.dumps({"type": "authenticate", "userId": user_id}))
    for channel in channels:
        await broadcaster.handle_message(connection_id, json.dumps({"type": "subscribe", "channel": channel}))
    connection.frames.clear()
    return connection_id, connection


def test_connect_sends_connected_message():
    async def scenario():
        broadcaster = RealtimeBroadcaster(MemoryStorage())
        connection = RecordingConnection()
        await broadcaster.connect(connection)
        return broadcaster, connection

    broadcaster, connection = asyncio.run(scenario())

    assert broadcaster.get_connected_count() == 1
    message = connection.messages[0]
    assert message["type"] == "connected"
    assert isinstance(message["timestamp"], int)


def test_control_message_replies():
    async def scenario():
        broadcaster = RealtimeBroadcaster(MemoryStorage())
        connection = RecordingConnection()
        connection_id = await broadcaster.connect(connection)
        for message in (
            {"type": "authenticate", "userId": "analyst-1"},
            {"type": "subscribe", "channel": "dashboard"},
            {"type": "unsubscribe", "channel": "dashboard"},
            {"type": "heartbeat"},
        ):
            await broadcaster.handle_message(connection_id, json.dumps(message))
        return connection

    messages = asyncio.run(scenario()).messages

    assert messages[1] == {"type": "authenticated", "success": True}
    assert messages[2] == {"type": "subscribed", "channel": "dashboard"}
    assert messages[3] == {"type": "unsubscribed", "channel": "dashboard"}
    assert messages[4]["type"] == "heartbeat"
    assert isinstance(messages[4]["timestamp"], int)


def test_bad_messages_get_error_reply_and_keep_connection():
    async def scenario():
        broadcaster = RealtimeBroadcaster(MemoryStorage())
        connection_id, connection = await open_connection(broadcaster, user_id="u1")
        for raw in ("not json", "[1, 2]", json.dumps({"type": "dance"}), json.dumps({"type": "subscribe"})):
            await broadcaster.handle_message(connection_id, raw)
        return broadcaster, connection

    broadcaster, connection = asyncio.run(scenario())

    assert connection.types() == ["error", "error", "error", "error"]
    assert connection.messages[2]["message"] == "Unknown message type: dance"
    assert broadcaster.get_connected_count() == 1


def test_subscribe_before_authentication_is_ignored():
    async def scenario():
        broadcaster = RealtimeBroadcaster(MemoryStorage())
        connection = RecordingConnection()
        connection_id = await broadcaster.connect(connection)
        await broadcaster.handle_message(connection_id, json.dumps({"type": "subscribe", "channel": "dashboard"}))
        await broadcaster.handle_message(connection_id, json.dumps({"type": "authenticate", "userId": "u1"}))
        delivered = await broadcaster.broadcast({"type": "stats_update"}, "dashboard")
        return delivered, connection

    delivered, connection = asyncio.run(scenario())

    assert delivered == 0
    assert connection.types() == ["connected", "authenticated"]


def test_unauthenticated_connection_receives_nothing():
    async def scenario():
        broadcaster = RealtimeBroadcaster(MemoryStorage())
        _, connection = await open_connection(broadcaster, channels=("dashboard",))
        await broadcaster.broadcast({"type": "stats_update"}, "dashboard")
        await broadcaster.broadcast({"type": "emergency_alert"})
        await broadcaster.broadcast_to_user("u1", {"type": "notification"})
        await broadcaster.send_heartbeat()
        return connection

    assert asyncio.run(scenario()).frames == []


def test_channel_broadcast_reaches_only_authenticated_subscribers():
    async def scenario():
        broadcaster = RealtimeBroadcaster(MemoryStorage())
        _, a = await open_connection(broadcaster, user_id="a", channels=("dashboard",))
        _, b = await open_connection(broadcaster, user_id="b", channels=("activity",))
        _, c = await open_connection(broadcaster)
        delivered = await broadcaster.broadcast({"type": "stats_update"}, "dashboard")
        return delivered, a, b, c

    delivered, a, b, c = asyncio.run(scenario())

    assert delivered == 1
    assert a.types() == ["stats_update"]
    assert b.frames == []
    assert c.frames == []


def test_broadcast_without_channel_reaches_all_authenticated():
    async def scenario():
        broadcaster = RealtimeBroadcaster(MemoryStorage())
        _, a = await open_connection(broadcaster, user_id="a")
        _, b = await open_connection(broadcaster, user_id="b", channels=("activity",))
        _, c = await open_connection(broadcaster)
        delivered = await broadcaster.broadcast({"type": "emergency_alert", "message": "evacuate"})
        return delivered, a, b, c

    delivered, a, b, c = asyncio.run(scenario())

    assert delivered == 2
    assert a.messages == [{"type": "emergency_alert", "message": "evacuate"}]
    assert b.types() == ["emergency_alert"]
    assert c.frames == []


def test_broadcast_to_user():
    async def scenario():
        broadcaster = RealtimeBroadcaster(MemoryStorage())
        _, first = await open_connection(broadcaster, user_id="u1")
        _, second = await open_connection(broadcaster, user_id="u1")
        _, other = await open_connection(broadcaster, user_id="u2")
        delivered = await broadcaster.broadcast_to_user("u1", {"type": "notification"})
        return delivered, first, second, other

    delivered, first, second, other = asyncio.run(scenario())

    assert delivered == 2
    assert first.types() == ["notification"]
    assert second.types() == ["notification"]
    assert other.frames == []


def test_failed_send_drops_connection_without_blocking_others():
    async def scenario():
        broadcaster = RealtimeBroadcaster(MemoryStorage())
        _, dead = await open_connection(broadcaster, user_id="dead")
        _, alive = await open_connection(broadcaster, user_id="alive")
        dead.fail = True
        delivered = await broadcaster.send_heartbeat()
        again = await broadcaster.send_heartbeat()
        return broadcaster, delivered, again, alive

    broadcaster, delivered, again, alive = asyncio.run(scenario())

    assert delivered == 1
    assert again == 1
    assert broadcaster.get_connected_count() == 1
    assert alive.types() == ["heartbeat", "heartbeat"]


def test_disconnect_is_idempotent():
    async def scenario():
        broadcaster = RealtimeBroadcaster(MemoryStorage())
        connection_id, connection = await open_connection(broadcaster, user_id="u1")
        broadcaster.disconnect(connection_id)
        broadcaster.disconnect(connection_id)
        await broadcaster.handle_message(connection_id, json.dumps({"type": "heartbeat"}))
        delivered = await broadcaster.broadcast({"type": "heartbeat"})
        return broadcaster, delivered, connection

    broadcaster, delivered, connection = asyncio.run(scenario())

    assert broadcaster.get_connected_count() == 0
    assert delivered == 0
    assert connection.frames == []


def test_push_snapshot_sends_stats_and_activity_to_their_channels():
    async def scenario():
        storage = MemoryStorage()
        await storage.create_citizen_report(CitizenReportCreate(
            hazard_type=HazardType.HIGH_WAVES,
            severity=Severity.HIGH,
            description="Waves crossing the sea wall",
            latitude=19.07,
            longitude=72.87,
            location="Marine Drive",
        ))
        broadcaster = RealtimeBroadcaster(storage)
        _, dashboard = await open_connection(broadcaster, user_id="a", channels=("dashboard",))
        _, activity = await open_connection(broadcaster, user_id="b", channels=("activity",))
        pushed = await broadcaster.push_snapshot()
        return pushed, dashboard, activity

    pushed, dashboard, activity = asyncio.run(scenario())

    assert pushed is True
    [stats] = dashboard.messages
    assert stats["type"] == "stats_update"
    assert stats["data"]["today_reports"] == 1
    [update] = activity.messages
    assert update["type"] == "activity_update"
    assert update["data"][0]["type"] == "report"
    assert update["data"][0]["title"] == "high_waves reported in Marine Drive"


def test_push_snapshot_storage_failure_sends_nothing():
    async def scenario():
        storage = FailingStatsStorage()
        broadcaster = RealtimeBroadcaster(storage)
        _, connection = await open_connection(broadcaster, user_id="a", channels=("dashboard", "activity"))
        pushed = await broadcaster.push_snapshot()
        return pushed, connection

    pushed, connection = asyncio.run(scenario())

    assert pushed is False
    assert connection.frames == []


def test_overlapping_snapshot_is_skipped():
    async def scenario():
        storage = SlowStatsStorage()
        broadcaster = RealtimeBroadcaster(storage)
        first = asyncio.create_task(broadcaster.push_snapshot())
        await asyncio.sleep(0)
        second = await broadcaster.push_snapshot()
        storage.release.set()
        return await first, second

    first, second = asyncio.run(scenario())

    assert first is True
    assert second is False


def test_periodic_snapshot_survives_storage_failures():
    storage = FailingStatsStorage()

    async def scenario():
        broadcaster = RealtimeBroadcaster(storage, stats_interval=0.01, heartbeat_interval=60)
        _, connection = await open_connection(broadcaster, user_id="a", channels=("dashboard", "activity"))
        broadcaster.start()
        await asyncio.sleep(0.15)
        running = broadcaster.running
        await broadcaster.stop()
        return connection, running, broadcaster.running

    connection, running, still_running = asyncio.run(scenario())

    assert storage.stats_calls >= 2
    assert connection.frames == []
    assert running is True
    assert still_running is False


def test_periodic_heartbeat_reaches_authenticated_connections():
    async def scenario():
        broadcaster = RealtimeBroadcaster(MemoryStorage(), stats_interval=60, heartbeat_interval=0.01)
        _, authenticated = await open_connection(broadcaster, user_id="a")
        _, anonymous = await open_connection(broadcaster)
        broadcaster.start()
        await asyncio.sleep(0.05)
        await broadcaster.stop()
        return authenticated, anonymous

    authenticated, anonymous = asyncio.run(scenario())

    assert authenticated.types()
    assert set(authenticated.types()) == {"heartbeat"}
    assert anonymous.frames == []


def test_dropped_connection_is_no_longer_registered():
    async def scenario():
        broadcaster = RealtimeBroadcaster(MemoryStorage())
        connection_id, connection = await open_connection(broadcaster, user_id="u1")
        registered = broadcaster.is_connected(connection_id)
        connection.fail = True
        await broadcaster.send_heartbeat()
        return broadcaster, connection_id, registered

    broadcaster, connection_id, registered = asyncio.run(scenario())

    assert registered
    assert not broadcaster.is_connected(connection_id)
