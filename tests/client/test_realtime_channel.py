import asyncio
import json

from chore_cycle.client.realtime import ChannelState, Credentials, RealtimeChannel
from chore_cycle.models.events import WILDCARD, EventType, QueueAdvanced

from fakes import FakeTransport, TransportFactory

CHORE = {"id": "c1", "name": "Dishes", "owner_id": "me", "shared_with": [], "people": [], "current_person_index": 0}


def make_channel(factory, **kwargs):
    kwargs.setdefault("base_delay", 0)
    kwargs.setdefault("max_reconnect_attempts", 3)
    kwargs.setdefault("handshake_timeout", 1)
    return RealtimeChannel(transport_factory=factory, **kwargs)


async def settle():
    for _ in range(20):
        await asyncio.sleep(0)


class TestHandshake:
    async def test_authenticates_after_open(self):
        transport = FakeTransport([{"type": "auth_success"}])
        channel = make_channel(TransportFactory(transport))

        ready = await channel.connect("ws://test/ws", Credentials(token="t", user_id="me"))

        assert ready
        assert channel.state is ChannelState.OPEN
        assert channel.is_authenticated
        assert transport.sent == [{"type": "auth", "token": "t", "user_id": "me"}]
        await channel.disconnect()

    async def test_auth_failed_leaves_channel_open_but_unauthenticated(self):
        transport = FakeTransport([{"type": "auth_failed"}])
        channel = make_channel(TransportFactory(transport))

        ready = await channel.connect("ws://test/ws", Credentials(token="bad", user_id="me"))

        assert not ready
        assert channel.state is ChannelState.OPEN
        assert not channel.is_authenticated
        await channel.disconnect()

    async def test_no_credentials_is_ready_immediately(self):
        transport = FakeTransport()
        channel = make_channel(TransportFactory(transport))

        assert await channel.connect("ws://test/ws")
        assert transport.sent == [{"type": "ping"}]
        await channel.disconnect()

    async def test_connect_replaces_previous_transport(self):
        first, second = FakeTransport(), FakeTransport()
        channel = make_channel(TransportFactory(first, second))
        calls = []
        channel.on(EventType.QUEUE_ADVANCED, calls.append)

        await channel.connect("ws://test/ws")
        await channel.connect("ws://test/ws")

        assert first.closed
        assert not second.closed
        assert channel.listener_count(EventType.QUEUE_ADVANCED) == 1
        await channel.disconnect()


class TestDispatch:
    def test_typed_handlers_in_order_then_wildcard(self):
        channel = make_channel(TransportFactory())
        seen = []
        channel.on(EventType.QUEUE_ADVANCED, lambda event: seen.append(("first", type(event))))
        channel.on("queue_advanced", lambda event: seen.append(("second", type(event))))
        channel.on(WILDCARD, lambda message: seen.append(("wildcard", message["type"])))

        channel.handle_raw('{"type": "queue_advanced", "chore_id": "c1", "chore": %s}' % json.dumps(CHORE))

        assert seen == [
            ("first", QueueAdvanced),
            ("second", QueueAdvanced),
            ("wildcard", "queue_advanced"),
        ]

    def test_malformed_payloads_are_dropped(self):
        channel = make_channel(TransportFactory())
        seen = []
        channel.on(WILDCARD, seen.append)
        channel.on(EventType.QUEUE_ADVANCED, seen.append)

        channel.handle_raw("{oops")
        channel.handle_raw("[1, 2, 3]")
        channel.handle_raw('{"type": "queue_advanced", "chore_id": "c1"}')
        channel.handle_raw('{"type": []}')
        channel.handle_raw('{"type": {}}')
        channel.handle_raw('{"chore_id": "c1"}')

        assert seen == []

    async def test_bad_frame_does_not_end_the_connection(self):
        transport = FakeTransport([{"type": "auth_success"}, {"type": []}, {"type": "pong"}])
        channel = make_channel(TransportFactory(transport))
        seen = []
        channel.on(WILDCARD, seen.append)

        assert await channel.connect("ws://test/ws", Credentials(token="t", user_id="me"))
        await settle()

        assert seen == [{"type": "auth_success"}, {"type": "pong"}]
        assert channel.state is ChannelState.OPEN
        assert not transport.closed
        assert not channel._run_task.done()
        await channel.disconnect()

    def test_unknown_types_reach_only_the_wildcard(self):
        channel = make_channel(TransportFactory())
        seen = []
        channel.on(WILDCARD, seen.append)

        channel.handle_raw('{"type": "pong"}')

        assert seen == [{"type": "pong"}]

    def test_failing_handler_does_not_block_others(self):
        channel = make_channel(TransportFactory())
        seen, failures = [], []

        def broken(event):
            raise RuntimeError("boom")

        channel.on(EventType.CHORE_DELETED, broken)
        channel.on(EventType.CHORE_DELETED, lambda event: seen.append(event.chore_id))
        channel.on_error(failures.append)

        channel.handle_raw('{"type": "chore_deleted", "chore_id": "c1"}')

        assert seen == ["c1"]
        assert len(failures) == 1
        assert failures[0].event_type == "chore_deleted"
        assert failures[0].handler is broken
        assert isinstance(failures[0].error, RuntimeError)

    def test_off_removes_bound_methods(self):
        channel = make_channel(TransportFactory())

        class Listener:
            def __init__(self):
                self.seen = []

            def handle(self, event):
                self.seen.append(event)

        listener = Listener()
        channel.on(EventType.CHORE_DELETED, listener.handle)
        channel.off(EventType.CHORE_DELETED, listener.handle)
        channel.handle_raw('{"type": "chore_deleted", "chore_id": "c1"}')

        assert listener.seen == []


class TestReconnect:
    def test_linear_backoff(self):
        channel = make_channel(TransportFactory(), base_delay=1.5)
        assert [channel.reconnect_delay(n) for n in (1, 2, 3)] == [1.5, 3.0, 4.5]

    async def test_gives_up_after_max_attempts(self):
        factory = TransportFactory()
        channel = make_channel(factory, max_reconnect_attempts=3)

        assert not await channel.connect("ws://test/ws")
        await channel.wait_closed()

        # one initial try plus three retries, then nothing more
        assert len(factory.calls) == 4
        assert channel.reconnect_attempts == 3
        assert channel.state is ChannelState.DISCONNECTED
        await settle()
        assert len(factory.calls) == 4

    async def test_connect_again_after_giving_up(self):
        factory = TransportFactory()
        channel = make_channel(factory, max_reconnect_attempts=1)
        await channel.connect("ws://test/ws")
        await channel.wait_closed()

        factory.transports.append(FakeTransport())
        assert await channel.connect("ws://test/ws")
        assert channel.reconnect_attempts == 0
        await channel.disconnect()

    async def test_reconnects_with_same_credentials_after_drop(self):
        first = FakeTransport([{"type": "auth_success"}])
        second = FakeTransport([{"type": "auth_success"}])
        channel = make_channel(TransportFactory(first, second))
        credentials = Credentials(token="t", user_id="me")
        await channel.connect("ws://test/ws", credentials)

        first.drop()
        await settle()

        assert second.sent == [{"type": "auth", "token": "t", "user_id": "me"}]
        assert channel.is_authenticated
        assert channel.reconnect_attempts == 0
        await channel.disconnect()

    async def test_disconnect_stops_reconnecting_and_clears_listeners(self):
        transport = FakeTransport()
        factory = TransportFactory(transport)
        channel = make_channel(factory)
        channel.on(EventType.CHORE_DELETED, lambda event: None)
        await channel.connect("ws://test/ws")

        await channel.disconnect()
        await channel.disconnect()
        await settle()

        assert transport.closed
        assert len(factory.calls) == 1
        assert not channel.reconnect_enabled
        assert channel.listener_count(EventType.CHORE_DELETED) == 0

    async def test_send_when_closed_is_dropped(self):
        channel = make_channel(TransportFactory())
        assert not await channel.ping()
