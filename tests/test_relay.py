"""Relay channel message handling and relay pool tests (no network)."""

import json

import pytest

from dvmbot.bus.events import JOB_REQUEST, TEXT_NOTE, Event
from dvmbot.bus.queue import EventBus
from dvmbot.channels.base import SeenCache
from dvmbot.channels.manager import RelayPool, build_filters, parse_public_keys
from dvmbot.channels.relay import Filter, RelayChannel
from dvmbot.config.schema import Config
from dvmbot.errors import TransportError


class FakeSocket:
    def __init__(self):
        self.sent: list = []

    async def send(self, raw: str) -> None:
        self.sent.append(json.loads(raw))

    async def close(self) -> None:
        pass


def _channel(bus, seen=None, url="wss://one.example"):
    return RelayChannel(url, [Filter(kinds=[JOB_REQUEST])], bus, seen=seen)


def _frame(channel, event: Event) -> str:
    return json.dumps(["EVENT", channel.subscription_id, event.to_dict()])


class TestFilter:

    def test_unset_fields_are_omitted(self):
        assert Filter(kinds=[1], limit=5).to_dict() == {"kinds": [1], "limit": 5}

    def test_build_filters(self):
        filters = build_filters(["p" * 64], ["a" * 64], since=100, history_limit=200, include_admin_dms=True)
        notes, requests, dms = (f.to_dict() for f in filters)
        assert notes == {"authors": ["p" * 64], "kinds": [TEXT_NOTE], "limit": 200}
        assert requests == {"kinds": [JOB_REQUEST], "since": 100}
        assert dms["authors"] == ["a" * 64]
        assert set(dms["kinds"]) == {4, 14}

    def test_no_peers_means_no_note_subscription(self):
        filters = build_filters([], ["a" * 64], since=1, history_limit=200)
        assert [f.kinds for f in filters] == [[JOB_REQUEST]]

    def test_invalid_keys_are_skipped(self, keys):
        assert parse_public_keys([keys.npub, "garbage"], "peer") == [keys.public_key]


class TestRelayMessages:

    @pytest.mark.asyncio
    async def test_valid_event_is_published(self, keys):
        bus = EventBus()
        channel = _channel(bus)
        event = keys.sign_event(TEXT_NOTE, "hi", created_at=5)

        await channel._handle_relay_message(_frame(channel, event))

        assert await bus.consume_inbound() == event

    @pytest.mark.asyncio
    async def test_forged_event_is_dropped(self, keys):
        bus = EventBus()
        channel = _channel(bus)
        event = keys.sign_event(TEXT_NOTE, "hi", created_at=5)
        forged = Event(**{**event.__dict__, "content": "changed"})

        await channel._handle_relay_message(_frame(channel, forged))

        assert bus.inbound_size == 0

    @pytest.mark.asyncio
    async def test_other_subscription_is_ignored(self, keys):
        bus = EventBus()
        channel = _channel(bus)
        event = keys.sign_event(TEXT_NOTE, "hi", created_at=5)

        await channel._handle_relay_message(json.dumps(["EVENT", "stale-sub", event.to_dict()]))

        assert bus.inbound_size == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [
        "not json",
        "{}",
        "[]",
        '["EVENT"]',
        '["EOSE", "sub"]',
        '["NOTICE", "slow down"]',
        '["OK", "abc", false, "blocked"]',
        '["CLOSED", "sub", "error"]',
        '["UNKNOWN"]',
    ])
    async def test_control_and_garbage_messages_publish_nothing(self, raw):
        bus = EventBus()
        await _channel(bus)._handle_relay_message(raw)
        assert bus.inbound_size == 0

    @pytest.mark.asyncio
    async def test_malformed_event_payload_is_dropped(self):
        bus = EventBus()
        channel = _channel(bus)
        await channel._handle_relay_message(json.dumps(["EVENT", channel.subscription_id, {"id": 1}]))
        assert bus.inbound_size == 0

    @pytest.mark.asyncio
    async def test_duplicates_across_relays_published_once(self, keys):
        bus = EventBus()
        seen = SeenCache()
        first = _channel(bus, seen, "wss://one.example")
        second = _channel(bus, seen, "wss://two.example")
        event = keys.sign_event(JOB_REQUEST, "", created_at=5)

        await first._handle_relay_message(_frame(first, event))
        await second._handle_relay_message(_frame(second, event))

        assert bus.inbound_size == 1

    @pytest.mark.asyncio
    async def test_request_replayed_after_reconnect_published_once(self, keys):
        """
        INVARIANT: a job request re-delivered after a reconnect is not
        published again, even when newer notes pushed it past the
        capacity of the seen cache.
        """
        bus = EventBus()
        channel = _channel(bus, SeenCache(capacity=2))
        request = keys.sign_event(JOB_REQUEST, "", created_at=5)

        await channel._handle_relay_message(_frame(channel, request))
        for n in range(3):
            note = keys.sign_event(TEXT_NOTE, f"note {n}", created_at=10 + n)
            await channel._handle_relay_message(_frame(channel, note))
        await channel._handle_relay_message(_frame(channel, request))

        published = [await bus.consume_inbound() for _ in range(bus.inbound_size)]
        assert [e.id for e in published].count(request.id) == 1
        assert len(published) == 4


class TestRelaySend:

    @pytest.mark.asyncio
    async def test_send_when_disconnected(self, keys):
        channel = _channel(EventBus())
        assert await channel.send(keys.sign_event(TEXT_NOTE, "x")) is False

    @pytest.mark.asyncio
    async def test_send_and_subscribe_frames(self, keys):
        channel = _channel(EventBus())
        channel._ws = FakeSocket()
        channel._connected = True

        await channel._subscribe()
        event = keys.sign_event(TEXT_NOTE, "x")
        assert await channel.send(event) is True

        req, published = channel._ws.sent
        assert req == ["REQ", channel.subscription_id, {"kinds": [JOB_REQUEST]}]
        assert published == ["EVENT", event.to_dict()]

    @pytest.mark.asyncio
    async def test_stop_closes_subscription(self):
        channel = _channel(EventBus())
        socket = FakeSocket()
        channel._ws = socket
        channel._connected = True

        await channel.stop()

        assert socket.sent == [["CLOSE", channel.subscription_id]]
        assert not channel.connected


class TestSeenCache:

    def test_forgets_oldest(self):
        seen = SeenCache(capacity=2)
        assert seen.add("a") and seen.add("b") and seen.add("c")
        assert "a" not in seen
        assert not seen.add("c")
        assert len(seen) == 2

    def test_pinned_ids_are_never_forgotten(self):
        seen = SeenCache(capacity=1)
        assert seen.add("request", pin=True)
        assert seen.add("a") and seen.add("b")
        assert "request" in seen
        assert "a" not in seen
        assert not seen.add("request")
        assert not seen.add("request", pin=True)


class TestRelayPool:

    def _pool(self, keys, relays=("wss://one.example", "wss://two.example")):
        config = Config()
        config.comms.relays = list(relays)
        config.comms.npubs = [keys.npub]
        config.comms.admins = ["nonsense"]
        return RelayPool(config, EventBus(), since=77)

    def test_channels_and_filters(self, keys):
        pool = self._pool(keys, ("wss://one.example", "wss://one.example", "wss://two.example"))
        assert list(pool.channels) == ["wss://one.example", "wss://two.example"]
        assert pool.peers == [keys.public_key]
        assert pool.admins == []
        assert pool.filters[1].since == 77
        assert all(c.seen is pool.seen for c in pool.channels.values())

    @pytest.mark.asyncio
    async def test_send_event_without_connections_raises(self, keys):
        pool = self._pool(keys)
        with pytest.raises(TransportError):
            await pool.send_event(keys.sign_event(TEXT_NOTE, "x"))

    @pytest.mark.asyncio
    async def test_send_event_broadcasts_to_connected(self, keys):
        pool = self._pool(keys)
        socket = FakeSocket()
        channel = pool.channels["wss://two.example"]
        channel._ws = socket
        channel._connected = True

        event = keys.sign_event(TEXT_NOTE, "x")
        await pool.send_event(event)

        assert socket.sent == [["EVENT", event.to_dict()]]
        assert pool.connected_relays == ["wss://two.example"]
        assert pool.get_status()["wss://one.example"] == {"running": False, "connected": False}

    @pytest.mark.asyncio
    async def test_wait_until_connected_times_out(self, keys):
        assert await self._pool(keys).wait_until_connected(timeout=0.05) is False
