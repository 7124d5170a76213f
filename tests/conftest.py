"""Shared fixtures for the dvmbot test suite."""

import pytest

from dvmbot.bus.events import JOB_REQUEST, TEXT_NOTE, Event
from dvmbot.identity.keys import Keys


class RecordingTransport:
    """Collects broadcast events; can be told to fail."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[Event] = []

    async def send_event(self, event: Event) -> None:
        if self.fail:
            raise ConnectionError("relay unreachable")
        self.sent.append(event)


def make_event(event_id: str, created_at: int = 0, kind: int = TEXT_NOTE, pubkey: str = "a" * 64) -> Event:
    """Unsigned event with an arbitrary id, for buffer and routing tests."""
    return Event(id=event_id, pubkey=pubkey, created_at=created_at, kind=kind)


@pytest.fixture(scope="session")
def keys():
    return Keys.generate()


@pytest.fixture(scope="session")
def requester():
    return Keys.generate()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def request_event(requester):
    return requester.sign_event(kind=JOB_REQUEST, content="", tags=[["output", "text/plain"]], created_at=1000)
