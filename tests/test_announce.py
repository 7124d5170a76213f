"""One-shot service announcement tests."""

import json

import pytest

from dvmbot.agent.announce import announce_once, build_announcement
from dvmbot.bus.events import HANDLER_INFORMATION
from dvmbot.config.loader import load_config
from dvmbot.config.schema import Config
from tests.conftest import RecordingTransport


@pytest.fixture
def config():
    config = Config()
    config.package.name = "finder"
    config.package.about = "recent notes"
    config.package.random_id = "1qqqqqqqqqqqqqqqqqqq"
    return config


def test_build_announcement(config, keys):
    event = build_announcement(config, keys)

    assert event.kind == HANDLER_INFORMATION
    assert event.verify()
    assert [list(t) for t in event.tags] == [["k", "5300"], ["d", "1qqqqqqqqqqqqqqqqqqq"]]
    assert json.loads(event.content) == {"name": "finder", "about": "recent notes", "encryptionSupported": False}


def test_lnurl_is_advertised(config, keys):
    config.package.lnurl = "finder@getalby.com"
    assert json.loads(build_announcement(config, keys).content)["lud16"] == "finder@getalby.com"


def test_requires_random_id(keys):
    with pytest.raises(ValueError):
        build_announcement(Config(), keys)


@pytest.mark.asyncio
async def test_announce_once_persists_flag(config, keys, transport, tmp_path):
    path = tmp_path / "config.json"

    assert await announce_once(config, keys, transport.send_event, path) is True
    assert await announce_once(config, keys, transport.send_event, path) is False

    assert len(transport.sent) == 1
    assert load_config(path).package.announced is True


@pytest.mark.asyncio
async def test_failed_announcement_is_retried_next_start(config, keys, tmp_path):
    path = tmp_path / "config.json"
    with pytest.raises(ConnectionError):
        await announce_once(config, keys, RecordingTransport(fail=True).send_event, path)

    assert config.package.announced is False
    assert not path.exists()
