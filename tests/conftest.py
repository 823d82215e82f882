"""
Global pytest configuration and fixtures for chatrelay testing.
"""
import tempfile
import uuid
from pathlib import Path
from typing import List

import pytest
import yaml

from chatrelay.core.bridge import Bridge
from chatrelay.core.directory import IdentityDirectory
from chatrelay.models.events import Identity


class FakeSession:
    """Game session double that records every chat line it is asked to send"""

    def __init__(self, name: str, fail: bool = False):
        self.identity = Identity(name=name, id=uuid.uuid4())
        self.sent: List[str] = []
        self.fail = fail

    def send_chat(self, text: str) -> None:
        if self.fail:
            raise ConnectionError(f"{self.identity.name} is disconnected")
        self.sent.append(text)

    def __repr__(self) -> str:
        return f"FakeSession({self.identity.name!r})"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def alice():
    return Identity(name="Alice", id=uuid.uuid4())


@pytest.fixture
def bob():
    return Identity(name="Bob", id=uuid.uuid4())


@pytest.fixture
def directory(alice, bob):
    return IdentityDirectory([alice, bob])


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def session():
    return FakeSession("RelayBot")


@pytest.fixture
def bridge():
    b = Bridge(name="test")
    yield b
    b.close()


@pytest.fixture
def test_config():
    """Provide test configuration."""
    return {
        "relay": {
            "poll_interval": 0.01,
            "chunk_limit": 254,
            "dedupe": False
        },
        "bridges": [
            {
                "name": "discord-main",
                "platform": "discord",
                "ignore": ["Spammer"],
                "links": ["matrix-main"],
                "discord": {
                    "token": "test-token",
                    "channel_id": 1234,
                    "webhook_url": "https://discord.com/api/webhooks/1/abc"
                }
            },
            {
                "name": "matrix-main",
                "platform": "matrix",
                "mode": "RelayBot",
                "matrix": {
                    "homeserver": "https://matrix.example.org",
                    "as_token": "as-token",
                    "room_id": "!room:example.org",
                    "user_prefix": "_game_"
                }
            }
        ],
        "logging": {
            "level": "DEBUG",
            "file": None,
            "console": False
        }
    }


@pytest.fixture
def config_dir(temp_dir, test_config):
    """Config directory holding test_config as config.yaml"""
    with open(temp_dir / "config.yaml", "w") as f:
        yaml.safe_dump(test_config, f)
    return temp_dir
