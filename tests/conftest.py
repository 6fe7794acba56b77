from __future__ import annotations

import random
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
import pytest_asyncio

from giveawaybot.config import Config, StorageConfig
from giveawaybot.giveaway_manager import GiveawayManager
from giveawaybot.storage import GiveawayStore

START_MS = 1_700_000_000_000
GUILD_ID = 900
ORGANIZER_ID = 1


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def make_thread(thread_id: int) -> MagicMock:
    thread = MagicMock(spec=discord.Thread)
    thread.id = thread_id
    thread.send = AsyncMock()
    thread.edit = AsyncMock()
    thread.delete = AsyncMock()
    return thread


def make_message(message_id: int) -> MagicMock:
    message = MagicMock()
    message.id = message_id
    message.edit = AsyncMock()
    message.delete = AsyncMock()
    message.add_reaction = AsyncMock()
    message.reply = AsyncMock()
    message.create_thread = AsyncMock(return_value=make_thread(message_id + 1))
    return message


class FakeChannel:
    """Text channel double that remembers what was sent to it."""

    def __init__(self, channel_id: int = 500) -> None:
        self.id = channel_id
        self.mention = f"<#{channel_id}>"
        self.messages: dict[int, MagicMock] = {}
        self.threads: dict[int, MagicMock] = {}
        self.sent: list[SimpleNamespace] = []
        self._next_id = 10_000

    async def send(self, content=None, **kwargs):
        self._next_id += 10
        message = make_message(self._next_id)
        thread = message.create_thread.return_value
        self.messages[message.id] = message
        self.threads[thread.id] = thread
        self.sent.append(SimpleNamespace(content=content, **kwargs))
        return message

    def contents(self) -> list[str]:
        return [entry.content for entry in self.sent if entry.content]


def make_member(user_id: int, *, roles=(), bot: bool = False) -> SimpleNamespace:
    return SimpleNamespace(
        id=user_id,
        bot=bot,
        roles=[SimpleNamespace(id=role_id) for role_id in roles],
        mention=f"<@{user_id}>",
    )


def make_guess(thread, author, content: str, message_id: int = 77) -> MagicMock:
    message = MagicMock()
    message.id = message_id
    message.author = author
    message.channel = thread
    message.content = content
    message.add_reaction = AsyncMock()
    message.reply = AsyncMock()
    return message


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        token="token",
        application_id=1234,
        storage=StorageConfig(path=tmp_path / "giveaways.sqlite"),
    )


@pytest_asyncio.fixture
async def store(tmp_path):
    store = GiveawayStore(tmp_path / "store.sqlite")
    await store.open()
    yield store
    await store.close()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest_asyncio.fixture
async def manager(config, clock, channel):
    bot = MagicMock()
    manager = GiveawayManager(
        bot,
        config,
        GiveawayStore(config.storage.path),
        clock=clock,
        rng=random.Random(7),
    )
    manager._fetch_text_channel = AsyncMock(return_value=channel)
    manager._fetch_message = AsyncMock(
        side_effect=lambda _channel, message_id: channel.messages.get(message_id)
    )
    manager._fetch_thread = AsyncMock(
        side_effect=lambda thread_id: channel.threads.get(thread_id)
    )
    await manager.load()
    yield manager
    await manager.store.close()
