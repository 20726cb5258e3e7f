from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from modwarden import main


class FakeBot:
    def __init__(self, calls: list[str]) -> None:
        self.calls = calls
        self._closed = False

    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        self._closed = True
        self.calls.append("bot")


def _recorder(calls: list[str], name: str, error: Exception | None = None) -> AsyncMock:
    async def record() -> None:
        calls.append(name)
        if error is not None:
            raise error

    return AsyncMock(side_effect=record)


@pytest.mark.asyncio
async def test_shutdown_stops_scheduler_before_closing_database():
    calls: list[str] = []
    services = SimpleNamespace(scheduler=SimpleNamespace(stop=_recorder(calls, "scheduler")))
    database = SimpleNamespace(shutdown=_recorder(calls, "database"))

    await main.shutdown_runtime(FakeBot(calls), services, database)

    assert calls == ["scheduler", "bot", "database"]


@pytest.mark.asyncio
async def test_shutdown_continues_after_scheduler_error():
    calls: list[str] = []
    services = SimpleNamespace(scheduler=SimpleNamespace(stop=_recorder(calls, "scheduler", RuntimeError("boom"))))
    database = SimpleNamespace(shutdown=_recorder(calls, "database"))

    await main.shutdown_runtime(None, services, database)

    assert calls == ["scheduler", "database"]


@pytest.mark.asyncio
async def test_async_main_fails_when_database_cannot_open(monkeypatch):
    monkeypatch.setattr(main, "load_environment", lambda: "token")
    database = SimpleNamespace(db_path="db", initialize=AsyncMock(side_effect=OSError("read-only")))
    monkeypatch.setattr(main, "Database", lambda path: database)
    create_bot = AsyncMock()
    monkeypatch.setattr(main, "create_bot", create_bot)

    assert await main.async_main() == 1
    create_bot.assert_not_called()


@pytest.mark.asyncio
async def test_async_main_always_shuts_down(monkeypatch):
    monkeypatch.setattr(main, "load_environment", lambda: "token")
    database = SimpleNamespace(db_path="db", initialize=AsyncMock())
    monkeypatch.setattr(main, "Database", lambda path: database)
    bot, services = object(), object()
    monkeypatch.setattr(main, "create_bot", lambda db: (bot, services))
    monkeypatch.setattr(main, "start_bot", AsyncMock(side_effect=RuntimeError("gateway closed")))
    shutdown = AsyncMock()
    monkeypatch.setattr(main, "shutdown_runtime", shutdown)

    assert await main.async_main() == 1
    shutdown.assert_awaited_once_with(bot, services, database)


def test_missing_token_exits(monkeypatch):
    monkeypatch.setattr(main, "load_dotenv", lambda **_: None)
    monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)

    with pytest.raises(SystemExit):
        main.load_environment()


def test_intents_cover_members_and_bans():
    intents = main.build_intents()

    assert intents.members is True
    assert intents.bans is True
