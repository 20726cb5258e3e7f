"""
Pytest configuration and fixtures for Modwarden tests.
"""

import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

# Keep test runs from writing session logs into the working tree
os.environ.setdefault("MODWARDEN_LOG_DIR", tempfile.mkdtemp(prefix="modwarden-logs-"))

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

import pytest
import pytest_asyncio

from modwarden.configuration.moderation_settings import ModerationSettings
from modwarden.database.db_connection import ConnectionManager
from modwarden.database.db_schema import SchemaManager
from modwarden.datatypes.case_datatypes import CaseAction, NewCase
from modwarden.moderation.case_store import CaseStore
from modwarden.moderation.collaborators import Identity, MemberInfo, MessageHandle

GUILD_ID = 1000
BOT_ID = 9000
MODERATOR_ID = 2000
TARGET_ID = 3000


@pytest_asyncio.fixture
async def connections(tmp_path: Path):
    """A fresh ConnectionManager on a temporary database with the schema applied."""
    manager = ConnectionManager()
    await manager.open(tmp_path / "modwarden-test.db")
    await SchemaManager.initialize_schema(manager.connection)
    yield manager
    await manager.close()


@pytest.fixture
def case_store(connections: ConnectionManager) -> CaseStore:
    return CaseStore(connections)


@pytest.fixture
def actor() -> MagicMock:
    """Stand-in ModerationActor: every action succeeds and the target is present."""
    fake = MagicMock()
    fake.identity = Identity(id=BOT_ID, tag="Modwarden")
    fake.fetch_member = AsyncMock(return_value=MemberInfo(id=TARGET_ID, tag="target", rank=1))
    fake.timeout = AsyncMock()
    fake.remove_timeout = AsyncMock()
    fake.kick = AsyncMock()
    fake.ban = AsyncMock()
    fake.unban = AsyncMock()
    return fake


@pytest.fixture
def messenger() -> MagicMock:
    """Stand-in Messenger that accepts every message."""
    fake = MagicMock()
    fake.send_direct_message = AsyncMock()
    fake.send_to_channel = AsyncMock(side_effect=lambda channel_id, embed: MessageHandle(channel_id, 555))
    fake.edit_channel_message = AsyncMock()
    return fake


def make_settings(**sections) -> ModerationSettings:
    """Build settings from raw ``moderation`` YAML sections."""
    return ModerationSettings.from_mapping(sections)


def warn_fields(target_id: int = TARGET_ID, reason: str | None = "spam") -> NewCase:
    return NewCase(
        action=CaseAction.WARN,
        target_id=target_id,
        target_tag="target",
        moderator_id=MODERATOR_ID,
        moderator_tag="moderator",
        reason=reason,
    )
