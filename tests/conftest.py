from __future__ import annotations

import pytest

from hidarishita.directory import (
    BotEntry,
    ChannelEntry,
    DirectMessageEntry,
    DirectorySnapshot,
    DirectoryResolver,
    UserEntry,
)


@pytest.fixture
def snapshot() -> DirectorySnapshot:
    directory = DirectorySnapshot()
    directory.put_user("U1", UserEntry(name="alice", display_name="", real_name="Alice A"))
    directory.put_user("U2", UserEntry(name="bob"))
    directory.put_user("U3", UserEntry(name="carol", display_name="cc", real_name="Carol C"))
    directory.put_bot("B1", BotEntry(name="ci-bot"))
    directory.put_channel("C1", ChannelEntry(name="general"))
    directory.put_channel("C2", ChannelEntry(name="random"))
    directory.put_group("G1", ChannelEntry(name="secret-club"))
    directory.put_direct_message("D1", DirectMessageEntry(peer_user_id="U2"))
    return directory


@pytest.fixture
def resolver(snapshot: DirectorySnapshot) -> DirectoryResolver:
    return DirectoryResolver(snapshot)
