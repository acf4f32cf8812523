"""Identifier → name lookups over the workspace directory.

The transport owns the snapshot and keeps it current; everything else only
reads it through the ``Directory`` protocol. Entries may come and go between
two reads, so a missing entry is never an error.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class UserEntry:
    name: str
    display_name: str = ""
    real_name: str = ""

    @property
    def mention(self) -> str:
        """Name shown after ``@``: the display name, or the account name when unset."""
        return self.display_name or self.name

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "UserEntry":
        profile = data.get("profile") or {}
        return cls(
            name=data.get("name") or "",
            display_name=profile.get("display_name") or "",
            real_name=data.get("real_name") or profile.get("real_name") or "",
        )


@dataclass(frozen=True)
class BotEntry:
    name: str

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "BotEntry":
        return cls(name=data.get("name") or "")


@dataclass(frozen=True)
class ChannelEntry:
    name: str

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "ChannelEntry":
        return cls(name=data.get("name") or "")


@dataclass(frozen=True)
class DirectMessageEntry:
    peer_user_id: str

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "DirectMessageEntry":
        return cls(peer_user_id=data.get("user") or "")


class Directory(Protocol):
    def user(self, user_id: str) -> UserEntry | None: ...
    def bot(self, bot_id: str) -> BotEntry | None: ...
    def channel(self, channel_id: str) -> ChannelEntry | None: ...
    def group(self, group_id: str) -> ChannelEntry | None: ...
    def direct_message(self, dm_id: str) -> DirectMessageEntry | None: ...


class DirectorySnapshot:
    """Dict-backed directory. Only the transport calls the ``put_*``/``remove_*`` writers."""

    def __init__(self):
        self._users: dict[str, UserEntry] = {}
        self._bots: dict[str, BotEntry] = {}
        self._channels: dict[str, ChannelEntry] = {}
        self._groups: dict[str, ChannelEntry] = {}
        self._ims: dict[str, DirectMessageEntry] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def user(self, user_id: str) -> UserEntry | None:
        return self._users.get(user_id) if user_id else None

    def bot(self, bot_id: str) -> BotEntry | None:
        return self._bots.get(bot_id) if bot_id else None

    def channel(self, channel_id: str) -> ChannelEntry | None:
        return self._channels.get(channel_id) if channel_id else None

    def group(self, group_id: str) -> ChannelEntry | None:
        return self._groups.get(group_id) if group_id else None

    def direct_message(self, dm_id: str) -> DirectMessageEntry | None:
        return self._ims.get(dm_id) if dm_id else None

    def __len__(self) -> int:
        return (len(self._users) + len(self._bots) + len(self._channels)
                + len(self._groups) + len(self._ims))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def put_user(self, user_id: str, entry: UserEntry) -> None:
        self._users[user_id] = entry

    def put_bot(self, bot_id: str, entry: BotEntry) -> None:
        self._bots[bot_id] = entry

    def put_channel(self, channel_id: str, entry: ChannelEntry) -> None:
        self._channels[channel_id] = entry

    def put_group(self, group_id: str, entry: ChannelEntry) -> None:
        self._groups[group_id] = entry

    def put_direct_message(self, dm_id: str, entry: DirectMessageEntry) -> None:
        self._ims[dm_id] = entry

    def remove_conversation(self, conversation_id: str) -> None:
        self._channels.pop(conversation_id, None)
        self._groups.pop(conversation_id, None)
        self._ims.pop(conversation_id, None)

    def put_conversation(self, data: dict[str, Any]) -> None:
        """File a conversations.list / channel_created payload in the right table."""
        conversation_id = data.get("id")
        if not conversation_id:
            return
        if data.get("is_im"):
            self.put_direct_message(conversation_id, DirectMessageEntry.from_payload(data))
        elif data.get("is_group") or conversation_id.startswith("G"):
            self.put_group(conversation_id, ChannelEntry.from_payload(data))
        else:
            self.put_channel(conversation_id, ChannelEntry.from_payload(data))

    def clear(self) -> None:
        self._users.clear()
        self._bots.clear()
        self._channels.clear()
        self._groups.clear()
        self._ims.clear()


class ConversationKind(enum.Enum):
    CHANNEL = "C"
    GROUP = "G"
    DIRECT_MESSAGE = "D"
    UNKNOWN = ""


def conversation_kind(conversation_id: str | None) -> ConversationKind:
    if conversation_id:
        for kind in (ConversationKind.CHANNEL, ConversationKind.GROUP, ConversationKind.DIRECT_MESSAGE):
            if conversation_id.startswith(kind.value):
                return kind
    return ConversationKind.UNKNOWN


def unknown(identifier: str | None) -> str:
    return f"(unknown:{identifier if identifier is not None else ''})"


class DirectoryResolver:
    """Turns identifiers into display strings; falls back to ``(unknown:<id>)``."""

    def __init__(self, directory: Directory):
        self.directory = directory

    def resolve_user(self, user_id: str) -> str:
        user = self.directory.user(user_id)
        if user is not None:
            return user.mention
        bot = self.resolve_bot(user_id)
        if bot is not None:
            return bot
        return unknown(user_id)

    def resolve_bot(self, bot_id: str) -> str | None:
        bot = self.directory.bot(bot_id)
        return bot.name if bot is not None else None

    def resolve_channel(self, channel_id: str) -> str:
        channel = self.directory.channel(channel_id)
        return "#" + channel.name if channel is not None else unknown(channel_id)

    def resolve_group(self, group_id: str) -> str:
        group = self.directory.group(group_id)
        return group.name if group is not None else unknown(group_id)

    def resolve_direct_message(self, dm_id: str) -> str:
        dm = self.directory.direct_message(dm_id)
        if dm is None:
            return unknown(dm_id)
        return "@" + self.resolve_user(dm.peer_user_id)

    def resolve_conversation(self, conversation_id: str) -> str:
        kind = conversation_kind(conversation_id)
        if kind is ConversationKind.CHANNEL:
            return self.resolve_channel(conversation_id)
        if kind is ConversationKind.GROUP:
            return self.resolve_group(conversation_id)
        if kind is ConversationKind.DIRECT_MESSAGE:
            return self.resolve_direct_message(conversation_id)
        return unknown(conversation_id)
