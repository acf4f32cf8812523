from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Attachment:
    """A legacy message attachment; only its summary strings are rendered."""
    fallback: str | None = None
    text: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "Attachment":
        return cls(fallback=data.get("fallback"), text=data.get("text"))


@dataclass(frozen=True)
class Event:
    """One inbound ``message`` event, as delivered by the RTM stream."""
    channel: str                      # C… public, G… private group, D… direct message
    user_id: str | None = None
    bot_id: str | None = None
    username: str | None = None       # display override (bots, webhooks)
    timestamp: float = 0.0            # seconds since the epoch
    text: str | None = None
    attachments: tuple[Attachment, ...] = field(default_factory=tuple)
    hidden: bool = False

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "Event":
        try:
            ts = float(data.get("ts") or 0)
        except (TypeError, ValueError):
            ts = 0.0

        attachments = tuple(
            Attachment.from_payload(a)
            for a in (data.get("attachments") or [])
            if isinstance(a, dict)
        )

        return cls(
            channel=data.get("channel") or "",
            user_id=data.get("user"),
            bot_id=data.get("bot_id"),
            username=data.get("username"),
            timestamp=ts,
            text=data.get("text"),
            attachments=attachments,
            hidden=bool(data.get("hidden", False)),
        )
