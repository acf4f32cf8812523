from __future__ import annotations

import re
from datetime import datetime

from hidarishita.directory import DirectoryResolver, unknown
from hidarishita.event import Attachment, Event
from hidarishita.formatting import paint, unescape

_MENTION = re.compile(r"<@([0-9A-Z]+)>")

CONTENT_SEPARATOR = "\n  "


class Renderer:
    """Formats one event as ``HH:MM:SS <channel> sender: content``.

    Extra content lines (attachments) are indented by two spaces. Times are
    shown in the local time zone.
    """

    def __init__(self, resolver: DirectoryResolver, color: bool = False):
        self.resolver = resolver
        self.color = color

    def render(self, event: Event) -> str:
        return " ".join((
            self.render_timestamp(event),
            self.render_channel(event),
            self.render_sender(event),
            self.render_contents(event),
        ))

    def render_timestamp(self, event: Event) -> str:
        stamp = datetime.fromtimestamp(int(event.timestamp)).strftime("%H:%M:%S")
        return paint(stamp, "green", enabled=self.color)

    def render_channel(self, event: Event) -> str:
        name = self.resolver.resolve_conversation(event.channel)
        return paint(f"<{name}>", "bold", "blue", enabled=self.color)

    def render_sender(self, event: Event) -> str:
        if event.username:
            name = event.username
        elif event.user_id and self.resolver.directory.user(event.user_id) is not None:
            name = self.resolver.resolve_user(event.user_id)
        elif event.bot_id:
            name = self.resolver.resolve_bot(event.bot_id) or unknown(event.bot_id)
        else:
            name = "(unknown)"
        return paint(f"{name}:", "cyan", enabled=self.color)

    def render_contents(self, event: Event) -> str:
        lines = []
        if event.text:
            lines.append(self.render_text(event.text))
        for attachment in event.attachments:
            text = self.render_attachment(attachment)
            if text is not None:
                lines.append(paint(text, "gray", enabled=self.color))
        return CONTENT_SEPARATOR.join(lines)

    def render_attachment(self, attachment: Attachment) -> str | None:
        summary = attachment.fallback or attachment.text
        return self.render_text(summary) if summary else None

    def render_text(self, text: str) -> str:
        return unescape(_MENTION.sub(lambda m: self.render_mention(m.group(1)), text))

    def render_mention(self, user_id: str) -> str:
        return paint("@" + self.resolver.resolve_user(user_id), "cyan", enabled=self.color)
