from __future__ import annotations

import sys
from typing import TextIO

import hidarishita.logger as log
from hidarishita.event import Event
from hidarishita.mute import MuteEngine
from hidarishita.render import Renderer

l = log.get_logger()


class EventProcessor:
    """
    Filters and prints message events, one at a time, in arrival order.

    Hidden events (edits, deletions…) and muted channels or senders produce
    no output.
    """

    def __init__(self, mute: MuteEngine, renderer: Renderer, output: TextIO | None = None):
        self.mute = mute
        self.renderer = renderer
        self.output = output if output is not None else sys.stdout

    def on_hello(self) -> None:
        l.info("initialized.")

    def skip(self, event: Event) -> bool:
        return event.hidden or self.mute.is_muted(event)

    def process(self, event: Event) -> bool:
        """Print *event* unless it is skipped. Returns True when a line was written."""
        if self.skip(event):
            l.debug(f"skipped message in {event.channel} from {event.user_id or event.bot_id}")
            return False

        try:
            line = self.renderer.render(event)
        except Exception as e:
            l.error(f"Failed to render message in {event.channel} at {event.timestamp}: {e}")
            return False

        self.output.write(line + "\n")
        self.output.flush()
        return True
