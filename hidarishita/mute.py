from __future__ import annotations

import copy

import hidarishita.matcher as matcher
from hidarishita.config_schema import MuteConfig
from hidarishita.directory import Directory
from hidarishita.event import Event
from hidarishita.matcher import Matcher, MatcherKind


class MuteEngine:
    """
    Decides whether an event is muted by channel or by sender.

    Rules are compiled once here; a malformed rule raises PatternError before
    any connection is made.
    """

    def __init__(self, config: MuteConfig, directory: Directory):
        self.directory = directory
        self.channel_matchers: tuple[Matcher, ...] = matcher.compile_all(config.channels, matcher.CHANNEL_SIGIL)
        self.user_matchers: tuple[Matcher, ...] = matcher.compile_all(config.users, matcher.USER_SIGIL)

    def with_directory(self, directory: Directory) -> "MuteEngine":
        """Same compiled rules, reading names from another directory."""
        engine = copy.copy(self)
        engine.directory = directory
        return engine

    def is_channel_muted(self, event: Event) -> bool:
        if not self.channel_matchers:
            return False

        # Against the conversation id first; no lookup needed when it hits
        if matcher.any_match(self.channel_matchers, event.channel):
            return True

        channel = self.directory.channel(event.channel) or self.directory.group(event.channel)
        if channel is None or not channel.name:
            return False

        return matcher.any_match(self.channel_matchers, channel.name)

    def is_user_muted(self, event: Event) -> bool:
        if not self.user_matchers or not event.user_id:
            return False

        if matcher.any_match(self.user_matchers, event.user_id):
            return True

        user = self.directory.user(event.user_id)
        if user is None:
            return False

        names = [n for n in (user.display_name, user.name, user.real_name) if n]

        for m in self.user_matchers:
            if m.kind is MatcherKind.SIGIL:
                if m.test(user.mention):
                    return True
            elif any(m.test(n) for n in names):
                return True
        return False

    def is_muted(self, event: Event) -> bool:
        return self.is_channel_muted(event) or self.is_user_muted(event)
