"""Mute rule compilation.

A rule is one of

* ``/…/``  a regular expression in verbose mode (whitespace and ``#``
  comments inside the slashes are ignored); matches if the pattern is found
  anywhere in the candidate, so anchor it with ``^``/``$`` when needed
* ``#name`` in a channel list, a channel name compared exactly after
  dropping the ``#``
* ``@name`` in a user list, a mention name compared exactly after
  dropping the ``@``
* anything else, compared exactly as written (an id or a name)
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Iterable

from hidarishita.error import PatternError

_DELIMITED_REGEX = re.compile(r"\A/(.+)/\Z", re.DOTALL)

CHANNEL_SIGIL = "#"
USER_SIGIL = "@"


class MatcherKind(enum.Enum):
    LITERAL = "literal"
    SIGIL = "sigil"
    REGEX = "regex"


@dataclass(frozen=True)
class Matcher:
    raw: str
    kind: MatcherKind
    value: str
    sigil: str | None = None
    pattern: re.Pattern | None = None

    def test(self, candidate: str | None) -> bool:
        if candidate is None:
            return False
        if self.pattern is not None:
            return self.pattern.search(candidate) is not None
        return candidate == self.value


def compile(raw: str, sigil: str | None = None) -> Matcher:
    """Compile one rule string. Raises PatternError for a malformed regex.

    Only *sigil* is stripped; a rule starting with any other character,
    another list's sigil included, is a literal.
    """
    if not isinstance(raw, str) or not raw:
        raise PatternError(str(raw), "rule must be a non-empty string")

    m = _DELIMITED_REGEX.match(raw)
    if m:
        try:
            pattern = re.compile(m.group(1), re.VERBOSE)
        except re.error as e:
            raise PatternError(raw, str(e)) from e
        return Matcher(raw=raw, kind=MatcherKind.REGEX, value=m.group(1), pattern=pattern)

    if sigil is not None and raw.startswith(sigil):
        return Matcher(raw=raw, kind=MatcherKind.SIGIL, value=raw[len(sigil):], sigil=sigil)

    return Matcher(raw=raw, kind=MatcherKind.LITERAL, value=raw)


def compile_all(rules: Iterable[str], sigil: str | None = None) -> tuple[Matcher, ...]:
    """Compile *rules* in order; the first bad rule aborts the whole set."""
    return tuple(compile(r, sigil) for r in rules)


def any_match(matchers: Iterable[Matcher], candidate: str | None) -> bool:
    return any(m.test(candidate) for m in matchers)
