from abc import ABC, abstractmethod
from typing import Callable, Generic, TypeVar

from pydantic import BaseModel

from hidarishita.directory import Directory
from hidarishita.event import Event

T = TypeVar("T", bound=BaseModel)

HelloHandler = Callable[[], None]
MessageHandler = Callable[[Event], None]


class Transport(ABC, Generic[T]):
    """Abstract base class for a real-time event stream connection.

    The supervisor makes a fresh transport for every connection attempt, wires
    ``on_hello``/``on_message`` and calls ``serve()``. Failures leave
    ``serve()`` as ``TransportError`` with their kind already decided.
    """

    def __init__(self, config: T):
        self.config: T = config
        self.on_hello: HelloHandler | None = None
        self.on_message: MessageHandler | None = None

    @property
    @abstractmethod
    def directory(self) -> Directory:
        """Read-only view of the workspace directory this connection maintains."""

    @abstractmethod
    def serve(self) -> None:
        """Connect and block until the connection closes or ``stop()`` is called."""

    @abstractmethod
    def stop(self) -> None:
        """Ask ``serve()`` to return. Safe to call more than once, from any thread."""

    def _emit_hello(self) -> None:
        if self.on_hello is not None:
            self.on_hello()

    def _emit_message(self, event: Event) -> None:
        if self.on_message is not None:
            self.on_message(event)
