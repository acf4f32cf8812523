"""Connection lifecycle: connect, serve, classify failures, retry or give up.

    IDLE → CONNECTING → CONNECTED → (closed / failed) → BACKOFF → CONNECTING …

``STOPPED`` follows a stop request (SIGINT/SIGTERM), ``DEACTIVATED`` an
authentication failure. A failure of unknown kind is logged and re-raised
rather than retried.
"""
from __future__ import annotations

import enum
import signal
import threading
from typing import Callable

import hidarishita.logger as log
from hidarishita.config_schema import AppConfig
from hidarishita.directory import Directory
from hidarishita.drivers import Transport
from hidarishita.error import ErrorKind, classify
from hidarishita.processor import EventProcessor

l = log.get_logger()

INITIAL_WAIT = 1
MAX_WAIT = 60
RATE_LIMIT_DELAY = 1
TASK_TERMINATED_DELAY = 3
TRANSIENT_DELAY = 1

TRAPPED_SIGNALS = (signal.SIGINT, signal.SIGTERM)

TransportFactory = Callable[[AppConfig], Transport]
ProcessorFactory = Callable[[AppConfig, Directory], EventProcessor]


class SupervisorState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    BACKOFF = "backoff"
    STOPPED = "stopped"
    DEACTIVATED = "deactivated"


TERMINAL_STATES = (SupervisorState.STOPPED, SupervisorState.DEACTIVATED)


class ConnectionSupervisor:

    def __init__(
        self,
        config: AppConfig,
        transport_factory: TransportFactory,
        processor_factory: ProcessorFactory,
        cancel: threading.Event | None = None,
        sleep: Callable[[float], object] | None = None,
        install_signals: bool = True,
    ):
        self.config = config
        self.transport_factory = transport_factory
        self.processor_factory = processor_factory
        self.cancel = cancel if cancel is not None else threading.Event()
        # Waiting on the cancel token lets stop() cut a backoff short
        self.sleep = sleep if sleep is not None else self.cancel.wait
        self.install_signals = install_signals

        self.state = SupervisorState.IDLE
        self.wait = INITIAL_WAIT
        self._transport: Transport | None = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Outer loop
    # ------------------------------------------------------------------

    def run(self) -> SupervisorState:
        """Keep a connection up until stopped or deactivated; returns the final state."""
        while True:
            if self.cancel.is_set():
                self.state = SupervisorState.STOPPED
                return self.state

            if self.install_signals:
                self.handle_signals()

            try:
                self.start()
            except Exception as e:
                delay = self.on_failure(e)
                if self.state in TERMINAL_STATES:
                    return self.state
                self.backoff(delay)
            else:
                if not self.cancel.is_set():
                    l.info("Connection closed, reconnecting.")

    def start(self) -> None:
        """Open one connection with a fresh processor and serve it until it ends."""
        self.state = SupervisorState.CONNECTING
        transport = self.transport_factory(self.config)
        processor = self.processor_factory(self.config, transport.directory)

        def _on_hello() -> None:
            self.on_connected()
            processor.on_hello()

        transport.on_hello = _on_hello
        transport.on_message = processor.process

        with self._lock:
            self._transport = transport

        try:
            # stop() sets the token before reading _transport, so a stop
            # racing this publish is seen either here or by stop() itself
            if self.cancel.is_set():
                return
            transport.serve()
        finally:
            with self._lock:
                self._transport = None

        self.wait = INITIAL_WAIT

    def stop(self) -> None:
        # Also runs as a signal handler, possibly while the same thread is
        # inside start() holding _lock
        self.cancel.set()
        with self._lock:
            transport = self._transport
        if transport is not None:
            transport.stop()

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def on_connected(self) -> None:
        self.state = SupervisorState.CONNECTED
        self.wait = INITIAL_WAIT

    def on_failure(self, exc: Exception) -> float | None:
        """Decide what a failure means. Returns the delay before retrying."""
        kind = classify(exc)

        if self.cancel.is_set() and kind is not ErrorKind.UNKNOWN:
            l.info(f"{exc} while stopping, not reconnecting.")
            self.state = SupervisorState.STOPPED
            return None

        if kind is ErrorKind.RATE_LIMITED:
            l.error(f"{exc}, reconnecting in {RATE_LIMIT_DELAY} second(s).")
            return RATE_LIMIT_DELAY

        if kind is ErrorKind.TASK_TERMINATED:
            l.error(f"{exc}, reconnecting in {TASK_TERMINATED_DELAY} second(s).")
            return TASK_TERMINATED_DELAY

        if kind is ErrorKind.TRANSIENT:
            l.error(f"{exc}, reconnecting in {TRANSIENT_DELAY} second(s).")
            return TRANSIENT_DELAY

        if kind is ErrorKind.AUTH_FAILURE:
            l.error(f"{exc}, team will be deactivated.")
            self.state = SupervisorState.DEACTIVATED
            return None

        if kind is ErrorKind.RECOVERABLE:
            delay = self.wait
            l.error(f"{exc}, reconnecting in {delay} second(s).")
            l.debug("Connection failure", exc_info=exc)
            self.wait = min(self.wait * 2, MAX_WAIT)
            return delay

        l.error(f"Unrecoverable connection failure: {exc!r}")
        raise exc

    def backoff(self, delay: float | None) -> None:
        if not delay:
            return
        self.state = SupervisorState.BACKOFF
        self.sleep(delay)

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def handle_signals(self) -> None:
        """(Re)install SIGINT/SIGTERM handlers; only possible from the main thread."""
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in TRAPPED_SIGNALS:
            signal.signal(sig, self._on_signal)

    def _on_signal(self, signum, frame) -> None:
        l.info(f"Received {signal.Signals(signum).name}, stopping.")
        self.stop()
