from __future__ import annotations

import io
import threading

import pytest

import hidarishita.supervisor as supervisor_module
from hidarishita.config_schema import AppConfig
from hidarishita.directory import DirectorySnapshot, DirectoryResolver
from hidarishita.drivers import Transport
from hidarishita.error import ErrorKind, TransportError
from hidarishita.event import Event
from hidarishita.mute import MuteEngine
from hidarishita.processor import EventProcessor
from hidarishita.render import Renderer
from hidarishita.supervisor import ConnectionSupervisor, SupervisorState


class _ScriptedTransport(Transport[AppConfig]):
    """Plays one scripted outcome per connection attempt."""

    def __init__(self, config: AppConfig, outcome, directory: DirectorySnapshot):
        super().__init__(config)
        self.outcome = outcome
        self._directory = directory
        self.stopped = False

    @property
    def directory(self) -> DirectorySnapshot:
        return self._directory

    def serve(self) -> None:
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        if callable(self.outcome):
            self.outcome(self)

    def stop(self) -> None:
        self.stopped = True


class _SignalOnCheck(threading.Event):
    """Cancel token that runs *hook* on its Nth is_set() call."""

    def __init__(self, nth: int):
        super().__init__()
        self.nth = nth
        self.calls = 0
        self.hook = None

    def is_set(self) -> bool:
        self.calls += 1
        if self.calls == self.nth and self.hook is not None:
            self.hook()
        return super().is_set()


class _Harness:
    def __init__(self, outcomes, snapshot: DirectorySnapshot | None = None, cancel: threading.Event | None = None):
        self.outcomes = list(outcomes)
        self.snapshot = snapshot or DirectorySnapshot()
        self.attempts = 0
        self.delays: list[float] = []
        self.out = io.StringIO()
        self.cancel = cancel if cancel is not None else threading.Event()
        self.supervisor = ConnectionSupervisor(
            AppConfig(token="xoxb-test"),
            self.transport_factory,
            self.processor_factory,
            cancel=self.cancel,
            sleep=self.delays.append,
            install_signals=False,
        )

    def transport_factory(self, config: AppConfig) -> _ScriptedTransport:
        self.attempts += 1
        if not self.outcomes:
            # Script exhausted: ask the supervisor to stop
            return _ScriptedTransport(config, lambda t: self.supervisor.stop(), self.snapshot)
        return _ScriptedTransport(config, self.outcomes.pop(0), self.snapshot)

    def processor_factory(self, config: AppConfig, directory) -> EventProcessor:
        return EventProcessor(
            MuteEngine(config.mute, directory),
            Renderer(DirectoryResolver(directory)),
            self.out,
        )


def _transport_error(kind: ErrorKind, message: str = "boom") -> TransportError:
    return TransportError(kind, message)


def _hello(transport: Transport) -> None:
    transport._emit_hello()


def test_transient_failures_do_not_escalate() -> None:
    harness = _Harness([_transport_error(ErrorKind.TRANSIENT, "timed out")] * 3 + [KeyError("bug")])

    with pytest.raises(KeyError):
        harness.supervisor.run()

    assert harness.delays == [1, 1, 1]
    assert harness.attempts == 4


def test_unknown_failure_is_reraised_without_retry() -> None:
    harness = _Harness([RuntimeError("surprise")])

    with pytest.raises(RuntimeError, match="surprise"):
        harness.supervisor.run()

    assert harness.attempts == 1
    assert harness.delays == []


def test_unknown_kind_transport_error_is_reraised() -> None:
    harness = _Harness([_transport_error(ErrorKind.UNKNOWN)])

    with pytest.raises(TransportError):
        harness.supervisor.run()


def test_auth_failure_deactivates() -> None:
    harness = _Harness([TransportError(ErrorKind.AUTH_FAILURE, "invalid_auth", code="invalid_auth")])

    state = harness.supervisor.run()

    assert state is SupervisorState.DEACTIVATED
    assert harness.attempts == 1
    assert harness.delays == []


def test_escalating_backoff_is_capped() -> None:
    harness = _Harness([_transport_error(ErrorKind.RECOVERABLE)] * 9)

    state = harness.supervisor.run()

    assert state is SupervisorState.STOPPED
    assert harness.delays == [1, 2, 4, 8, 16, 32, 60, 60, 60]


def test_backoff_resets_after_successful_connection() -> None:
    failure = _transport_error(ErrorKind.RECOVERABLE)

    def _connect_then_fail(transport: Transport) -> None:
        _hello(transport)
        raise failure

    harness = _Harness([failure, failure, failure, _connect_then_fail, failure])

    harness.supervisor.run()

    assert harness.delays == [1, 2, 4, 1, 2]


def test_clean_close_resets_backoff_and_reconnects_immediately() -> None:
    failure = _transport_error(ErrorKind.RECOVERABLE)
    harness = _Harness([failure, failure, lambda t: None, failure])

    harness.supervisor.run()

    assert harness.delays == [1, 2, 1]
    assert harness.attempts == 5


def test_rate_limit_and_task_termination_delays() -> None:
    harness = _Harness([
        _transport_error(ErrorKind.RECOVERABLE),
        _transport_error(ErrorKind.RATE_LIMITED, "migration_in_progress"),
        _transport_error(ErrorKind.TASK_TERMINATED),
        _transport_error(ErrorKind.RECOVERABLE),
    ])

    harness.supervisor.run()

    # fixed delays in between do not touch the escalating wait
    assert harness.delays == [1, 1, 3, 2]


def test_messages_flow_to_processor(snapshot: DirectorySnapshot) -> None:
    def _deliver(transport: Transport) -> None:
        _hello(transport)
        transport._emit_message(Event(channel="C1", user_id="U1", text="one"))
        transport._emit_message(Event(channel="C1", user_id="U1", text="two", hidden=True))
        transport._emit_message(Event(channel="D1", user_id="U2", text="three"))

    harness = _Harness([_deliver], snapshot)

    harness.supervisor.run()

    lines = harness.out.getvalue().splitlines()
    assert [line.split(" ", 1)[1] for line in lines] == ["<#general> alice: one", "<@bob> bob: three"]


def test_hello_marks_connected() -> None:
    seen = []

    def _record(transport: Transport) -> None:
        _hello(transport)
        seen.append(harness.supervisor.state)

    harness = _Harness([_record])
    harness.supervisor.run()

    assert seen == [SupervisorState.CONNECTED]


def test_stop_is_idempotent_and_stops_live_transport() -> None:
    transports = []

    def _stop_twice(transport: Transport) -> None:
        transports.append(transport)
        harness.supervisor.stop()
        harness.supervisor.stop()

    harness = _Harness([_stop_twice])

    state = harness.supervisor.run()

    assert state is SupervisorState.STOPPED
    assert transports[0].stopped
    assert harness.attempts == 1


def test_failure_while_stopping_does_not_retry() -> None:
    def _stop_then_fail(transport: Transport) -> None:
        harness.supervisor.stop()
        raise _transport_error(ErrorKind.TRANSIENT, "socket closed")

    harness = _Harness([_stop_then_fail])

    assert harness.supervisor.run() is SupervisorState.STOPPED
    assert harness.delays == []


def test_stop_before_run_makes_no_attempt() -> None:
    harness = _Harness([])
    harness.supervisor.stop()

    assert harness.supervisor.run() is SupervisorState.STOPPED
    assert harness.attempts == 0


def test_signal_handlers_reinstalled_every_cycle(monkeypatch) -> None:
    installed = []
    monkeypatch.setattr(supervisor_module.signal, "signal", lambda sig, handler: installed.append(sig))

    harness = _Harness([_transport_error(ErrorKind.TRANSIENT)] * 2)
    harness.supervisor.install_signals = True

    harness.supervisor.run()

    # three connection cycles, two signals each
    assert installed == list(supervisor_module.TRAPPED_SIGNALS) * 3


def test_signal_handler_requests_stop() -> None:
    harness = _Harness([])

    harness.supervisor._on_signal(supervisor_module.signal.SIGTERM, None)

    assert harness.cancel.is_set()


def test_signal_while_lock_is_held_does_not_block() -> None:
    harness = _Harness([])

    # a handler interrupts the main thread wherever it is, including start()
    with harness.supervisor._lock:
        harness.supervisor._on_signal(supervisor_module.signal.SIGTERM, None)

    assert harness.cancel.is_set()


def test_signal_right_after_transport_is_published_is_not_lost() -> None:
    cancel = _SignalOnCheck(nth=2)
    served = []
    harness = _Harness([served.append], cancel=cancel)
    live = []

    def _signal() -> None:
        live.append(harness.supervisor._transport)
        harness.supervisor._on_signal(supervisor_module.signal.SIGTERM, None)

    # first check is the top of run(), the second the one inside start()
    cancel.hook = _signal

    state = harness.supervisor.run()

    assert state is SupervisorState.STOPPED
    assert served == []
    assert live[0] is not None and live[0].stopped
    assert harness.attempts == 1


def test_default_sleep_is_cut_short_by_stop() -> None:
    cancel = threading.Event()
    supervisor = ConnectionSupervisor(
        AppConfig(token="t"), lambda c: None, lambda c, d: None, cancel=cancel, install_signals=False
    )
    cancel.set()

    # returns immediately instead of waiting a minute
    supervisor.backoff(60)

    assert supervisor.state is SupervisorState.BACKOFF
