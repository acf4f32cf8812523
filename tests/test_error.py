from __future__ import annotations

import concurrent.futures
import socket
import ssl
import urllib.error

import pytest
from slack_sdk.errors import SlackApiError, SlackClientNotConnectedError

from hidarishita.error import ErrorKind, TransportError, classify, raise_and_log, wrap, ConfigError


def _api_error(code: str) -> SlackApiError:
    return SlackApiError("The request to the Slack API failed.", {"ok": False, "error": code})


@pytest.mark.parametrize("code", ["migration_in_progress", "ratelimited"])
def test_rate_limit_codes(code: str) -> None:
    assert classify(_api_error(code)) is ErrorKind.RATE_LIMITED


@pytest.mark.parametrize("code", ["account_inactive", "invalid_auth"])
def test_auth_failure_codes(code: str) -> None:
    assert classify(_api_error(code)) is ErrorKind.AUTH_FAILURE


def test_other_api_errors_escalate() -> None:
    assert classify(_api_error("internal_error")) is ErrorKind.RECOVERABLE
    assert classify(SlackApiError("no body", None)) is ErrorKind.RECOVERABLE


@pytest.mark.parametrize("exc", [
    TimeoutError("timed out"),
    socket.timeout("timed out"),
    ConnectionRefusedError("refused"),
    ConnectionResetError("reset"),
    ssl.SSLError("handshake"),
    urllib.error.URLError("name resolution"),
])
def test_network_errors_are_transient(exc: Exception) -> None:
    assert classify(exc) is ErrorKind.TRANSIENT


def test_worker_cancellation_is_task_terminated() -> None:
    assert classify(concurrent.futures.CancelledError()) is ErrorKind.TASK_TERMINATED
    assert classify(concurrent.futures.BrokenExecutor()) is ErrorKind.TASK_TERMINATED


def test_client_and_io_errors_escalate() -> None:
    assert classify(SlackClientNotConnectedError("not connected")) is ErrorKind.RECOVERABLE
    assert classify(OSError("disk")) is ErrorKind.RECOVERABLE


def test_everything_else_is_unknown() -> None:
    assert classify(ValueError("bug")) is ErrorKind.UNKNOWN
    assert classify(KeyError("bug")) is ErrorKind.UNKNOWN


def test_wrap_keeps_code_and_cause() -> None:
    cause = _api_error("invalid_auth")

    wrapped = wrap(cause)

    assert wrapped.kind is ErrorKind.AUTH_FAILURE
    assert wrapped.code == "invalid_auth"
    assert wrapped.cause is cause
    assert str(wrapped) == "invalid_auth"
    assert classify(wrapped) is ErrorKind.AUTH_FAILURE


def test_wrap_is_idempotent() -> None:
    err = TransportError(ErrorKind.TRANSIENT, "x")

    assert wrap(err) is err


def test_wrap_message_falls_back_to_type_name() -> None:
    assert str(wrap(TimeoutError())) == "TimeoutError"


def test_raise_and_log() -> None:
    with pytest.raises(ConfigError, match="missing"):
        raise_and_log("missing", ConfigError)
