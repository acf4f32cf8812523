import concurrent.futures
import enum
import ssl
import sys
import traceback
import urllib.error

from slack_sdk.errors import SlackApiError, SlackClientError

import hidarishita.logger as log

# Initialize logger
l = log.get_logger()

# Error codes reported by the Slack Web API
RATE_LIMIT_CODES = frozenset({"migration_in_progress", "ratelimited"})
AUTH_FAILURE_CODES = frozenset({"account_inactive", "invalid_auth"})


def _handle_uncaught_exceptions(exc_type, exc_value, exc_traceback):
    """Global exception handler for uncaught exceptions."""
    if issubclass(exc_type, KeyboardInterrupt):
        # Call default handler for keyboard interrupt (e.g. Ctrl+C)
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    # Log the full traceback for debugging
    l.critical(
        "Unhandled exception caught:\n"
        + ''.join(traceback.format_exception(exc_type, exc_value, exc_traceback))
    )


def install_excepthook() -> None:
    sys.excepthook = _handle_uncaught_exceptions


class ErrorKind(enum.Enum):
    RATE_LIMITED = "rate_limited"
    TASK_TERMINATED = "task_terminated"
    TRANSIENT = "transient"
    AUTH_FAILURE = "auth_failure"
    RECOVERABLE = "recoverable"
    UNKNOWN = "unknown"


class HidarishitaError(Exception):
    """Base class for errors raised by this package."""


class ConfigError(HidarishitaError):
    """Configuration is missing or invalid."""


class PatternError(HidarishitaError):
    """A mute rule could not be compiled."""

    def __init__(self, raw: str, reason: str):
        super().__init__(f"invalid mute pattern {raw!r}: {reason}")
        self.raw = raw
        self.reason = reason


class TransportError(HidarishitaError):
    """A connection failure, classified once where it leaves the transport.

    ``code`` is the service error code when there is one (``invalid_auth``...),
    ``cause`` the original exception.
    """

    def __init__(self, kind: ErrorKind, message: str, code: str | None = None,
                 cause: BaseException | None = None):
        super().__init__(message)
        self.kind = kind
        self.code = code
        self.cause = cause


def api_error_code(exc: SlackApiError) -> str | None:
    response = exc.response
    if response is None:
        return None
    try:
        return response.get("error")
    except AttributeError:
        return None


def classify(exc: BaseException) -> ErrorKind:
    """Map an exception raised while connected to the kind of recovery it needs."""
    if isinstance(exc, TransportError):
        return exc.kind
    if isinstance(exc, SlackApiError):
        code = api_error_code(exc)
        if code in RATE_LIMIT_CODES:
            return ErrorKind.RATE_LIMITED
        if code in AUTH_FAILURE_CODES:
            return ErrorKind.AUTH_FAILURE
        return ErrorKind.RECOVERABLE
    if isinstance(exc, (concurrent.futures.CancelledError, concurrent.futures.BrokenExecutor)):
        return ErrorKind.TASK_TERMINATED
    if isinstance(exc, (TimeoutError, ConnectionError, ssl.SSLError, urllib.error.URLError)):
        return ErrorKind.TRANSIENT
    if isinstance(exc, (SlackClientError, OSError)):
        return ErrorKind.RECOVERABLE
    return ErrorKind.UNKNOWN


def wrap(exc: BaseException) -> TransportError:
    """Wrap *exc* as a TransportError, classifying it on the way."""
    if isinstance(exc, TransportError):
        return exc
    code = api_error_code(exc) if isinstance(exc, SlackApiError) else None
    message = code or str(exc) or type(exc).__name__
    return TransportError(classify(exc), message, code=code, cause=exc)


def raise_and_log(message: str, exception_type: type = HidarishitaError):
    """
    Log an error and then raise the specified exception.

    :param message: Error message to log and include in the exception.
    :param exception_type: Type of exception to raise (default: HidarishitaError).
    """
    l.error(f"Raising exception: {message}")
    raise exception_type(message)
