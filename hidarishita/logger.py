import logging
import sys
import os
from datetime import datetime

# ANSI colour codes for level tags
COLORS = {
    'DBG': '\033[36m',
    'INF': '\033[32m',
    'WRN': '\033[33m',
    'ERR': '\033[31m',
    'CRT': '\033[91m\033[1m',
    'RST': '\033[0m'
}

# stdout carries the transcript, so all diagnostics go to stderr
IS_TTY = sys.stderr.isatty()


# Sensitive strings to redact from all log output.
# Populated by register_sensitive() once the token is known.
_sensitive: set[str] = set()


def register_sensitive(values) -> None:
    """Register secret strings that must never appear in log output."""
    _sensitive.clear()
    # Skip values shorter than 8 chars to avoid masking common substrings
    _sensitive.update(v for v in values if v and len(v) >= 8)


class MaskingFilter(logging.Filter):
    """Redacts sensitive values from every log record before emission."""

    def filter(self, record: logging.LogRecord) -> bool:
        if _sensitive:
            msg = record.getMessage()
            for secret in _sensitive:
                if secret in msg:
                    msg = msg.replace(secret, "***")
            record.msg = msg
            record.args = ()
        return True


class CustomFormatter(logging.Formatter):
    replaces = {
        'DEBUG': '[DBG]',
        'INFO': '[INF]',
        'WARNING': '[WRN]',
        'ERROR': '[ERR]',
        'CRITICAL': '[CRT]'
    }

    def format(self, record):
        timestamp = datetime.now().strftime('[%Y-%m-%d %H:%M:%S]')
        levelname = record.levelname

        level = self.replaces.get(levelname, f'[{levelname}]')

        if level.startswith('[') and len(level) >= 4:
            color_key = level[1:4]
        else:
            color_key = levelname.upper()[:3]

        if IS_TTY and color_key in COLORS:
            colored_level = COLORS[color_key] + level + COLORS['RST']
        else:
            colored_level = level

        try:
            file = os.path.relpath(record.pathname)
        except ValueError:
            file = record.pathname

        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return f"{timestamp} {colored_level} | {file}:{record.lineno} | {message}"


logger = logging.getLogger('hidarishita')
logger.setLevel(logging.DEBUG)
logger.addFilter(MaskingFilter())

# Drop handlers left over from a previous import (e.g. module reload)
if logger.handlers:
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
logger.propagate = False

console_handler = logging.StreamHandler(sys.stderr)
console_handler.setFormatter(CustomFormatter())
console_handler.setLevel(logging.INFO)
logger.addHandler(console_handler)


def set_console_level(level: int) -> None:
    console_handler.setLevel(level)


def enable_file_logging(log_dir: str) -> str:
    """Add a DEBUG-level file handler writing to a timestamped file in *log_dir*.

    Returns the path of the log file.
    """
    os.makedirs(log_dir, exist_ok=True)
    # e.g. 20250915-150316061.log (millisecond precision)
    filename = datetime.now().strftime("%Y%m%d-%H%M%S%f")[:-3] + ".log"
    path = os.path.join(log_dir, filename)

    file_handler = logging.FileHandler(path, encoding='utf-8')
    file_handler.setFormatter(logging.Formatter(
        '[%(asctime)s] [%(levelname)s] | %(filename)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    file_handler.setLevel(logging.DEBUG)
    logger.addHandler(file_handler)
    return path


def get_logger(name=None):
    """Return the configured logger (all modules share one instance)."""
    return logger
