"""
Logging setup for the relay client

Provides:
- setup_logging(): plain or JSON output on stderr
- JSONFormatter: machine-readable log lines
- RedactingFilter: masks bearer tokens, passwords and JWTs before output
"""

import json
import logging
import re
import sys
from datetime import datetime, UTC
from typing import List, Pattern

# Regex patterns for secret detection
SECRET_PATTERNS: List[Pattern] = [
    re.compile(r'(?i)(bearer)\s+[A-Za-z0-9\-_\.=]+'),
    re.compile(r'(?i)(password|pwd|passwd)("?\s*[=:]\s*"?)[^\s",}]+'),
    re.compile(r'(?i)(token|jwt)("?\s*[=:]\s*"?)[^\s",}]+'),
    re.compile(r'eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]*'),
]

_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "taskName",
}


def redact_secrets(text: str) -> str:
    """
    Redact potential secrets from log text

    Args:
        text: Text that may contain secrets

    Returns:
        Text with secrets replaced by [REDACTED]
    """
    redacted = SECRET_PATTERNS[0].sub(r"\1 [REDACTED]", text)
    redacted = SECRET_PATTERNS[1].sub(r"\1\2[REDACTED]", redacted)
    redacted = SECRET_PATTERNS[2].sub(r"\1\2[REDACTED]", redacted)
    redacted = SECRET_PATTERNS[3].sub("[REDACTED]", redacted)
    return redacted


class RedactingFilter(logging.Filter):
    """Rewrites each record's message with secrets masked"""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact_secrets(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = ()
        return True


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for standard Python logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        # Custom fields from extra
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", json_output: bool = False) -> logging.Logger:
    """
    Configure the shareify_relay logger hierarchy.

    Args:
        level: Logging level name
        json_output: Emit JSON lines instead of plain text

    Returns:
        The package root logger
    """
    root = logging.getLogger("shareify_relay")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers = []

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    handler.addFilter(RedactingFilter())
    root.addHandler(handler)
    root.propagate = False

    return root
