"""
Secure Logging - Logging with automatic sensitive data masking

Usage:
    from supportdesk.utils.secure_logging import configure_secure_logging

    configure_secure_logging()

    # Tokens, credentials and email addresses are masked from here on
    logger.info(f"Authorization: Bearer {token}")
"""

import re
import logging
import json
from typing import Callable, List, Tuple, Optional, Any, Dict, Union
from logging import LogRecord, Filter, Formatter


Replacement = Union[str, Callable[[re.Match], str]]

# Each tuple: (compiled regex pattern, replacement)
SENSITIVE_PATTERNS: List[Tuple[re.Pattern, Replacement]] = [
    # JWT tokens (3 base64 parts separated by dots)
    (re.compile(r'eyJ[a-zA-Z0-9_-]+\.eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+'), '[JWT_REDACTED]'),

    # Bearer/Auth tokens
    (re.compile(r'(Bearer\s+)[a-zA-Z0-9_.-]+', re.IGNORECASE), r'\1[TOKEN_REDACTED]'),
    (re.compile(r'(Authorization:\s*)[^\s]+', re.IGNORECASE), r'\1[REDACTED]'),

    # Token query parameter used by the websocket endpoint
    (re.compile(r'([?&]token=)[^&\s]+', re.IGNORECASE), r'\1[REDACTED]'),

    # Passwords and secrets
    (re.compile(r'(password|passwd|secret[_-]?key|jwt[_-]?secret)["\s:=]+["\']?([^\s"\']{4,})["\']?', re.IGNORECASE), r'\1=[REDACTED]'),

    # MongoDB URIs with credentials
    (re.compile(r'mongodb(\+srv)?://([^:/\s]+):([^@\s]+)@'), r'mongodb\1://[USER]:[PASS]@'),

    # Sentry DSN keys
    (re.compile(r'(https?://)[a-f0-9]{32}@'), r'\1[DSN_KEY]@'),

    # Email addresses
    (re.compile(r'([a-zA-Z0-9._%+-]+)@([a-zA-Z0-9.-]+)\.([a-zA-Z]{2,})'), lambda m: f"{m.group(1)[:1]}***@***.{m.group(3)}"),
]

_RESERVED_ATTRS = frozenset((
    'msg', 'args', 'name', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
    'processName', 'process', 'exc_info', 'exc_text', 'stack_info',
))


class SensitiveDataFilter(Filter):
    """
    Logging filter that masks sensitive data in log messages.

    Masks tokens, credentials in connection strings and email addresses in
    the message, its args and any string/dict extra fields.
    """

    def __init__(self, name: str = '', additional_patterns: Optional[List[Tuple[re.Pattern, Replacement]]] = None):
        super().__init__(name)
        self.patterns = SENSITIVE_PATTERNS.copy()
        if additional_patterns:
            self.patterns.extend(additional_patterns)

    def filter(self, record: LogRecord) -> bool:
        """Mask the record in place. Always lets the record through."""
        if record.msg:
            record.msg = self._mask_sensitive(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask_value(v) for k, v in record.args.items()}
            elif isinstance(record.args, (list, tuple)):
                record.args = tuple(self._mask_value(arg) for arg in record.args)

        for key, value in list(record.__dict__.items()):
            if key in _RESERVED_ATTRS:
                continue
            if isinstance(value, str):
                setattr(record, key, self._mask_sensitive(value))
            elif isinstance(value, dict):
                setattr(record, key, self._mask_dict(value))

        return True

    def _mask_value(self, value: Any) -> Any:
        # Keep numbers intact so %d style formatting still works
        if isinstance(value, str):
            return self._mask_sensitive(value)
        return value

    def _mask_sensitive(self, text: str) -> str:
        """Apply all masking patterns to text."""
        if not text:
            return text

        result = text
        for pattern, replacement in self.patterns:
            result = pattern.sub(replacement, result)
        return result

    def _mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively mask sensitive data in a dictionary."""
        result = {}
        for key, value in data.items():
            if isinstance(value, str):
                result[key] = self._mask_sensitive(value)
            elif isinstance(value, dict):
                result[key] = self._mask_dict(value)
            elif isinstance(value, (list, tuple)):
                result[key] = [self._mask_value(v) for v in value]
            else:
                result[key] = value
        return result


class SecureFormatter(Formatter):
    """
    Log formatter that includes trace ID and masks sensitive data.
    """

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        include_trace_id: bool = True,
    ):
        if fmt is None:
            if include_trace_id:
                fmt = '%(asctime)s - %(name)s - %(levelname)s - [%(trace_id)s] - %(message)s'
            else:
                fmt = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

        super().__init__(fmt, datefmt)
        self.include_trace_id = include_trace_id
        self._sensitive_filter = SensitiveDataFilter()

    def format(self, record: LogRecord) -> str:
        if self.include_trace_id and not hasattr(record, 'trace_id'):
            record.trace_id = '-'

        self._sensitive_filter.filter(record)
        return super().format(record)


class JSONSecureFormatter(Formatter):
    """
    JSON log formatter with sensitive data masking, for log aggregation.
    """

    def __init__(self):
        super().__init__()
        self._sensitive_filter = SensitiveDataFilter()

    def format(self, record: LogRecord) -> str:
        self._sensitive_filter.filter(record)

        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if hasattr(record, 'trace_id'):
            log_data['trace_id'] = record.trace_id

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in ('message', 'trace_id') or key.startswith('_'):
                continue
            log_data[key] = value

        return json.dumps(log_data, default=str)


def configure_secure_logging(
    level: int = logging.INFO,
    format_type: str = 'text',  # 'text' or 'json'
    include_trace_id: bool = True,
) -> None:
    """
    Configure secure logging globally.

    Replaces root handlers with one console handler that masks sensitive data.

    Args:
        level: Logging level
        format_type: 'text' for human-readable, 'json' for structured logs
        include_trace_id: Include trace_id in text output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.addFilter(SensitiveDataFilter())

    if format_type == 'json':
        formatter = JSONSecureFormatter()
    else:
        formatter = SecureFormatter(include_trace_id=include_trace_id)

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


__all__ = [
    'SensitiveDataFilter',
    'SecureFormatter',
    'JSONSecureFormatter',
    'SENSITIVE_PATTERNS',
    'configure_secure_logging',
]
