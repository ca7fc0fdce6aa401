"""
Error types and structured logging for huginn.

Every huginn failure is a ``HuginnError`` carrying an ``ErrorSeverity``.
Logging goes through structlog on top of the stdlib ``huginn`` logger, which
writes to stderr so stdout stays reserved for command output.
"""

import logging
import sys
import time
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

import structlog


class ErrorSeverity(Enum):
    """Error severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class HuginnError(Exception):
    """Base exception for huginn errors."""

    def __init__(self, message: str, severity: ErrorSeverity = ErrorSeverity.ERROR):
        super().__init__(message)
        self.message = message
        self.severity = severity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
        }


class ConfigurationError(HuginnError):
    """Unreadable or invalid configuration."""

    def __init__(self, message: str):
        super().__init__(message, ErrorSeverity.ERROR)


class InvalidQuery(HuginnError):
    """A search query that cannot be compiled into a pattern.

    Returned (not raised) by the search engine so callers can surface it next
    to an empty result list.
    """

    def __init__(self, message: str, query: str = "", position: Optional[int] = None):
        super().__init__(message, ErrorSeverity.WARNING)
        self.query = query
        self.position = position

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update({"query": self.query, "position": self.position})
        return payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InvalidQuery):
            return NotImplemented
        return (self.message, self.query, self.position) == (
            other.message,
            other.query,
            other.position,
        )

    def __hash__(self) -> int:
        return hash((self.message, self.query, self.position))


class IndexUnavailable(HuginnError):
    """A query operation ran before any index was built."""

    def __init__(self, message: str = "No index available. Build the index first."):
        super().__init__(message, ErrorSeverity.ERROR)


class IndexImportError(HuginnError):
    """Malformed JSON or a structural violation while importing an index."""

    def __init__(self, message: str, path: str = "$"):
        super().__init__(f"{path}: {message}", ErrorSeverity.ERROR)
        self.path = path
        self.reason = message


class IndexingError(HuginnError):
    """An index rebuild failed as a whole."""

    def __init__(self, message: str, severity: ErrorSeverity = ErrorSeverity.ERROR):
        super().__init__(message, severity)


_LEVEL_EMOJI = {
    "critical": "🚨",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "debug": "🔍",
}

# Checked in order; the first matching type wins
_GENERIC_SEVERITY: List[Tuple[Tuple[Type[BaseException], ...], ErrorSeverity]] = [
    ((SystemExit, KeyboardInterrupt), ErrorSeverity.CRITICAL),
    ((PermissionError, FileNotFoundError, UnicodeDecodeError), ErrorSeverity.WARNING),
]

_SUGGESTIONS: List[Tuple[Type[BaseException], Dict[str, str]]] = [
    (IndexUnavailable, {"command": "Run 'huginn index' to build the code index"}),
    (IndexImportError, {"immediate": "The exported index is damaged; rebuild it with 'huginn index'"}),
    (ConfigurationError, {"immediate": "Check the YAML passed with --config"}),
    (PermissionError, {"immediate": "Check file and directory permissions"}),
    (FileNotFoundError, {"immediate": "Verify the docs path exists"}),
    (UnicodeDecodeError, {"immediate": "Check the 'encoding' setting in the config"}),
]


def _add_emoji(logger, method_name, event_dict):
    event_dict.setdefault("emoji", _LEVEL_EMOJI.get(event_dict.get("level", "info"), "📝"))
    return event_dict


def _build_processors(verbose: bool) -> list:
    renderer = structlog.dev.ConsoleRenderer(colors=True) if verbose else structlog.processors.JSONRenderer()
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_emoji,
        renderer,
    ]


class _StderrHandler(logging.StreamHandler):
    """Stream handler that always writes to the current ``sys.stderr``."""

    def emit(self, record: logging.LogRecord) -> None:
        self.stream = sys.stderr
        super().emit(record)


class ErrorHandler:
    """Structured logging plus severity-aware error reporting.

    ``handle_error`` logs an exception at the level its severity calls for
    and tells the caller whether it may carry on.
    """

    def __init__(self, logger_name: str = "huginn", verbose: bool = False):
        self.logger_name = logger_name
        self.verbose = verbose
        self._configure()
        self.logger = structlog.get_logger(logger_name)
        self.started_at = time.time()

    def _configure(self) -> None:
        structlog.configure(
            processors=_build_processors(self.verbose),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=False,
        )

        std_logger = logging.getLogger(self.logger_name)
        if not any(isinstance(h, _StderrHandler) for h in std_logger.handlers):
            handler = _StderrHandler()
            handler.setFormatter(logging.Formatter("%(message)s"))
            std_logger.addHandler(handler)
        std_logger.propagate = False
        std_logger.setLevel(logging.DEBUG if self.verbose else logging.INFO)

    @staticmethod
    def severity_of(error: BaseException) -> ErrorSeverity:
        if isinstance(error, HuginnError):
            return error.severity
        for types, severity in _GENERIC_SEVERITY:
            if isinstance(error, types):
                return severity
        return ErrorSeverity.ERROR

    @staticmethod
    def suggestions_for(error: BaseException) -> Dict[str, str]:
        for error_type, suggestions in _SUGGESTIONS:
            if isinstance(error, error_type):
                return dict(suggestions)
        return {}

    def handle_error(
        self,
        error: BaseException,
        context: str = "",
        suggestions: Optional[Dict[str, str]] = None,
    ) -> bool:
        """
        Log ``error`` with context and suggestions.

        Returns:
            bool: True when execution can continue, False when it should stop
        """
        severity = self.severity_of(error)
        event: Dict[str, Any] = {
            "error_type": type(error).__name__,
            "context": context,
            "severity": severity.value,
            "elapsed": round(time.time() - self.started_at, 3),
        }
        suggestions = suggestions or self.suggestions_for(error)
        if suggestions:
            event["suggestions"] = suggestions

        log = getattr(self.logger, severity.value)
        log(str(error), **event)

        if isinstance(error, HuginnError):
            return severity in (ErrorSeverity.DEBUG, ErrorSeverity.INFO, ErrorSeverity.WARNING)
        return severity is not ErrorSeverity.CRITICAL

    def log(self, level: str, message: str, emoji: str, **context) -> None:
        getattr(self.logger, level)(message, emoji=emoji, **context)


_error_handler: Optional[ErrorHandler] = None


def get_error_handler(verbose: bool = False) -> ErrorHandler:
    """Return the process-wide handler, creating it on first use."""
    global _error_handler
    if _error_handler is None:
        _error_handler = ErrorHandler(verbose=verbose)
    return _error_handler


def configure_logging(verbose: bool = False) -> ErrorHandler:
    """Replace the process-wide handler, e.g. when the CLI gets ``--verbose``."""
    global _error_handler
    _error_handler = ErrorHandler(verbose=verbose)
    return _error_handler


def handle_error(
    error: BaseException, context: str = "", suggestions: Optional[Dict[str, str]] = None
) -> bool:
    return get_error_handler().handle_error(error, context, suggestions)


def log_info(message: str, emoji: str = "ℹ️", **context):
    get_error_handler().log("info", message, emoji, **context)


def log_warning(message: str, emoji: str = "⚠️", **context):
    get_error_handler().log("warning", message, emoji, **context)


def log_error(message: str, emoji: str = "❌", **context):
    get_error_handler().log("error", message, emoji, **context)


def log_success(message: str, emoji: str = "✅", **context):
    get_error_handler().log("info", message, emoji, **context)


def log_progress(message: str, current: int, total: int, **context):
    percent = round(current / total * 100, 1) if total > 0 else 0
    get_error_handler().log(
        "info", message, "📈", current=current, total=total, progress_percent=percent, **context
    )
