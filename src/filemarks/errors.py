"""Error taxonomy and the error reporter shared by the engine's components."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeVar

from loguru import logger

from filemarks.models.node import now_iso

T = TypeVar("T")


class ErrorCode(StrEnum):
    UNKNOWN = "UNKNOWN"
    NOT_FOUND = "NOT_FOUND"
    INVALID_TRANSFORM = "INVALID_TRANSFORM"
    JSON_PARSE = "JSON_PARSE"
    CORRUPTED_DATA = "CORRUPTED_DATA"
    STORAGE_READ = "STORAGE_READ"
    STORAGE_WRITE = "STORAGE_WRITE"


class ErrorSeverity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class FilemarkError(Exception):
    """Structured error with a code, a severity and context for a human to act on."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.severity = severity
        self.context = context or {}
        self.timestamp = now_iso()

    @classmethod
    def from_error(
        cls,
        error: BaseException,
        code: ErrorCode = ErrorCode.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: dict[str, Any] | None = None,
    ) -> "FilemarkError":
        if isinstance(error, FilemarkError):
            return error
        return cls(str(error) or type(error).__name__, code, severity, context)

    @classmethod
    def not_found(cls, what: str, key: str) -> "FilemarkError":
        return cls(f"{what} not found: {key}", ErrorCode.NOT_FOUND, ErrorSeverity.INFO, {what: key})

    @classmethod
    def invalid_transform(cls, message: str, **context: Any) -> "FilemarkError":
        return cls(message, ErrorCode.INVALID_TRANSFORM, ErrorSeverity.INFO, context)

    @classmethod
    def json_parse(cls, error: BaseException, path: str) -> "FilemarkError":
        return cls(str(error) or "Invalid JSON", ErrorCode.JSON_PARSE, ErrorSeverity.WARNING,
                   {"path": path, "operation": "load"})

    @classmethod
    def corrupted_data(cls, path: str, detail: str = "") -> "FilemarkError":
        message = "Corrupted data detected" + (f": {detail}" if detail else "")
        return cls(message, ErrorCode.CORRUPTED_DATA, ErrorSeverity.WARNING,
                   {"path": path, "operation": "load"})

    @classmethod
    def storage_read(cls, error: BaseException, path: str) -> "FilemarkError":
        return cls(str(error) or "Failed to read storage", ErrorCode.STORAGE_READ,
                   ErrorSeverity.ERROR, {"path": path, "operation": "read"})

    @classmethod
    def storage_write(cls, error: BaseException, path: str) -> "FilemarkError":
        return cls(str(error) or "Failed to write storage", ErrorCode.STORAGE_WRITE,
                   ErrorSeverity.ERROR, {"path": path, "operation": "write"})

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


@dataclass(frozen=True)
class RecoveryAction:
    """A user-triggerable fix offered alongside an error (e.g. discard a corrupted file)."""

    label: str
    action: Callable[[], None]


@dataclass(frozen=True)
class ErrorNotice:
    """What error listeners receive."""

    error: FilemarkError
    recovery: RecoveryAction | None = None


ErrorListener = Callable[[ErrorNotice], None]


class ErrorReporter:
    """Logs errors and forwards user-facing ones to subscribed listeners.

    One instance is created at startup and handed to every component that
    reports errors.
    """

    def __init__(self) -> None:
        self._listeners: list[ErrorListener] = []

    def subscribe(self, listener: ErrorListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def report(
        self,
        error: BaseException,
        *,
        recovery: RecoveryAction | None = None,
        show: bool = True,
        context: dict[str, Any] | None = None,
    ) -> FilemarkError:
        """Log an error and, unless silent or informational, notify listeners."""
        fm_error = FilemarkError.from_error(error, context=context)
        self._log(fm_error)
        if show and fm_error.severity != ErrorSeverity.INFO:
            notice = ErrorNotice(fm_error, recovery)
            for listener in list(self._listeners):
                try:
                    listener(notice)
                except Exception:
                    logger.exception("Error listener failed while handling {}", fm_error.code)
        return fm_error

    def report_silent(self, error: BaseException, context: dict[str, Any] | None = None) -> FilemarkError:
        return self.report(error, show=False, context=context)

    def wrap(self, fn: Callable[..., T]) -> Callable[..., T | None]:
        """Wrap fn so that any exception it raises is reported and swallowed."""

        def wrapper(*args: Any, **kwargs: Any) -> T | None:
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                self.report(e)
                return None

        return wrapper

    def _log(self, error: FilemarkError) -> None:
        context = f" {error.context}" if error.context else ""
        if error.severity == ErrorSeverity.INFO:
            logger.debug("[{}] {}{}", error.code, error.message, context)
        elif error.severity == ErrorSeverity.WARNING:
            logger.warning("[{}] {}{}", error.code, error.message, context)
        else:
            logger.error("[{}] {}{}", error.code, error.message, context)
