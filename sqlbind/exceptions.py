from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Optional

__all__ = (
    "BackendError",
    "BackendExecutionError",
    "ImproperConfigurationError",
    "InvalidValueError",
    "NotNullableError",
    "RedefinitionError",
    "SQLBindError",
    "UnknownConnectionError",
    "ValidationError",
    "wrap_backend_errors",
)


class SQLBindError(Exception):
    """Base exception class from which all sqlbind exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``SQLBindError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


# -- Validation Errors --
class ValidationError(SQLBindError):
    """Base class for errors in the way a statement template is constructed.

    These always propagate to the caller, whatever the session throw mode is.
    """


class NotNullableError(ValidationError):
    """A null value was injected without the nullable flag."""

    def __init__(self, message: Optional[str] = None) -> None:
        if message is None:
            message = "The value is not nullable."
        super().__init__(message)


class InvalidValueError(ValidationError):
    """A value is neither scalar nor convertible to a string."""

    value_type: Optional[str]

    def __init__(self, message: str, value: Any = None) -> None:
        detail_message = message
        self.value_type = None
        if value is not None:
            self.value_type = type(value).__name__
            detail_message = f"{message} (got {self.value_type})"
        super().__init__(detail=detail_message)


class RedefinitionError(ValidationError):
    """The semantic type of a locked injector was specified again."""

    def __init__(self, message: Optional[str] = None) -> None:
        if message is None:
            message = "Cannot redefine the type of an injector."
        super().__init__(message)


# -- Backend Errors --
class BackendError(SQLBindError):
    """Base class for failures surfaced by the backend connection."""


class BackendExecutionError(BackendError):
    """The connection or a prepared handle failed to prepare, bind, execute or fetch."""

    sql: Optional[str]

    def __init__(self, message: str, sql: Optional[str] = None) -> None:
        detail_message = message
        if sql:
            detail_message = f"{message}\nSQL: {sql}"
        super().__init__(detail=detail_message)
        self.sql = sql


# -- Configuration Errors --
class ImproperConfigurationError(SQLBindError):
    """Improper Configuration error.

    This exception is raised when a session or connection is configured in a way that cannot work.
    """


class UnknownConnectionError(ImproperConfigurationError):
    """No connection is registered under the requested identifier."""

    cnx_id: Optional[str]

    def __init__(self, cnx_id: Optional[str]) -> None:
        self.cnx_id = cnx_id
        if cnx_id is None:
            super().__init__("No default connection is registered.")
        else:
            super().__init__(f"Unknown connection: {cnx_id!r}")


@contextmanager
def wrap_backend_errors(sql: Optional[str] = None) -> Generator[None, None, None]:
    """Translate any failure raised by a third-party backend into ``BackendExecutionError``.

    Errors that already belong to the sqlbind hierarchy pass through unchanged.

    Args:
        sql: SQL text attached to the wrapped error.
    """
    try:
        yield
    except SQLBindError:
        raise
    except Exception as exc:
        msg = f"Backend error: {exc}"
        raise BackendExecutionError(msg, sql=sql) from exc
