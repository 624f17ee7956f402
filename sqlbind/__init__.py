"""sqlbind: statement construction and parameter binding with typed injectors."""

from sqlbind import adapters, base, core, driver, exceptions, typing, utils
from sqlbind.__metadata__ import __version__
from sqlbind.base import SQLBind, get_default_service, set_default_service
from sqlbind.config import DatabaseConfig, SessionConfig
from sqlbind.core import (
    BindingMode,
    CallResult,
    InInjector,
    InOutInjector,
    OutInjector,
    ParamKind,
    Ref,
    SemanticType,
    TagAllocator,
    TransactionState,
)
from sqlbind.driver import Session
from sqlbind.exceptions import (
    BackendError,
    BackendExecutionError,
    ImproperConfigurationError,
    InvalidValueError,
    NotNullableError,
    RedefinitionError,
    SQLBindError,
    UnknownConnectionError,
    ValidationError,
)
from sqlbind.protocols import Connection, Handle

__all__ = (
    "BackendError",
    "BackendExecutionError",
    "BindingMode",
    "CallResult",
    "Connection",
    "DatabaseConfig",
    "Handle",
    "ImproperConfigurationError",
    "InInjector",
    "InOutInjector",
    "InvalidValueError",
    "NotNullableError",
    "OutInjector",
    "ParamKind",
    "RedefinitionError",
    "Ref",
    "SQLBind",
    "SQLBindError",
    "SemanticType",
    "Session",
    "SessionConfig",
    "TagAllocator",
    "TransactionState",
    "UnknownConnectionError",
    "ValidationError",
    "__version__",
    "adapters",
    "base",
    "core",
    "driver",
    "exceptions",
    "get_default_service",
    "set_default_service",
    "typing",
    "utils",
)
