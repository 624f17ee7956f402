"""Binding engine: tags, coercion, binding bag, injectors, builder and transactions."""

from sqlbind.core.bag import BindingBag, BindingEntry, BindingMode, CoercedView, Ref
from sqlbind.core.builder import BuiltStatement, StatementBuilder, StatementContext
from sqlbind.core.coercion import ParamKind, SemanticType, cast_out_value, coerce, normalize_scalar, render_literal
from sqlbind.core.injectors import InInjector, InjectorFactory, InOutInjector, OutInjector, validate_variable
from sqlbind.core.result import OUT_KEY, CallResult
from sqlbind.core.tags import DEFAULT_TAG_PREFIX, TagAllocator
from sqlbind.core.transaction import TransactionStack, TransactionState, savepoint_identifier

__all__ = (
    "DEFAULT_TAG_PREFIX",
    "OUT_KEY",
    "BindingBag",
    "BindingEntry",
    "BindingMode",
    "BuiltStatement",
    "CallResult",
    "CoercedView",
    "InInjector",
    "InOutInjector",
    "InjectorFactory",
    "OutInjector",
    "ParamKind",
    "Ref",
    "SemanticType",
    "StatementBuilder",
    "StatementContext",
    "TagAllocator",
    "TransactionStack",
    "TransactionState",
    "cast_out_value",
    "coerce",
    "normalize_scalar",
    "render_literal",
    "savepoint_identifier",
    "validate_variable",
)
