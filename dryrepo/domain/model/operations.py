"""Operation classification value objects.

A declared repository method is classified once into a MethodDescriptor;
each invocation then produces fresh ParameterBinding values from the
descriptor and the live arguments.
"""

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any


class OperationKind(Enum):
    """Persistence operation a declared method performs."""

    PERSIST_ENTITY = "persist"
    MERGE_ENTITY = "merge"
    REMOVE_ENTITY = "remove"
    FIND_BY_KEY = "find"
    NAMED_QUERY = "named_query"
    AD_HOC_QUERY = "query_string"

    @property
    def takes_entity(self) -> bool:
        return self in (
            OperationKind.PERSIST_ENTITY,
            OperationKind.MERGE_ENTITY,
            OperationKind.REMOVE_ENTITY,
        )

    @property
    def executes_query(self) -> bool:
        return self in (OperationKind.NAMED_QUERY, OperationKind.AD_HOC_QUERY)


class ReturnShape(Enum):
    """Shape of the value a declared method returns."""

    COLLECTION = "collection"
    SINGLE = "single"
    VOID = "void"
    COUNT = "count"


class ParameterRole(Enum):
    """Binding behavior of a declared method parameter."""

    NONE = "none"
    BIND = "bind"  # Named query parameter
    OFFSET = "offset"  # Rows to skip
    LIMIT = "limit"  # Maximum rows to return


@dataclass(frozen=True)
class OperationTag:
    """Operation tag attached to a method by a decorator."""

    kind: OperationKind
    query: str | None = None
    update: bool = False


@dataclass(frozen=True)
class ParameterSpec:
    """Static role of one parameter, derived from the signature."""

    position: int
    name: str
    role: ParameterRole = ParameterRole.NONE
    bind_name: str | None = None


@dataclass(frozen=True)
class MethodDescriptor:
    """
    Immutable classification of a declared method.

    Attributes:
        method_name: Qualified name of the method, used in error messages
        operation_kind: Operation the method performs
        query_identifier: Named query name or literal query text
        is_update_query: Whether the query mutates rows
        is_optional_result: Whether a missing single result yields None
        return_shape: Declared shape of the return value
        result_type: Entity (or element) type named by the return annotation
        entity_type_name: Declared type name of the first parameter
        parameter_roles: Per-parameter roles, in declaration order
        signature: Signature used to bind live arguments
    """

    method_name: str
    operation_kind: OperationKind
    return_shape: ReturnShape
    signature: inspect.Signature
    parameter_roles: tuple[ParameterSpec, ...] = ()
    query_identifier: str | None = None
    is_update_query: bool = False
    is_optional_result: bool = False
    result_type: Any = None
    entity_type_name: str = "Entity"


@dataclass(frozen=True)
class ParameterBinding:
    """One live argument paired with its parameter role. Never cached."""

    position: int
    role: ParameterRole
    runtime_value: Any
    bind_name: str | None = None
