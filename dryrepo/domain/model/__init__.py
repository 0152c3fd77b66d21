from dryrepo.domain.model.operations import (
    MethodDescriptor,
    OperationKind,
    OperationTag,
    ParameterBinding,
    ParameterRole,
    ParameterSpec,
    ReturnShape,
)
from dryrepo.domain.model.tags import (
    MaxResults,
    Offset,
    QueryParam,
    find,
    merge,
    named_query,
    optional,
    persist,
    query_string,
    remove,
)

__all__ = [
    "MethodDescriptor",
    "OperationKind",
    "OperationTag",
    "ParameterBinding",
    "ParameterRole",
    "ParameterSpec",
    "ReturnShape",
    "MaxResults",
    "Offset",
    "QueryParam",
    "find",
    "merge",
    "named_query",
    "optional",
    "persist",
    "query_string",
    "remove",
]
