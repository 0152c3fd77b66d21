"""Declarative repositories: tagged method signatures dispatched to a store."""

from dryrepo.application.declarative_repository import DeclarativeRepository
from dryrepo.application.operation_dispatcher import OperationDispatcher
from dryrepo.domain.exceptions import (
    ConfigurationError,
    EntityNotFoundError,
    RepositoryError,
    StoreError,
    ValidationError,
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
    "DeclarativeRepository",
    "OperationDispatcher",
    # Exceptions
    "ConfigurationError",
    "EntityNotFoundError",
    "RepositoryError",
    "StoreError",
    "ValidationError",
    # Tags
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
