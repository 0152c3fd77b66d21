"""SQLAlchemy persistence adapter for declarative repositories."""

from dryrepo.infrastructure.adapters.secondary.persistence.named_queries import (
    NamedQueryDefinition,
    NamedQueryRegistry,
)
from dryrepo.infrastructure.adapters.secondary.persistence.sql_store import (
    SqlAlchemyQuery,
    SqlAlchemyStore,
    handle_store_errors,
)

__all__ = [
    "NamedQueryDefinition",
    "NamedQueryRegistry",
    "SqlAlchemyQuery",
    "SqlAlchemyStore",
    "handle_store_errors",
]
