"""
Declarative tags for repository methods and their parameters.

Operation tags select the persistence operation a method performs. Role
markers are placed in ``typing.Annotated`` metadata to select how a
parameter is bound.

Example:
    class BookRepository(DeclarativeRepository):
        @named_query("Book.findByTitle")
        @optional
        async def find_by_title(
            self,
            title: Annotated[str, QueryParam("title")],
            offset: Annotated[int, Offset()],
            max_results: Annotated[int, MaxResults()],
        ) -> list[Book]: ...
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from dryrepo.domain.model.operations import OperationKind, OperationTag

F = TypeVar("F", bound=Callable[..., Any])

OPERATION_TAGS_ATTR = "__dryrepo_operations__"
OPTIONAL_ATTR = "__dryrepo_optional__"


def _tag(func: F, tag: OperationTag) -> F:
    # Every tag is kept so that a doubly-tagged method can be rejected later.
    tags = getattr(func, OPERATION_TAGS_ATTR, ())
    setattr(func, OPERATION_TAGS_ATTR, (*tags, tag))
    return func


def persist(func: F) -> F:
    """Persist the entity passed as first argument."""
    return _tag(func, OperationTag(OperationKind.PERSIST_ENTITY))


def merge(func: F) -> F:
    """Merge the entity passed as first argument and return the managed copy."""
    return _tag(func, OperationTag(OperationKind.MERGE_ENTITY))


def remove(func: F) -> F:
    """Remove the entity passed as first argument."""
    return _tag(func, OperationTag(OperationKind.REMOVE_ENTITY))


def find(func: F) -> F:
    """Look up the return type by the primary key passed as first argument."""
    return _tag(func, OperationTag(OperationKind.FIND_BY_KEY))


def named_query(name: str, update: bool = False) -> Callable[[F], F]:
    """Execute the pre-registered query called ``name``."""

    def decorator(func: F) -> F:
        return _tag(func, OperationTag(OperationKind.NAMED_QUERY, query=name, update=update))

    return decorator


def query_string(text: str, update: bool = False) -> Callable[[F], F]:
    """Execute the literal query ``text``."""

    def decorator(func: F) -> F:
        return _tag(func, OperationTag(OperationKind.AD_HOC_QUERY, query=text, update=update))

    return decorator


def optional(func: F) -> F:
    """Return None instead of raising when a single-result query matches no row."""
    setattr(func, OPTIONAL_ATTR, True)
    return func


@dataclass(frozen=True)
class QueryParam:
    """Bind the parameter to the named query parameter ``name``."""

    name: str


@dataclass(frozen=True)
class Offset:
    """Use the parameter as the number of rows to skip."""


@dataclass(frozen=True)
class MaxResults:
    """Use the parameter as the maximum number of rows to return."""
