"""
SQLAlchemy implementation of the store port.

Entity operations go through the unit of work of an AsyncSession and are
flushed immediately, so generated primary keys are assigned and later
queries see the change. Queries are SQL text or SQLAlchemy executable
constructs; selects whose result type is a mapped class return entities.

SQLAlchemy errors are mapped to the StoreError branch of the domain
exception hierarchy by ``handle_store_errors``.
"""

import logging
from collections.abc import Callable
from contextlib import suppress
from functools import wraps
from typing import Any

from sqlalchemy import Delete, TextClause, Update, inspect as sa_inspect, select, text
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import Executable
from sqlalchemy.sql.selectable import GenerativeSelect

from dryrepo.configuration.config import get_settings
from dryrepo.domain.exceptions import (
    ConnectionError as StoreConnectionError,
    DuplicateEntityError,
    EntityNotFoundError,
    StoreError,
)
from dryrepo.domain.ports.store import QueryHandlePort, StorePort
from dryrepo.infrastructure.adapters.secondary.persistence.named_queries import (
    NamedQueryRegistry,
)

logger = logging.getLogger(__name__)

SKIP_PARAM = "dryrepo_skip"
LIMIT_PARAM = "dryrepo_limit"


def _database_name(owner: Any) -> str:
    session = getattr(owner, "_session", None)
    bind = getattr(session, "bind", None)
    dialect = getattr(bind, "dialect", None)
    return getattr(dialect, "name", "database")


def _duplicate_field(error_str: str) -> tuple[str | None, str]:
    """Extract (table, field) from a unique constraint message."""
    table, field_name = None, "id"
    if "Key (" in error_str:
        # PostgreSQL format: Key (field)=(value) already exists
        with suppress(IndexError):
            field_name = error_str.split("Key (")[1].split(")")[0]
    elif "failed:" in error_str:
        # SQLite format: UNIQUE constraint failed: table.field
        with suppress(IndexError, ValueError):
            qualified = error_str.split("failed:")[1].strip().split(",")[0]
            table, field_name = qualified.split(".", 1)
    return table, field_name


def _entity_name(table: str | None, candidates: tuple[Any, ...]) -> str:
    """
    Map a table back to the name of its mapped class.

    Candidates are the entities or entity classes an operation worked on;
    every class mapped by their registries is considered. Falls back to
    the table name, or to "Entity" when the table is unknown.
    """
    for candidate in candidates:
        entity_class = candidate if isinstance(candidate, type) else type(candidate)
        mapper = sa_inspect(entity_class, raiseerr=False)
        if mapper is None:
            continue
        if table is None:
            return entity_class.__name__
        for other in mapper.registry.mappers:
            if getattr(other.local_table, "name", None) == table:
                return other.class_.__name__
    return table or "Entity"


def handle_store_errors(operation: str) -> Callable[..., Any]:
    """
    Decorator to convert SQLAlchemy errors into store exceptions.

    Args:
        operation: Name of the store operation for error messages

    Returns:
        Decorated coroutine that raises StoreError subclasses only
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            try:
                return await func(self, *args, **kwargs)
            except IntegrityError as e:
                error_str = str(e.orig) if e.orig else str(e)
                if "unique" in error_str.lower() or "duplicate" in error_str.lower():
                    table, field_name = _duplicate_field(error_str)
                    candidates = (getattr(self, "_entity", None), *args)
                    raise DuplicateEntityError(
                        entity_type=_entity_name(table, candidates),
                        field_name=field_name,
                        original_error=e,
                    ) from e
                raise StoreError(
                    operation,
                    message=f"Integrity error during {operation}",
                    original_error=e,
                ) from e
            except DBAPIError as e:
                error_str = str(e).lower()
                if "connection" in error_str or "timeout" in error_str:
                    raise StoreConnectionError(
                        database=_database_name(self),
                        message=f"Database connection error during {operation}",
                        original_error=e,
                    ) from e
                raise StoreError(
                    operation,
                    message=f"Database error during {operation}",
                    original_error=e,
                ) from e
            except SQLAlchemyError as e:
                raise StoreError(operation, original_error=e) from e

        return wrapper

    return decorator


def is_mapped(result_type: Any) -> bool:
    """Whether ``result_type`` is an ORM-mapped class."""
    return isinstance(result_type, type) and sa_inspect(result_type, raiseerr=False) is not None


class SqlAlchemyQuery(QueryHandlePort):
    """
    Query handle over a single SQLAlchemy statement.

    Parameters and pagination accumulate on the handle and are applied when
    it is executed.
    """

    def __init__(
        self,
        session: AsyncSession,
        statement: str | Executable,
        result_type: Any = None,
        identifier: str | None = None,
        populate_existing: bool = True,
    ) -> None:
        self._session = session
        self._statement = text(statement) if isinstance(statement, str) else statement
        self._entity = result_type if is_mapped(result_type) else None
        self._result_name = getattr(result_type, "__name__", "result")
        self._identifier = identifier
        self._populate_existing = populate_existing
        self._parameters: dict[str, Any] = {}
        self._skip: int | None = None
        self._limit: int | None = None

    def bind_parameter(self, name: str, value: Any) -> None:
        self._parameters[name] = value

    def set_skip(self, skip: int) -> None:
        self._skip = skip

    def set_limit(self, limit: int) -> None:
        self._limit = limit

    def _paginated_text(self, statement: TextClause) -> tuple[TextClause, dict[str, Any]]:
        """
        Wrap a textual select as a subquery with LIMIT and OFFSET.

        Trailing semicolons are stripped. Row order relies on the database
        keeping the inner ORDER BY when selecting from the subquery, which
        SQLite, PostgreSQL and MySQL do in practice but SQL does not
        guarantee.
        """
        clauses = []
        parameters: dict[str, Any] = {}
        if self._limit is not None:
            clauses.append(f"LIMIT :{LIMIT_PARAM}")
            parameters[LIMIT_PARAM] = self._limit
        if self._skip is not None:
            clauses.append(f"OFFSET :{SKIP_PARAM}")
            parameters[SKIP_PARAM] = self._skip
        inner = statement.text.strip().rstrip(";").rstrip()
        wrapped = f"SELECT * FROM ({inner}) AS dryrepo_page {' '.join(clauses)}"
        return text(wrapped), parameters

    def _select_statement(self) -> tuple[Executable, dict[str, Any]]:
        statement = self._statement
        parameters = dict(self._parameters)
        paginate = self._skip is not None or self._limit is not None

        if isinstance(statement, TextClause):
            if paginate:
                statement, page = self._paginated_text(statement)
                parameters.update(page)
            if self._entity is not None:
                statement = select(self._entity).from_statement(statement)
        elif isinstance(statement, GenerativeSelect):
            if self._skip is not None:
                statement = statement.offset(self._skip)
            if self._limit is not None:
                statement = statement.limit(self._limit)
        elif paginate:
            raise StoreError(
                "paginate",
                message=f"Query '{self._identifier}' does not support pagination",
            )

        if self._populate_existing:
            statement = statement.execution_options(populate_existing=True)
        return statement, parameters

    async def _fetch(self) -> list[Any]:
        statement, parameters = self._select_statement()
        await self._session.flush()
        logger.debug(f"Executing select {self._identifier} with {len(parameters)} parameter(s)")
        result = await self._session.execute(statement, parameters or None)
        if self._entity is not None or len(result.keys()) == 1:
            return list(result.scalars().all())
        return list(result.all())

    @handle_store_errors("execute")
    async def execute_for_list(self) -> list[Any]:
        return await self._fetch()

    @handle_store_errors("execute")
    async def execute_for_single(self) -> Any:
        rows = await self._fetch()
        if not rows:
            raise EntityNotFoundError(self._result_name, self._identifier)
        if len(rows) > 1:
            raise StoreError(
                "execute",
                message=f"Query '{self._identifier}' returned {len(rows)} results, expected one",
            )
        return rows[0]

    @handle_store_errors("execute_update")
    async def execute_for_update_count(self) -> int:
        statement = self._statement
        if isinstance(statement, (Update, Delete)):
            statement = statement.execution_options(synchronize_session=False)
        await self._session.flush()
        logger.debug(f"Executing update {self._identifier}")
        result = await self._session.execute(statement, self._parameters or None)
        return result.rowcount


class SqlAlchemyStore(StorePort):
    """
    Store backed by a SQLAlchemy AsyncSession.

    The store never begins, commits or rolls back transactions; the owner
    of the session does.
    """

    def __init__(
        self,
        session: AsyncSession,
        named_queries: NamedQueryRegistry | None = None,
        populate_existing: bool | None = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            session: SQLAlchemy async session for database operations
            named_queries: Registry resolving named queries
            populate_existing: Refresh loaded entities on read. Defaults to
                the STORE_POPULATE_EXISTING setting.

        Raises:
            ValueError: If session is None
        """
        if session is None:
            raise ValueError("Session cannot be None")
        if populate_existing is None:
            populate_existing = get_settings().store_populate_existing
        self._session = session
        self._named_queries = named_queries if named_queries is not None else NamedQueryRegistry()
        self._populate_existing = populate_existing

    @property
    def session(self) -> AsyncSession:
        """Get the database session."""
        return self._session

    @property
    def named_queries(self) -> NamedQueryRegistry:
        return self._named_queries

    @handle_store_errors("persist")
    async def persist(self, entity: Any) -> None:
        self._session.add(entity)
        await self._session.flush()

    @handle_store_errors("merge")
    async def merge(self, entity: Any) -> Any:
        merged = await self._session.merge(entity)
        await self._session.flush()
        return merged

    @handle_store_errors("remove")
    async def remove(self, entity: Any) -> None:
        await self._session.delete(entity)
        await self._session.flush()

    @handle_store_errors("find")
    async def find_by_key(self, entity_type: type, key: Any) -> Any | None:
        return await self._session.get(
            entity_type, key, populate_existing=self._populate_existing
        )

    def resolve_named_query(self, name: str, result_type: Any = None) -> SqlAlchemyQuery:
        """
        Resolve a registered query.

        The declared result type of the calling method wins over the entity
        the query was declared on.

        Raises:
            StoreError: If no query is registered under ``name``
        """
        definition = self._named_queries.get(name)
        if definition is None:
            raise StoreError("resolve", message=f"Named query '{name}' is not registered")
        return SqlAlchemyQuery(
            self._session,
            definition.statement,
            result_type=result_type if result_type is not None else definition.result_type,
            identifier=name,
            populate_existing=self._populate_existing,
        )

    def resolve_query_from_text(self, query_text: str, result_type: Any = None) -> SqlAlchemyQuery:
        return SqlAlchemyQuery(
            self._session,
            query_text,
            result_type=result_type,
            identifier=query_text,
            populate_existing=self._populate_existing,
        )
