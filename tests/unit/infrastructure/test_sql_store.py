"""
Unit tests for SqlAlchemyStore and SqlAlchemyQuery.

These tests run against a mocked AsyncSession; behavior against a real
database is covered by the integration suite.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import Integer, String, bindparam, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from dryrepo.application.declarative_repository import DeclarativeRepository
from dryrepo.domain.exceptions import (
    ConnectionError,
    DuplicateEntityError,
    EntityNotFoundError,
    StoreError,
)
from dryrepo.domain.model.tags import named_query
from dryrepo.infrastructure.adapters.secondary.persistence.named_queries import (
    NamedQueryRegistry,
)
from dryrepo.infrastructure.adapters.secondary.persistence.sql_store import (
    SqlAlchemyQuery,
    SqlAlchemyStore,
    is_mapped,
)


class Base(DeclarativeBase):
    """Test base for SQLAlchemy models."""

    pass


class Note(Base):
    __tablename__ = "store_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    body: Mapped[str] = mapped_column(String)


def _result(rows, keys=("id",), rowcount=0):
    result = MagicMock()
    result.keys.return_value = list(keys)
    result.scalars.return_value.all.return_value = rows
    result.all.return_value = rows
    result.rowcount = rowcount
    return result


@pytest.fixture
def mock_session():
    """Create a mock AsyncSession."""
    session = AsyncMock(spec=AsyncSession)
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.merge = AsyncMock()
    session.delete = AsyncMock()
    session.get = AsyncMock(return_value=None)
    session.execute = AsyncMock(return_value=_result([]))
    session.bind = MagicMock()
    session.bind.dialect.name = "sqlite"
    return session


class NoteRepository(DeclarativeRepository):
    @named_query("Note.count")
    async def count(self) -> int: ...


class TestSqlAlchemyStore:
    """Entity operations and query resolution"""

    def test_requires_session(self):
        with pytest.raises(ValueError, match="Session cannot be None"):
            SqlAlchemyStore(None)

    @pytest.mark.asyncio
    async def test_persist_adds_and_flushes(self, mock_session):
        store = SqlAlchemyStore(mock_session)
        note = Note(body="hello")

        await store.persist(note)

        mock_session.add.assert_called_once_with(note)
        mock_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_merge_returns_managed_instance(self, mock_session):
        managed = Note(id=1, body="hello")
        mock_session.merge.return_value = managed
        store = SqlAlchemyStore(mock_session)

        result = await store.merge(Note(id=1, body="hello"))

        assert result is managed
        mock_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_remove_deletes_and_flushes(self, mock_session):
        store = SqlAlchemyStore(mock_session)
        note = Note(id=1, body="hello")

        await store.remove(note)

        mock_session.delete.assert_awaited_once_with(note)
        mock_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_find_by_key_refreshes_by_default(self, mock_session):
        store = SqlAlchemyStore(mock_session)

        assert await store.find_by_key(Note, 1) is None

        mock_session.get.assert_awaited_once_with(Note, 1, populate_existing=True)

    @pytest.mark.asyncio
    async def test_populate_existing_setting(self, mock_session, monkeypatch):
        monkeypatch.setenv("STORE_POPULATE_EXISTING", "false")
        store = SqlAlchemyStore(mock_session)

        await store.find_by_key(Note, 1)

        mock_session.get.assert_awaited_once_with(Note, 1, populate_existing=False)

    def test_keeps_caller_registry_when_empty(self, mock_session):
        registry = NamedQueryRegistry()

        store = SqlAlchemyStore(mock_session, named_queries=registry)

        assert store.named_queries is registry

    @pytest.mark.asyncio
    async def test_query_registered_after_store_is_dispatched(self, mock_session):
        registry = NamedQueryRegistry()
        store = SqlAlchemyStore(mock_session, named_queries=registry)
        registry.register("Note.count", "SELECT COUNT(*) AS count FROM store_notes")
        mock_session.execute.return_value = _result([7], keys=("count",))

        assert await NoteRepository(store).count() == 7

    def test_unknown_named_query(self, mock_session):
        store = SqlAlchemyStore(mock_session)

        with pytest.raises(StoreError, match="Named query 'missing' is not registered"):
            store.resolve_named_query("missing")

    def test_named_query_result_type(self, mock_session):
        registry = NamedQueryRegistry()
        registry.register("Note.count", "SELECT COUNT(*) FROM store_notes", result_type=Note)
        store = SqlAlchemyStore(mock_session, named_queries=registry)

        assert store.resolve_named_query("Note.count")._entity is Note
        assert store.resolve_named_query("Note.count", int)._entity is None

    def test_query_from_text(self, mock_session):
        store = SqlAlchemyStore(mock_session)

        query = store.resolve_query_from_text("SELECT * FROM store_notes", Note)

        assert isinstance(query, SqlAlchemyQuery)
        assert query._entity is Note


class TestStoreErrorMapping:
    """SQLAlchemy errors surface as StoreError subclasses"""

    @pytest.mark.asyncio
    async def test_unique_violation(self, mock_session):
        mock_session.flush.side_effect = IntegrityError(
            "INSERT", {}, Exception("UNIQUE constraint failed: store_notes.body")
        )
        store = SqlAlchemyStore(mock_session)

        with pytest.raises(DuplicateEntityError) as exc_info:
            await store.persist(Note(body="hello"))

        assert exc_info.value.entity_type == "Note"
        assert exc_info.value.field_name == "body"
        assert isinstance(exc_info.value.original_error, IntegrityError)

    @pytest.mark.asyncio
    async def test_unique_violation_on_unmapped_table(self, mock_session):
        mock_session.execute.side_effect = IntegrityError(
            "INSERT", {}, Exception("UNIQUE constraint failed: audit_log.key")
        )
        query = SqlAlchemyStore(mock_session).resolve_query_from_text(
            "INSERT INTO audit_log (key) VALUES (:key)", Note
        )

        with pytest.raises(DuplicateEntityError) as exc_info:
            await query.execute_for_update_count()

        assert exc_info.value.entity_type == "audit_log"
        assert exc_info.value.field_name == "key"

    @pytest.mark.asyncio
    async def test_postgres_unique_violation(self, mock_session):
        mock_session.flush.side_effect = IntegrityError(
            "INSERT", {}, Exception("duplicate key value: Key (body)=(hello) already exists")
        )
        store = SqlAlchemyStore(mock_session)

        with pytest.raises(DuplicateEntityError) as exc_info:
            await store.persist(Note(body="hello"))

        assert exc_info.value.entity_type == "Note"
        assert exc_info.value.field_name == "body"

    @pytest.mark.asyncio
    async def test_other_integrity_error(self, mock_session):
        mock_session.flush.side_effect = IntegrityError(
            "INSERT", {}, Exception("NOT NULL constraint failed: store_notes.body")
        )
        store = SqlAlchemyStore(mock_session)

        with pytest.raises(StoreError) as exc_info:
            await store.persist(Note())

        assert not isinstance(exc_info.value, DuplicateEntityError)
        assert exc_info.value.operation == "persist"

    @pytest.mark.asyncio
    async def test_connection_error(self, mock_session):
        mock_session.get.side_effect = OperationalError(
            "SELECT", {}, Exception("connection refused")
        )
        store = SqlAlchemyStore(mock_session)

        with pytest.raises(ConnectionError) as exc_info:
            await store.find_by_key(Note, 1)

        assert exc_info.value.database == "sqlite"

    @pytest.mark.asyncio
    async def test_database_error(self, mock_session):
        mock_session.execute.side_effect = ProgrammingError(
            "SELECT", {}, Exception("syntax error near FORM")
        )
        query = SqlAlchemyStore(mock_session).resolve_query_from_text("SELECT * FORM x")

        with pytest.raises(StoreError, match="Database error during execute"):
            await query.execute_for_list()

    @pytest.mark.asyncio
    async def test_generic_sqlalchemy_error(self, mock_session):
        mock_session.merge.side_effect = SQLAlchemyError("detached instance")
        store = SqlAlchemyStore(mock_session)

        with pytest.raises(StoreError) as exc_info:
            await store.merge(Note(id=1))

        assert exc_info.value.operation == "merge"


class TestSqlAlchemyQuery:
    """Statement building and result adaptation"""

    def test_text_pagination_wraps_statement(self, mock_session):
        query = SqlAlchemyQuery(mock_session, "SELECT * FROM store_notes WHERE body = :body")
        query.bind_parameter("body", "hello")
        query.set_skip(5)
        query.set_limit(10)

        statement, parameters = query._select_statement()

        assert str(statement) == (
            "SELECT * FROM (SELECT * FROM store_notes WHERE body = :body) AS dryrepo_page "
            "LIMIT :dryrepo_limit OFFSET :dryrepo_skip"
        )
        assert parameters == {"body": "hello", "dryrepo_limit": 10, "dryrepo_skip": 5}

    def test_text_pagination_strips_trailing_semicolon(self, mock_session):
        query = SqlAlchemyQuery(mock_session, "SELECT * FROM store_notes ORDER BY id;\n")
        query.set_skip(0)
        query.set_limit(2)

        statement, _ = query._select_statement()

        assert str(statement).startswith(
            "SELECT * FROM (SELECT * FROM store_notes ORDER BY id) AS dryrepo_page "
        )

    def test_unpaginated_text_is_unchanged(self, mock_session):
        query = SqlAlchemyQuery(mock_session, "SELECT * FROM store_notes")

        statement, parameters = query._select_statement()

        assert str(statement) == "SELECT * FROM store_notes"
        assert parameters == {}

    def test_select_construct_pagination(self, mock_session):
        query = SqlAlchemyQuery(mock_session, select(Note).order_by(Note.id), result_type=Note)
        query.set_skip(2)
        query.set_limit(3)

        statement, _ = query._select_statement()

        assert "LIMIT" in str(statement)
        assert "OFFSET" in str(statement)
        assert statement.get_execution_options()["populate_existing"] is True

    def test_pagination_on_update_is_rejected(self, mock_session):
        query = SqlAlchemyQuery(mock_session, update(Note).values(body=bindparam("body")))
        query.set_skip(0)
        query.set_limit(1)

        with pytest.raises(StoreError, match="does not support pagination"):
            query._select_statement()

    @pytest.mark.asyncio
    async def test_single_without_rows_is_not_found(self, mock_session):
        query = SqlAlchemyQuery(mock_session, "SELECT * FROM store_notes", Note, "Note.all")

        with pytest.raises(EntityNotFoundError) as exc_info:
            await query.execute_for_single()

        assert exc_info.value.entity_type == "Note"
        assert exc_info.value.identifier == "Note.all"

    @pytest.mark.asyncio
    async def test_single_with_many_rows_is_store_error(self, mock_session):
        mock_session.execute.return_value = _result([Note(id=1), Note(id=2)])
        query = SqlAlchemyQuery(mock_session, "SELECT * FROM store_notes", Note)

        with pytest.raises(StoreError, match="expected one"):
            await query.execute_for_single()

    @pytest.mark.asyncio
    async def test_single_scalar(self, mock_session):
        mock_session.execute.return_value = _result([3], keys=("count",))
        query = SqlAlchemyQuery(mock_session, "SELECT COUNT(*) AS count FROM store_notes", int)

        assert await query.execute_for_single() == 3

    @pytest.mark.asyncio
    async def test_multi_column_rows(self, mock_session):
        rows = [(1, "a"), (2, "b")]
        mock_session.execute.return_value = _result(rows, keys=("id", "body"))
        query = SqlAlchemyQuery(mock_session, "SELECT id, body FROM store_notes")

        assert await query.execute_for_list() == rows

    @pytest.mark.asyncio
    async def test_update_count(self, mock_session):
        mock_session.execute.return_value = _result([], rowcount=4)
        query = SqlAlchemyQuery(mock_session, "UPDATE store_notes SET body = :body")
        query.bind_parameter("body", "x")

        assert await query.execute_for_update_count() == 4

        mock_session.flush.assert_awaited_once()
        args = mock_session.execute.await_args.args
        assert args[1] == {"body": "x"}

    def test_is_mapped(self):
        assert is_mapped(Note)
        assert not is_mapped(int)
        assert not is_mapped(None)
