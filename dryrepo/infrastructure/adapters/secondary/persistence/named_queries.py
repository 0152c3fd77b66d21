"""Registry of pre-registered (named) queries.

Named queries are declared on mapped entity classes through a
``__named_queries__`` mapping, or registered explicitly:

    class Book(Base):
        __tablename__ = "books"
        __named_queries__ = {
            "Book.findAll": "SELECT * FROM books ORDER BY id",
            "Book.setYear": "UPDATE books SET year = :year",
        }

    registry = NamedQueryRegistry.from_declarative_base(Base)

A query may be SQL text or any SQLAlchemy executable construct. Queries
declared on an entity class map their rows to that class.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql.expression import Executable

logger = logging.getLogger(__name__)

NAMED_QUERIES_ATTR = "__named_queries__"


@dataclass(frozen=True)
class NamedQueryDefinition:
    """A named query and the type its rows map to."""

    name: str
    statement: str | Executable
    result_type: type | None = None


class NamedQueryRegistry:
    """Name-to-query lookup used by the SQLAlchemy store."""

    def __init__(self) -> None:
        self._definitions: dict[str, NamedQueryDefinition] = {}

    @classmethod
    def from_declarative_base(cls, base: type[DeclarativeBase]) -> "NamedQueryRegistry":
        """Collect the named queries declared on every class mapped by ``base``."""
        registry = cls()
        for mapper in base.registry.mappers:
            entity = mapper.class_
            for name, statement in vars(entity).get(NAMED_QUERIES_ATTR, {}).items():
                registry.register(name, statement, result_type=entity)
        return registry

    def register(
        self,
        name: str,
        statement: str | Executable,
        result_type: type | None = None,
    ) -> None:
        """
        Register a named query.

        Raises:
            ValueError: If the name is empty or already registered
        """
        if not name:
            raise ValueError("Query name cannot be empty")
        if name in self._definitions:
            raise ValueError(f"Named query '{name}' is already registered")
        self._definitions[name] = NamedQueryDefinition(name, statement, result_type)
        logger.debug(f"Registered named query {name}")

    def get(self, name: str) -> NamedQueryDefinition | None:
        return self._definitions.get(name)

    def __contains__(self, name: Any) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)
