"""
Declarative repository base class.

Subclasses declare tagged methods without bodies; at class creation every
declared method is replaced by a coroutine that forwards the call to the
class's OperationDispatcher. Concrete helper methods are left as written
and may call the declared ones.

Example:
    class BookRepository(DeclarativeRepository):
        @persist
        async def create(self, book: Book) -> Book: ...

        @find
        async def find(self, book_id: int) -> Book | None: ...

        async def create_all(self, *books: Book) -> None:
            for book in books:
                await self.create(book)

    books = BookRepository(SqlAlchemyStore(session))
    await books.create(Book(title="Dune"))
"""

import logging
from collections.abc import Callable
from functools import wraps
from types import MethodType
from typing import Any

from dryrepo.application.operation_dispatcher import OperationDispatcher
from dryrepo.domain.model.tags import OPERATION_TAGS_ATTR
from dryrepo.domain.ports.store import StorePort

logger = logging.getLogger(__name__)

FORWARDED_ATTR = "__dryrepo_forwarded__"


def is_declared(member: Any) -> bool:
    """A declared method carries an operation tag or is marked abstract."""
    if not callable(member) or getattr(member, FORWARDED_ATTR, False):
        return False
    return bool(getattr(member, OPERATION_TAGS_ATTR, ())) or getattr(
        member, "__isabstractmethod__", False
    )


def forwarding_method(func: Callable[..., Any]) -> Callable[..., Any]:
    """Build the method body ``return await dispatch(store, method, args)``."""

    @wraps(func)
    async def forward(self: "DeclarativeRepository", *args: Any, **kwargs: Any) -> Any:
        return await self.dispatcher.dispatch(self.store, MethodType(func, self), args, kwargs)

    setattr(forward, FORWARDED_ATTR, True)
    # An abstract marker would otherwise be copied over by wraps
    forward.__isabstractmethod__ = False
    return forward


class DeclarativeRepository:
    """
    Base class for repositories whose methods are declared, not implemented.

    Each subclass owns one OperationDispatcher, so descriptors are cached
    per repository class rather than process-wide.

    Attributes:
        store: Store the declared operations run against
        dispatcher: Dispatcher shared by all instances of the class
    """

    _dispatcher: OperationDispatcher | None = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        declared = [name for name, member in vars(cls).items() if is_declared(member)]
        for name in declared:
            setattr(cls, name, forwarding_method(vars(cls)[name]))
        cls._dispatcher = None
        logger.debug(f"Declared {len(declared)} dispatched method(s) on {cls.__qualname__}")

    def __init__(self, store: StorePort, dispatcher: OperationDispatcher | None = None) -> None:
        """
        Initialize the repository with a store.

        Args:
            store: Store the declared operations run against
            dispatcher: Optional dispatcher overriding the class-wide one
        """
        if store is None:
            raise ValueError("Store cannot be None")
        self._store = store
        self._instance_dispatcher = dispatcher

    @property
    def store(self) -> StorePort:
        """Get the backing store."""
        return self._store

    @property
    def dispatcher(self) -> OperationDispatcher:
        """Get the dispatcher, building the class-wide one on first use."""
        if self._instance_dispatcher is not None:
            return self._instance_dispatcher
        cls = type(self)
        if cls._dispatcher is None:
            cls._dispatcher = OperationDispatcher()
        return cls._dispatcher
