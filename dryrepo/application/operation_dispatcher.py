"""
Operation dispatcher for declared repository methods.

Routes a declared method to one of six operation handlers:
- PERSIST_ENTITY: persist the entity argument
- MERGE_ENTITY: merge the entity argument and return the managed copy
- REMOVE_ENTITY: merge then remove the entity argument
- FIND_BY_KEY: look up the return type by primary key
- NAMED_QUERY / AD_HOC_QUERY: run a registered or literal query

Every invocation is a single pass: classify, validate, bind, execute and
adapt the store result to the method's declared return shape. Validation
failures are raised before the store is touched; store failures pass
through untouched.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from dryrepo.application.descriptor_extractor import extract_descriptor
from dryrepo.configuration.config import get_settings
from dryrepo.domain.exceptions import (
    ConfigurationError,
    EntityNotFoundError,
    ValidationError,
)
from dryrepo.domain.model.operations import (
    MethodDescriptor,
    OperationKind,
    ParameterBinding,
    ParameterRole,
    ReturnShape,
)
from dryrepo.domain.ports.store import QueryHandlePort, StorePort

logger = logging.getLogger(__name__)

Handler = Callable[[StorePort, MethodDescriptor, list[ParameterBinding]], Awaitable[Any]]


def bind_arguments(
    descriptor: MethodDescriptor,
    args: Sequence[Any] = (),
    kwargs: Mapping[str, Any] | None = None,
) -> list[ParameterBinding]:
    """
    Pair live arguments with the descriptor's parameter roles.

    Keyword arguments and parameter defaults are honored.

    Raises:
        TypeError: If the arguments do not match the method signature
    """
    bound = descriptor.signature.bind(*args, **(kwargs or {}))
    bound.apply_defaults()
    return [
        ParameterBinding(
            position=spec.position,
            role=spec.role,
            runtime_value=bound.arguments.get(spec.name),
            bind_name=spec.bind_name,
        )
        for spec in descriptor.parameter_roles
    ]


class OperationDispatcher:
    """
    Dispatches declared methods to a backing store.

    One dispatcher is meant to be built per store configuration and shared
    by every caller; it holds no per-call state. The only shared state is
    the descriptor cache, which is written once per method. Two callers
    racing on the first invocation compute equal descriptors and either
    write wins.

    Example:
        dispatcher = OperationDispatcher()
        book = await dispatcher.dispatch(store, repo.create, (book,))
    """

    def __init__(self, cache_descriptors: bool | None = None) -> None:
        """
        Initialize the dispatcher.

        Args:
            cache_descriptors: Cache descriptors after first invocation.
                Defaults to the DISPATCH_CACHE_DESCRIPTORS setting.
        """
        if cache_descriptors is None:
            cache_descriptors = get_settings().dispatch_cache_descriptors
        self._cache_descriptors = cache_descriptors
        self._descriptors: dict[Any, MethodDescriptor] = {}
        self._handlers: dict[OperationKind, Handler] = {
            OperationKind.PERSIST_ENTITY: self._persist,
            OperationKind.MERGE_ENTITY: self._merge,
            OperationKind.REMOVE_ENTITY: self._remove,
            OperationKind.FIND_BY_KEY: self._find_by_key,
            OperationKind.NAMED_QUERY: self._execute_query,
            OperationKind.AD_HOC_QUERY: self._execute_query,
        }

    def descriptor_for(self, method: Callable[..., Any]) -> MethodDescriptor:
        """
        Get the descriptor of a declared method, computing it on first use.

        Raises:
            ConfigurationError: If the method cannot be classified
        """
        key = getattr(method, "__func__", method)
        descriptor = self._descriptors.get(key)
        if descriptor is None:
            descriptor = extract_descriptor(method)
            if self._cache_descriptors:
                descriptor = self._descriptors.setdefault(key, descriptor)
        return descriptor

    async def dispatch(
        self,
        store: StorePort,
        method: Callable[..., Any],
        args: Sequence[Any] = (),
        kwargs: Mapping[str, Any] | None = None,
    ) -> Any:
        """
        Execute a declared method against a store.

        Args:
            store: Store the operation runs against
            method: Declared function or bound method
            args: Positional arguments of the call (without ``self``)
            kwargs: Keyword arguments of the call

        Returns:
            The result adapted to the method's declared return shape

        Raises:
            ConfigurationError: If the method cannot be dispatched as declared
            ValidationError: If a required argument is None
            EntityNotFoundError: If a required single result is missing
            StoreError: If the store fails
        """
        descriptor = self.descriptor_for(method)
        bindings = bind_arguments(descriptor, args, kwargs)
        handler = self._handlers[descriptor.operation_kind]
        logger.debug(f"Dispatching {descriptor.method_name} as {descriptor.operation_kind.name}")
        return await handler(store, descriptor, bindings)

    # === Entity operations ===

    @staticmethod
    def _require_entity(descriptor: MethodDescriptor, bindings: list[ParameterBinding]) -> Any:
        entity = bindings[0].runtime_value
        if entity is None:
            raise ValidationError(
                descriptor.entity_type_name,
                f"{descriptor.entity_type_name} object is null",
            )
        return entity

    async def _persist(
        self, store: StorePort, descriptor: MethodDescriptor, bindings: list[ParameterBinding]
    ) -> Any:
        entity = self._require_entity(descriptor, bindings)
        await store.persist(entity)
        if descriptor.return_shape is ReturnShape.VOID:
            return None
        return entity

    async def _merge(
        self, store: StorePort, descriptor: MethodDescriptor, bindings: list[ParameterBinding]
    ) -> Any:
        entity = self._require_entity(descriptor, bindings)
        return await store.merge(entity)

    async def _remove(
        self, store: StorePort, descriptor: MethodDescriptor, bindings: list[ParameterBinding]
    ) -> None:
        entity = self._require_entity(descriptor, bindings)
        # Removal needs a store-managed instance, not a detached one
        managed = await store.merge(entity)
        await store.remove(managed)
        return None

    async def _find_by_key(
        self, store: StorePort, descriptor: MethodDescriptor, bindings: list[ParameterBinding]
    ) -> Any:
        key = bindings[0].runtime_value
        if key is None:
            raise ValidationError("id", "Invalid id")
        return await store.find_by_key(descriptor.result_type, key)

    # === Query operations ===

    async def _execute_query(
        self, store: StorePort, descriptor: MethodDescriptor, bindings: list[ParameterBinding]
    ) -> Any:
        if descriptor.is_update_query and descriptor.return_shape not in (
            ReturnShape.COUNT,
            ReturnShape.VOID,
        ):
            raise ConfigurationError(
                descriptor.method_name,
                "Update methods must have a void or int return type",
            )

        parameters = self._query_parameters(bindings)
        query = self._resolve_query(store, descriptor)
        for name, value in parameters.items():
            query.bind_parameter(name, value)

        if descriptor.is_update_query:
            return await self._update(query, descriptor)

        self._paginate(query, bindings)
        return await self._select(query, descriptor)

    @staticmethod
    def _query_parameters(bindings: list[ParameterBinding]) -> dict[str, Any]:
        parameters: dict[str, Any] = {}
        for binding in bindings:
            if binding.role is not ParameterRole.BIND:
                continue
            if binding.runtime_value is None:
                raise ValidationError(binding.bind_name)
            parameters[binding.bind_name] = binding.runtime_value
        return parameters

    @staticmethod
    def _resolve_query(store: StorePort, descriptor: MethodDescriptor) -> QueryHandlePort:
        if descriptor.operation_kind is OperationKind.NAMED_QUERY:
            return store.resolve_named_query(descriptor.query_identifier, descriptor.result_type)
        return store.resolve_query_from_text(descriptor.query_identifier, descriptor.result_type)

    @staticmethod
    def _paginate(query: QueryHandlePort, bindings: list[ParameterBinding]) -> None:
        offset = limit = None
        for binding in bindings:
            value = binding.runtime_value
            if not isinstance(value, int) or isinstance(value, bool):
                continue
            if binding.role is ParameterRole.OFFSET:
                offset = value
            elif binding.role is ParameterRole.LIMIT:
                limit = value

        # A lone offset or limit is ignored
        if offset is not None and limit is not None:
            query.set_skip(offset)
            query.set_limit(limit)

    @staticmethod
    async def _update(query: QueryHandlePort, descriptor: MethodDescriptor) -> int | None:
        count = await query.execute_for_update_count()
        if descriptor.return_shape is ReturnShape.COUNT:
            return count
        return None

    @staticmethod
    async def _select(query: QueryHandlePort, descriptor: MethodDescriptor) -> Any:
        if descriptor.return_shape is ReturnShape.COLLECTION:
            return await query.execute_for_list()
        try:
            return await query.execute_for_single()
        except EntityNotFoundError:
            if descriptor.is_optional_result:
                return None
            raise
