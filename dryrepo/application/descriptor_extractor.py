"""
Method descriptor extraction.

Turns a declared method (its operation tag, return annotation and
parameter annotations) into an immutable MethodDescriptor. Extraction only
reads metadata: it never sees runtime argument values and never touches
the store.
"""

import inspect
import logging
import types
import typing
from collections.abc import Callable, Collection, Mapping
from typing import Annotated, Any, Union

from dryrepo.domain.exceptions import ConfigurationError
from dryrepo.domain.model.operations import (
    MethodDescriptor,
    OperationKind,
    OperationTag,
    ParameterRole,
    ParameterSpec,
    ReturnShape,
)
from dryrepo.domain.model.tags import (
    OPERATION_TAGS_ATTR,
    OPTIONAL_ATTR,
    MaxResults,
    Offset,
    QueryParam,
)

logger = logging.getLogger(__name__)

_NON_COLLECTION_TYPES = (str, bytes, bytearray, Mapping)


def method_name(method: Callable[..., Any]) -> str:
    """Qualified name of a function or bound method."""
    func = getattr(method, "__func__", method)
    return getattr(func, "__qualname__", repr(func))


def extract_descriptor(method: Callable[..., Any]) -> MethodDescriptor:
    """
    Classify a declared method.

    Args:
        method: Tagged function or bound method. For bound methods the
            signature excludes ``self``.

    Returns:
        Immutable descriptor of the operation the method performs

    Raises:
        ConfigurationError: If the method carries no operation tag, more
            than one, annotations that cannot be resolved, or a signature
            its operation cannot work with
    """
    name = method_name(method)
    tag = _operation_tag(method, name)

    hints = _type_hints(method, name)
    signature = inspect.signature(method)
    params = list(signature.parameters.values())

    return_type = _unwrap(hints.get("return", signature.return_annotation))
    is_update = tag.kind.executes_query and tag.update
    return_shape = _return_shape(return_type, is_update)

    if tag.kind.takes_entity or tag.kind is OperationKind.FIND_BY_KEY:
        if not params:
            raise ConfigurationError(
                name, f"{tag.kind.value} method {name} must declare a parameter"
            )

    result_type = _result_type(return_type, return_shape)
    if tag.kind is OperationKind.FIND_BY_KEY and not isinstance(result_type, type):
        raise ConfigurationError(
            name, f"find method {name} must declare an entity class as return type"
        )

    entity_type_name = "Entity"
    if params:
        first = _unwrap(hints.get(params[0].name, params[0].annotation))
        if isinstance(first, type) and first is not inspect.Parameter.empty:
            entity_type_name = first.__name__

    roles = tuple(
        _parameter_spec(position, param, hints.get(param.name, param.annotation))
        for position, param in enumerate(params)
    )

    descriptor = MethodDescriptor(
        method_name=name,
        operation_kind=tag.kind,
        return_shape=return_shape,
        signature=signature,
        parameter_roles=roles,
        query_identifier=tag.query,
        is_update_query=is_update,
        is_optional_result=bool(getattr(method, OPTIONAL_ATTR, False)),
        result_type=result_type,
        entity_type_name=entity_type_name,
    )
    logger.debug(
        f"Extracted descriptor for {name}: {tag.kind.name}, shape={return_shape.name}, "
        f"update={is_update}, optional={descriptor.is_optional_result}"
    )
    return descriptor


def _operation_tag(method: Callable[..., Any], name: str) -> OperationTag:
    tags: tuple[OperationTag, ...] = getattr(method, OPERATION_TAGS_ATTR, ())
    if not tags:
        raise ConfigurationError(name)
    if len(tags) > 1:
        kinds = ", ".join(t.kind.value for t in tags)
        raise ConfigurationError(
            name, f"Method {name} carries more than one operation tag: {kinds}"
        )
    return tags[0]


def _type_hints(method: Callable[..., Any], name: str) -> dict[str, Any]:
    func = getattr(method, "__func__", method)
    try:
        return typing.get_type_hints(func, include_extras=True)
    except (NameError, TypeError) as e:
        # Unresolved string annotations cannot be classified
        raise ConfigurationError(
            name, f"Cannot resolve annotations of {name}: {e}"
        ) from e


def _unwrap(annotation: Any) -> Any:
    """Strip ``Annotated`` metadata and a single ``None`` member of a union."""
    if typing.get_origin(annotation) is Annotated:
        annotation = typing.get_args(annotation)[0]
    if typing.get_origin(annotation) in (Union, types.UnionType):
        members = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(members) == 1:
            return members[0]
    return annotation


def _is_collection(annotation: Any) -> bool:
    origin = typing.get_origin(annotation) or annotation
    return (
        isinstance(origin, type)
        and issubclass(origin, Collection)
        and not issubclass(origin, _NON_COLLECTION_TYPES)
    )


def _is_int(annotation: Any) -> bool:
    return annotation is int


def _return_shape(return_type: Any, is_update: bool) -> ReturnShape:
    if return_type is None or return_type is type(None):
        return ReturnShape.VOID
    if _is_collection(return_type):
        return ReturnShape.COLLECTION
    if is_update and _is_int(return_type):
        return ReturnShape.COUNT
    return ReturnShape.SINGLE


def _result_type(return_type: Any, shape: ReturnShape) -> Any:
    if return_type is inspect.Signature.empty:
        return None
    if shape is ReturnShape.COLLECTION:
        args = typing.get_args(return_type)
        return _unwrap(args[0]) if args else None
    if shape is ReturnShape.SINGLE:
        return return_type
    return None


def _parameter_spec(position: int, param: inspect.Parameter, annotation: Any) -> ParameterSpec:
    if typing.get_origin(annotation) in (Union, types.UnionType):
        # Optional[Annotated[...]] keeps its markers on the non-None member
        members = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(members) == 1:
            annotation = members[0]
    if typing.get_origin(annotation) is not Annotated:
        return ParameterSpec(position=position, name=param.name)

    declared = _unwrap(annotation)
    for marker in annotation.__metadata__:
        if isinstance(marker, QueryParam):
            return ParameterSpec(position, param.name, ParameterRole.BIND, marker.name)
        if isinstance(marker, Offset) and _is_int(declared):
            return ParameterSpec(position, param.name, ParameterRole.OFFSET)
        if isinstance(marker, MaxResults) and _is_int(declared):
            return ParameterSpec(position, param.name, ParameterRole.LIMIT)
    return ParameterSpec(position=position, name=param.name)
