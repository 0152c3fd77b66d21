"""
Domain exceptions for dryrepo.

This module provides the hierarchy of exceptions raised while dispatching
declared repository methods.
"""

from dryrepo.domain.exceptions.repository_exceptions import (
    ConfigurationError,
    ConnectionError,
    DuplicateEntityError,
    EntityNotFoundError,
    RepositoryError,
    StoreError,
    ValidationError,
)

__all__ = [
    "RepositoryError",
    "ValidationError",
    "ConfigurationError",
    "EntityNotFoundError",
    "StoreError",
    "DuplicateEntityError",
    "ConnectionError",
]
