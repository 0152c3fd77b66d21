"""
Repository dispatch exceptions.

Callers of a declarative repository need to tell apart "bad input",
"no handler for this method", "no matching data" and "store malfunction".
Each case has its own exception type, all sharing a common base.

Exception Hierarchy:
    RepositoryError (base)
    ├── ValidationError        - Null entity, key or bind value
    ├── ConfigurationError     - Method cannot be dispatched as declared
    ├── EntityNotFoundError    - Required single result is missing
    └── StoreError             - Failure raised by the backing store
        ├── DuplicateEntityError   - Unique constraint violation
        └── ConnectionError        - Store connectivity issues

Usage:
    from dryrepo.domain.exceptions import EntityNotFoundError

    try:
        book = await books.find_by_title("Dune")
    except EntityNotFoundError:
        book = None
"""

from typing import Any, Optional


class RepositoryError(Exception):
    """
    Base exception for all repository dispatch errors.

    Attributes:
        message: Human-readable error description
        original_error: The underlying exception (if any)
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message} (caused by: {self.original_error})"
        return self.message


class ValidationError(RepositoryError):
    """
    Raised when a required argument is null.

    Always raised before the store is touched.

    Attributes:
        field: Name of the offending entity type, key or bind parameter
    """

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        self.field = field
        msg = message or f"{field} is null"
        super().__init__(msg, details={"field": field})


class ConfigurationError(RepositoryError):
    """
    Raised when a declared method cannot be dispatched.

    This occurs when:
    - The method carries no operation tag, or more than one
    - An update query declares a return type other than int or None
    - An entity operation declares no parameter

    Attributes:
        method_name: Qualified name of the misconfigured method
    """

    def __init__(self, method_name: str, message: Optional[str] = None) -> None:
        self.method_name = method_name
        msg = message or f"No handler logic for method: {method_name}"
        super().__init__(msg, details={"method_name": method_name})


class EntityNotFoundError(RepositoryError):
    """
    Raised when a required single result does not exist.

    Attributes:
        entity_type: Name of the expected result type
        identifier: Query name or text that produced no row (if known)
    """

    def __init__(
        self,
        entity_type: str,
        identifier: Optional[str] = None,
        message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        self.entity_type = entity_type
        self.identifier = identifier
        msg = message or f"No {entity_type} found"
        if identifier and not message:
            msg += f" for query '{identifier}'"
        super().__init__(
            msg,
            original_error=original_error,
            details={"entity_type": entity_type, "identifier": identifier},
        )


class StoreError(RepositoryError):
    """
    Raised when the backing store fails.

    The dispatcher passes these through untouched; it never retries them.

    Attributes:
        operation: The store operation that failed (e.g., "persist", "execute")
    """

    def __init__(
        self,
        operation: str,
        message: Optional[str] = None,
        original_error: Optional[Exception] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.operation = operation
        msg = message or f"Store operation '{operation}' failed"
        super().__init__(
            msg,
            original_error=original_error,
            details={"operation": operation, **(details or {})},
        )


class DuplicateEntityError(StoreError):
    """
    Raised when a write violates a unique constraint.

    Attributes:
        entity_type: Name of the entity type
        field_name: Name of the field that caused the conflict
    """

    def __init__(
        self,
        entity_type: str,
        field_name: str,
        message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        self.entity_type = entity_type
        self.field_name = field_name
        msg = message or f"Duplicate {entity_type} detected on {field_name}"
        super().__init__(
            "write",
            message=msg,
            original_error=original_error,
            details={"entity_type": entity_type, "field_name": field_name},
        )


class ConnectionError(StoreError):
    """
    Raised when the store cannot be reached.

    Attributes:
        database: Name or type of the database
    """

    def __init__(
        self,
        database: str,
        message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        self.database = database
        msg = message or f"Failed to connect to {database}"
        super().__init__(
            "connect",
            message=msg,
            original_error=original_error,
            details={"database": database},
        )
