"""HookRelay exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from RelayError for easy catching.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base exception for all HookRelay errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code for API responses.
    """

    code: str = "relay_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class ValidationError(RelayError):
    """Invalid input provided.

    Raised before any network or storage action when webhook input
    fails validation (URL scheme, event names, headers, retry policy).

    Attributes:
        field: The field that failed validation.
        invalid_values: Offending values, when the field is a collection.
    """

    code: str = "validation_error"

    def __init__(
        self,
        field: str,
        message: str,
        invalid_values: list[str] | None = None,
    ) -> None:
        self.field = field
        self.invalid_values = invalid_values or []
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        error: dict[str, object] = {
            "code": self.code,
            "field": self.field,
            "message": self.message,
        }
        if self.invalid_values:
            error["invalid_values"] = self.invalid_values
        return {"error": error}


class NotFoundError(RelayError):
    """Resource not found.

    Attributes:
        resource_type: Type of resource (e.g., "webhook", "delivery").
        resource_id: ID of the missing resource.
    """

    code: str = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "message": self.message,
            }
        }


class PersistenceError(RelayError):
    """Storage operation failed.

    Raised when reading or writing webhook configs, delivery records
    or audit entries fails after transient retries are exhausted.
    """

    code: str = "persistence_error"


class ConfigurationError(RelayError):
    """Configuration error.

    Raised when required configuration is missing or invalid.
    """

    code: str = "configuration_error"
