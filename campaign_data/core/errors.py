from __future__ import annotations

from typing import Any, Optional


class DataAccessError(Exception):
    """
    Base class for errors raised by the data-access layer.

    Every error carries a machine-readable `kind` and a human-readable message
    so collaborators can render a generic failure state without inspecting
    the exception type. Messages never include row data.
    """

    kind: str = "data_access_error"

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Return the error as a plain mapping (kind, message, details)."""
        return {"type": self.kind, "message": self.message, "details": self.details}


class ValidationError(DataAccessError):
    """Malformed filter, pagination option or payload. Detected before any backend call."""

    kind = "validation_error"


class NotFoundError(DataAccessError):
    """Target row does not exist or belongs to another tenant."""

    kind = "not_found"

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} '{entity_id}' not found")
        self.entity = entity
        self.entity_id = entity_id


class StorageError(DataAccessError):
    """Backend transport or query failure. The driver exception is kept in `cause`."""

    kind = "storage_error"

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConfigurationError(DataAccessError):
    """Required configuration (e.g. the active tenant id) is missing or invalid."""

    kind = "configuration_error"
