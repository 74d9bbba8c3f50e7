"""Exceptions used within the cube metastore."""

from __future__ import annotations

from typing import Any

__all__ = [
    "MetastoreError",
    "InternalError",
    "UserError",
    "ConfigurationError",
    "ArgumentError",
    "ModelError",
    "NotFoundError",
    "WrongEntityTypeError",
    "MalformedMetadataError",
    "PartitionMarkerCorruptError",
    "StoreError",
    "CatalogOperationError",
]


class MetastoreError(Exception):
    """Generic error class."""

    def to_dict(self) -> dict[str, Any]:
        """Structured representation of the error, for logging and reports."""
        result = {"type": self.__class__.__name__, "message": str(self)}
        for key, value in self.__dict__.items():
            if not key.startswith("_") and value is not None:
                result[key] = value
        return result


class UserError(MetastoreError):
    """Superclass for all errors caused by the metastore and model users.
    Error messages from this error might be safely passed to the front-end.
    Do not include any information that would be risky to the user being
    able to see it, such as physical locations."""


class InternalError(MetastoreError):
    """Superclass for all errors that happened internally: configuration
    issues, connection problems, model inconsistencies..."""


class ConfigurationError(InternalError):
    """Raised when there is a problem with metastore configuration."""


class ArgumentError(UserError):
    """Invalid argument passed to a metastore operation."""


class ModelError(InternalError):
    """Model is invalid or inconsistent."""


class NotFoundError(UserError):
    """Referenced entity, table or partition does not exist."""

    def __init__(self, message: str, name: str | None = None, kind: str | None = None):
        super().__init__(message)
        self.name = name
        self.kind = kind


class WrongEntityTypeError(UserError):
    """An operation expects a cube, fact or dimension table but the catalog
    row is classified as something else."""

    def __init__(
        self,
        message: str,
        name: str | None = None,
        expected: str | None = None,
        actual: str | None = None,
    ):
        super().__init__(message)
        self.name = name
        self.expected = expected
        self.actual = actual


class MalformedMetadataError(ModelError):
    """A persisted catalog row lacks required properties or they can not be
    parsed."""

    def __init__(self, message: str, name: str | None = None, key: str | None = None):
        super().__init__(message)
        self.name = name
        self.key = key


class PartitionMarkerCorruptError(InternalError):
    """Stored latest partition marker can not be parsed with the update
    period recorded next to it."""

    def __init__(
        self,
        message: str,
        table: str | None = None,
        column: str | None = None,
        value: str | None = None,
        update_period: str | None = None,
    ):
        super().__init__(message)
        self.table = table
        self.column = column
        self.value = value
        self.update_period = update_period


class StoreError(InternalError):
    """Raised by catalog store implementations."""


class CatalogOperationError(InternalError):
    """A catalog store call failed while performing a metastore operation.

    `operation` is the metastore operation (``create_fact_table``,
    ``drop_fact``, ...), `name` the entity it was applied to and `step` the
    step that failed. `completed` lists the steps that succeeded before the
    failure; they are not rolled back.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        name: str | None = None,
        step: str | None = None,
        completed: list[str] | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.name = name
        self.step = step
        self.completed = list(completed or [])
