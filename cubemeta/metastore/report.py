"""Step by step reports of metastore mutations."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from ..errors import (
    ArgumentError,
    CatalogOperationError,
    MalformedMetadataError,
    NotFoundError,
    PartitionMarkerCorruptError,
    WrongEntityTypeError,
)
from ..metadata.base import AbstractCubeTable

__all__ = ["MutationReport", "catalog_call"]

# Errors raised by the metastore itself, propagated without wrapping
UNWRAPPED_ERRORS = (
    ArgumentError,
    NotFoundError,
    WrongEntityTypeError,
    MalformedMetadataError,
    PartitionMarkerCorruptError,
)


@dataclass
class MutationReport:
    """Outcome of a create, alter, add or drop operation.

    `steps` lists the completed steps in order. `entity` is the state of the
    entity as re-read from the catalog after the operation, or ``None`` when
    the entity was dropped.
    """

    operation: str
    name: str
    steps: list[str] = field(default_factory=list)
    entity: AbstractCubeTable | None = None

    @contextmanager
    def step(self, description: str) -> Iterator[None]:
        """Run one step of the operation. A failure of the step is raised as
        `CatalogOperationError` naming the step and the steps completed
        before it. Nothing is rolled back."""
        try:
            yield
        except UNWRAPPED_ERRORS:
            raise
        except Exception as e:
            raise CatalogOperationError(
                f"{self.operation} of '{self.name}' failed at step "
                f"'{description}': {e}",
                operation=self.operation,
                name=self.name,
                step=description,
                completed=self.steps,
            ) from e
        self.steps.append(description)


@contextmanager
def catalog_call(operation: str, name: str) -> Iterator[None]:
    """Wrap failures of a single catalog store call outside of a mutation
    into `CatalogOperationError`."""
    try:
        yield
    except (*UNWRAPPED_ERRORS, CatalogOperationError):
        raise
    except Exception as e:
        raise CatalogOperationError(
            f"{operation} of '{name}' failed: {e}",
            operation=operation,
            name=name,
        ) from e
