"""Domain errors raised by the store, repositories and rental lifecycle.

Callers (the HTTP layer and the CLI) translate these into status codes or
console messages; the message of each error explains the failed precondition.
"""


class RentalShopError(Exception):
    """Base class for every error the back office raises on purpose."""


class NotFound(RentalShopError, LookupError):
    """An identifier does not resolve for the requested entity."""

    def __init__(self, entity: str, entity_id: int) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class ValidationFailed(RentalShopError, ValueError):
    """A required field is missing or invalid, or a unique field is duplicated."""


class ConflictGuard(RentalShopError):
    """A delete or state transition is blocked by a referencing entity or status."""


class PersistenceFailure(RentalShopError, OSError):
    """The document could not be read from or written to disk."""
