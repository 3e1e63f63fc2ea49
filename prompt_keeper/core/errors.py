"""Exceptions raised by single-item operations.

Bulk and cascade operations never raise these for individual items; they
report them in a ``BulkOperationResult`` instead.
"""


class KeeperError(Exception):
    """Base class for service-layer errors."""


class NotFoundError(KeeperError):
    """Raised when a record does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.rstrip('s').replace('_', ' ').capitalize()} '{entity_id}' not found")


class UnauthorizedError(KeeperError):
    """Raised when the current user may not perform an action."""

    def __init__(self, action: str, entity_id: str | None = None) -> None:
        self.action = action
        self.entity_id = entity_id
        target = f" on '{entity_id}'" if entity_id else ""
        super().__init__(f"Not permitted to {action}{target}")


class ValidationError(KeeperError):
    """Raised for malformed input such as an invalid tag or import record."""


class AlreadyRestoredError(KeeperError):
    """Raised when restoring a prompt whose live record already exists."""

    def __init__(self, prompt_id: str) -> None:
        self.prompt_id = prompt_id
        super().__init__(f"Prompt '{prompt_id}' is already live; nothing to restore")
