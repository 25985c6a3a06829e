"""Errors shared across the portal services."""


class NotFoundError(Exception):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, key: str):
        super().__init__(f"{entity} {key} not found")
        self.entity = entity
        self.key = key


class StorageUnavailableError(Exception):
    """Raised when the database times out or refuses work (retryable)."""

    def __init__(self, message: str, retry_after: int = 5):
        super().__init__(message)
        self.retry_after = retry_after


class ForbiddenError(Exception):
    """Raised when an identity is not allowed to perform an operation."""
    pass
