"""Exception types shared by the board client, record store and services."""

from typing import Optional


class CardbillError(Exception):
    """Base class for all service errors."""


class BoardServiceError(CardbillError):
    """The board API failed (network, auth or unexpected HTTP status)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(BoardServiceError):
    """The board API answered 429 Too Many Requests."""

    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(message, status_code=429)


class RecordStoreError(CardbillError):
    """A database statement failed. The message is shown to the operator as-is."""


class NotFoundError(RecordStoreError):
    def __init__(self, resource: str, key):
        super().__init__(f"{resource} {key} not found")
        self.resource = resource
        self.key = key


class IneligibleCardError(CardbillError):
    """A card that is not Done, or is already archived, was offered for billing."""

    def __init__(self, card_ids: list[int]):
        super().__init__(
            f"Cards not eligible for invoicing: {', '.join(str(c) for c in card_ids)}"
        )
        self.card_ids = card_ids


class ArchiveSyncError(CardbillError):
    """Archive Sync stopped part-way. Cards in ``completed`` keep their new flag."""

    def __init__(
        self,
        card_id: int,
        archived: bool,
        completed: list[int],
        cause: Exception,
    ):
        action = "archive" if archived else "unarchive"
        super().__init__(
            f"Failed to {action} card {card_id} after {len(completed)} "
            f"successful update(s): {cause}"
        )
        self.card_id = card_id
        self.archived = archived
        self.completed = completed
        self.cause = cause
