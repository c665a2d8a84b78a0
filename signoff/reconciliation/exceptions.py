class ReconciliationError(Exception):
    """Base class for reconciliation pipeline errors."""


class ValidationError(ReconciliationError):
    """Raised when pipeline or resolution input is rejected before processing."""


class ReviewItemNotFoundError(ReconciliationError):
    """Raised when a review item ID does not exist."""


class ReviewItemAlreadyResolvedError(ReconciliationError):
    """Raised when resolving a review item that is already resolved."""


class AlreadyMatchedError(ReconciliationError):
    """Raised when the signed_matches unique constraint rejects a second match."""

    def __init__(self, work_order_id: int) -> None:
        super().__init__(f"Work order {work_order_id} already has a signed match")
        self.work_order_id = work_order_id
