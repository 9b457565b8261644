class StockkeepError(Exception):
    """Base class for every error raised by the reconciliation core."""


class ValidationError(StockkeepError):
    """
    Raised when an ingest contains row-level problems.
    Carries every collected error (not just the first) plus the non-fatal warnings.
    """

    def __init__(self, errors: list[str], warnings: list[str] | None = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__(f"Validation failed: {', '.join(self.errors)}")


class NotFoundError(StockkeepError):
    """Raised when an operation references a record absent from its store."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} not found")


class PartialFailureError(StockkeepError):
    """
    Raised when a replace-mode merge cleared the store but could not repopulate it.
    The inventory may now be empty or partial.
    """

    def __init__(self, inserted: int, expected: int, failed_item_id: str | None = None):
        self.inserted = inserted
        self.expected = expected
        self.failed_item_id = failed_item_id
        super().__init__(
            f"Replace import left the inventory partial: {inserted} of {expected} items "
            f"written (failed on {failed_item_id!r})"
        )


class StoreError(StockkeepError):
    """Raised by store implementations when a read or write cannot be completed."""
