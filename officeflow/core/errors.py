from typing import Optional, Sequence


class OfficeflowError(Exception):
    """Base exception for workspace operations."""


class ValidationFailed(OfficeflowError):
    """Raised before anything is applied, locally or remotely."""


class DuplicateStatusError(ValidationFailed):
    pass


class ProtectedStatusError(ValidationFailed):
    pass


class LastStatusError(ValidationFailed):
    pass


class RecordNotFound(OfficeflowError):
    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(f"{collection} record {record_id} not found")
        self.collection = collection
        self.record_id = record_id


class SyncError(OfficeflowError):
    """A remote write failed after the change was applied locally.

    The local state has been restored to its snapshot unless
    ``rolled_back`` is False.
    """

    rolled_back = True

    def __init__(
        self,
        operation: str,
        collection: str,
        record_id: Optional[str],
        cause: Optional[BaseException] = None,
    ) -> None:
        reason = f": {cause}" if cause is not None else ""
        super().__init__(f"could not {operation} {collection} record {record_id}{reason}")
        self.operation = operation
        self.collection = collection
        self.record_id = record_id
        self.cause = cause


class CascadeError(SyncError):
    """The parent record was deleted but some dependents were not."""

    rolled_back = False

    def __init__(
        self,
        collection: str,
        record_id: str,
        dependent_collection: str,
        failed_ids: Sequence[str],
    ) -> None:
        OfficeflowError.__init__(
            self,
            f"{collection} record {record_id} deleted, but {len(failed_ids)} "
            f"{dependent_collection} record(s) could not be removed",
        )
        self.operation = "delete"
        self.collection = collection
        self.record_id = record_id
        self.cause = None
        self.dependent_collection = dependent_collection
        self.failed_ids = list(failed_ids)
