from __future__ import annotations


class WiserPinError(Exception):
    """Base class for every error raised by the sync client."""


class StorageError(WiserPinError):
    code = "STORAGE_ERROR"

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class DatabaseInitError(StorageError):
    code = "DB_INIT_ERROR"


class NotFoundError(StorageError):
    code = "NOT_FOUND"

    def __init__(self, resource: str, record_id: str):
        super().__init__(f"{resource} with id '{record_id}' not found")
        self.resource = resource
        self.record_id = record_id


class DuplicateError(StorageError):
    code = "DUPLICATE_ENTRY"

    def __init__(self, resource: str, field: str, value: str):
        super().__init__(f"{resource} with {field} '{value}' already exists")
        self.resource = resource
        self.field = field
        self.value = value


class TransactionError(StorageError):
    code = "TRANSACTION_ERROR"


class SyncError(WiserPinError):
    pass


class SyncDisabledError(SyncError):
    def __init__(self, message: str = "Sync is disabled"):
        super().__init__(message)


class OfflineError(SyncError):
    def __init__(self, message: str = "No internet connection"):
        super().__init__(message)


class AuthError(SyncError):
    def __init__(self, message: str = "Not authenticated - please sign in first"):
        super().__init__(message)


class TransportError(SyncError):
    def __init__(self, message: str, status: int = 0, response=None):
        super().__init__(message)
        self.status = status
        self.response = response


class ApiError(TransportError):
    """The backend answered with a non-2xx status other than 401."""


class PartialSyncError(SyncError):
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        attempted = [o for o in self.outcomes if o.status != "skipped"]
        super().__init__(
            f"{len(self.failed)} of {len(attempted)} records failed to push"
        )

    @property
    def failed(self):
        return [outcome for outcome in self.outcomes if outcome.failed]
