"""
Custom error classes for Primer Analytics Hub.
Structured error handling with error codes across all modules.

Hierarchy:
    HubError
    ├── DataError
    │   ├── ConfigError
    │   ├── QueryBuildError
    │   └── DataFetchError
    │       └── MetricsFetchError
    └── SyncError
        ├── SheetFetchError
        ├── TableWriteError
        └── SheetSyncError
"""


class HubError(Exception):
    """Base exception for all Primer Analytics Hub errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict = None):
        self.code = code
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


# --- Data Errors ---

class DataError(HubError):
    """Base class for data processing errors."""

    def __init__(self, message: str, code: str = "DATA_ERROR", **kwargs):
        super().__init__(message, code=code, details=kwargs)


class ConfigError(DataError):
    """Missing or invalid configuration."""

    def __init__(self, key: str, message: str = None):
        super().__init__(
            message or f"Missing or invalid config: {key}",
            code="CONFIG_ERROR", key=key,
        )


class QueryBuildError(DataError, ValueError):
    """Invalid parameters passed to a SQL query builder."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="QUERY_BUILD_ERROR", **kwargs)


class DataFetchError(DataError):
    """Failed to fetch data from a source."""

    def __init__(self, source: str, reason: str = "", code: str = "FETCH_ERROR", **kwargs):
        msg = f"Failed to fetch data from {source}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, code=code, source=source, reason=reason, **kwargs)


class MetricsFetchError(DataFetchError):
    """The SQL RPC returned an error for a metrics query."""

    def __init__(self, metric: str, reason: str = ""):
        super().__init__(
            f"metrics query '{metric}'", reason,
            code="METRICS_FETCH_ERROR", metric=metric,
        )


# --- Sync Errors ---

class SyncError(HubError):
    """Base class for spreadsheet → table sync errors."""

    def __init__(self, message: str, code: str = "SYNC_ERROR", **kwargs):
        super().__init__(message, code=code, details=kwargs)


class SheetFetchError(SyncError):
    """Could not read values from a spreadsheet range."""

    def __init__(self, spreadsheet_id: str, sheet_range: str, reason: str = ""):
        msg = f"Could not read {sheet_range} from sheet {spreadsheet_id}"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg, code="SHEET_FETCH_ERROR",
            spreadsheet_id=spreadsheet_id, sheet_range=sheet_range,
        )


class SheetSyncError(SyncError):
    """Writing synced rows into the destination table failed."""

    def __init__(self, job: str, table: str, reason: str = ""):
        msg = f"Sync job '{job}' failed writing to {table}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, code="SHEET_SYNC_ERROR", job=job, table=table)


class TableWriteError(SyncError):
    """A delete or insert against a destination table failed."""

    def __init__(self, operation: str, table: str, reason: str = ""):
        msg = f"{operation} on {table} failed"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg, code="TABLE_WRITE_ERROR", operation=operation, table=table,
        )
