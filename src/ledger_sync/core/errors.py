"""
Error types

Only conditions the caller has to act on are raised. Recoverable problems
(one entity type failing to fetch, a classifier hiccup) are printed and
degraded to "no result" where they happen.
"""


class LedgerSyncError(Exception):
    """Base class for all ledger-sync errors"""


class NotAuthenticatedError(LedgerSyncError):
    """No usable source credential; the whole request fails"""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class PersistenceError(LedgerSyncError):
    """A write to the persistence collaborator did not durably succeed"""


class SourceFetchError(LedgerSyncError):
    """Network, auth or rate-limit failure talking to an upstream source"""

    def __init__(self, source: str, message: str, status_code: int = None):
        self.source = source
        self.status_code = status_code
        super().__init__(f"{source}: {message}")


class ValidationError(LedgerSyncError, ValueError):
    """Invalid input to a store or resolver operation"""


class NotFoundError(LedgerSyncError, KeyError):
    """Requested rule or connection does not exist"""

    def __str__(self):
        return str(self.args[0]) if self.args else ""


class UnsupportedRecordError(LedgerSyncError, ValueError):
    """Ledger entity type with no normalizer registered"""
