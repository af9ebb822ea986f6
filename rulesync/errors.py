"""Exception hierarchy for rule synchronization.

Every error carries the URL or path it concerns so that callers can surface
it without re-deriving context.
"""

import errno
from typing import Optional


class RuleSyncError(Exception):
    """Base class for all rulesync errors."""
    pass


class NetworkError(RuleSyncError):
    """Transport-level failure reaching a remote host."""

    def __init__(self, url: str, detail: str):
        self.url = url
        self.detail = detail
        super().__init__(f"Failed to download {url}: {detail}")


class ProtocolError(RuleSyncError):
    """Remote host answered with a non-success HTTP status."""

    def __init__(self, url: str, status_code: int, reason: str = ""):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        status = f"{status_code} {reason}".strip()
        super().__init__(f"Failed to download {url}: HTTP {status}")


class ParseError(RuleSyncError):
    """Malformed catalog, marker file or archive-contained document."""

    def __init__(self, location: str, detail: str):
        self.location = location
        self.detail = detail
        super().__init__(f"Failed to parse {location}: {detail}")


class ArchiveError(RuleSyncError):
    """Base class for archive extraction failures."""
    pass


class UnsupportedFormatError(ArchiveError):
    def __init__(self, path):
        self.path = str(path)
        super().__init__(f"Unsupported archive format: {self.path}")


class CorruptArchiveError(ArchiveError):
    def __init__(self, path, detail: str):
        self.path = str(path)
        self.detail = detail
        super().__init__(f"Corrupt archive {self.path}: {detail}")


class ConflictError(RuleSyncError):
    """Requested state change is not allowed, e.g. enabling an obsolete source."""

    def __init__(self, name: str, detail: str):
        self.name = name
        self.detail = detail
        super().__init__(f"Cannot enable obsolete ruleset '{name}': {detail}")


class UnknownSourceError(RuleSyncError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown ruleset: {name}")


class StorageError(RuleSyncError):
    """A filesystem operation failed.

    Permission problems are called out separately in the message so an
    operator can tell "fix permissions first" from "retry".
    """

    def __init__(self, path, action: str, cause: Optional[OSError] = None):
        self.path = str(path)
        self.action = action
        self.cause = cause
        self.permission_denied = isinstance(cause, PermissionError) or (
            cause is not None and getattr(cause, "errno", None) in (errno.EACCES, errno.EPERM)
        )
        if self.permission_denied:
            message = f"Failed to {action} {self.path}: permission denied"
        elif cause is not None:
            message = f"Failed to {action} {self.path}: {cause.strerror or cause}"
        else:
            message = f"Failed to {action} {self.path}"
        super().__init__(message)


class ConsistencyError(RuleSyncError):
    """Expected state is missing after a supposedly successful prior step."""
    pass
