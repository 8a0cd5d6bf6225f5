"""
Error taxonomy for grid configuration synchronization.

Only schema drift and explicit profile-management actions raise. Option and
facet failures are collected into result structures (see ``applier.ApplyResult``)
so that a single bad setting never aborts the rest of an operation:

- unknown option: skipped on apply (``applier.SKIP_UNKNOWN``), persisted verbatim
- invalid value: an ``OptionError`` in ``ApplyResult.errors``
- stale instance: skipped on apply (``applier.SKIP_STALE``)
- malformed snapshot: repaired, reported in ``LoadResult.warnings``
"""

from dataclasses import dataclass
from typing import Optional


class GridSyncError(Exception):
    """Base class for all gridsync errors."""


class SchemaError(GridSyncError):
    """Canonical schema and alias table disagree (raised at import time)."""


class ProfileExistsError(GridSyncError):
    """A profile with the same (case-insensitive) name already exists."""


class ProfileNotFoundError(GridSyncError):
    """No profile stored under the requested name."""


@dataclass(frozen=True)
class OptionError:
    """A single option that failed to apply.

    Recorded instead of raised so siblings in the same batch still apply.
    """
    key: str
    category: Optional[str]
    message: str

    def __str__(self) -> str:
        return f"Failed to apply {self.key}: {self.message}"
