from __future__ import annotations

import abc

from ..models import ProgressRecord


class ProgressStore(abc.ABC):
    """Abstract read-only access to producer-owned progress records."""

    @abc.abstractmethod
    async def read(self, job_id: str) -> ProgressRecord | None:
        """Get the current record for a job, or None if no record exists.

        Raises StoreUnavailable when the medium cannot be read and
        MalformedRecord when the stored data is not a valid record.
        """
        ...

    @abc.abstractmethod
    async def close(self) -> None:
        """Close store connections."""
        ...
