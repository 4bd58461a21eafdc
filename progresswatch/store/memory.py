from __future__ import annotations

from typing import Any

from ..models import ProgressRecord
from .base import ProgressStore


class MemoryProgressStore(ProgressStore):
    """In-process store holding raw record data, validated on read."""

    def __init__(self, records: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(records or {})

    async def read(self, job_id: str) -> ProgressRecord | None:
        """Get record by job ID."""
        if job_id not in self._data:
            return None
        return ProgressRecord.from_dict(self._data[job_id])

    def write(self, job_id: str, progress: int, result: Any | None = None) -> None:
        """Overwrite a job's record (producer side)."""
        data: dict[str, Any] = {"progress": progress}
        if result is not None:
            data["result"] = result
        self._data[job_id] = data

    def write_raw(self, job_id: str, data: Any) -> None:
        """Store arbitrary data for a job, valid or not."""
        self._data[job_id] = data

    def delete(self, job_id: str) -> None:
        self._data.pop(job_id, None)

    async def close(self) -> None:
        pass
