from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, NewType

from .exceptions import MalformedRecord

JobId = NewType("JobId", str)

TERMINAL_PROGRESS = 100


@dataclass(frozen=True)
class ProgressRecord:
    """Snapshot of a job's progress as written by its producer."""

    progress: int
    result: Any | None = None

    @property
    def is_terminal(self) -> bool:
        """Check if the job has finished."""
        return self.progress == TERMINAL_PROGRESS

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict."""
        d: dict[str, Any] = {"progress": self.progress}
        if self.result is not None:
            d["result"] = self.result
        return d

    @classmethod
    def from_dict(cls, data: Any) -> ProgressRecord:
        """Validate raw stored data and build a record.

        Raises MalformedRecord when the data is not a mapping, when ``progress``
        is missing, not integral or outside 0..100, or when a result is present
        before the job reached 100.
        """
        if not isinstance(data, Mapping):
            raise MalformedRecord(f"Expected a mapping, got {type(data).__name__}")
        if "progress" not in data:
            raise MalformedRecord("Record has no 'progress' field")

        raw = data["progress"]
        # bool is an int subclass
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise MalformedRecord(f"Invalid progress value: {raw!r}")
        if isinstance(raw, float) and not raw.is_integer():
            raise MalformedRecord(f"Progress must be integral: {raw!r}")
        progress = int(raw)
        if not 0 <= progress <= TERMINAL_PROGRESS:
            raise MalformedRecord(f"Progress out of range: {progress}")

        result = data.get("result")
        if result is not None and progress != TERMINAL_PROGRESS:
            raise MalformedRecord(f"Result present before completion (progress={progress})")

        return cls(progress=progress, result=result)
