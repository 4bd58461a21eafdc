from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass
class ProgressEvent:
    """Event pushed to a live progress channel."""

    etype: Literal["progress"]
    job_id: str
    value: int

    def encode(self) -> str:
        """Render as a server-sent-events frame."""
        return f"event: {self.etype}\ndata: {self.value}\n\n"
