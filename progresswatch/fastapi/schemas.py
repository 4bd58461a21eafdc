from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ProgressResponse(BaseModel):
    """Current progress of a job."""

    job_id: str
    progress: int = Field(ge=0, le=100)
    done: bool = False
    result: Any | None = None


class HealthResponse(BaseModel):
    """Service health."""

    status: str
    service: str
    active_polls: int
