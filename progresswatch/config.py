from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any

_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class WatchConfig:
    """Polling settings for completion waits and live streams."""

    stream_interval: float = 0.2
    completion_interval: float = 0.2
    max_store_failures: int | None = None  # None = retry forever
    max_wait: float | None = None  # None = wait until cancelled
    shared_polling: bool = False

    def __post_init__(self) -> None:
        if self.stream_interval <= 0:
            raise ValueError(f"stream_interval must be positive, got {self.stream_interval}")
        if self.completion_interval <= 0:
            raise ValueError(
                f"completion_interval must be positive, got {self.completion_interval}"
            )
        if self.max_store_failures is not None and self.max_store_failures < 1:
            raise ValueError(f"max_store_failures must be >= 1, got {self.max_store_failures}")
        if self.max_wait is not None and self.max_wait <= 0:
            raise ValueError(f"max_wait must be positive, got {self.max_wait}")

    def with_overrides(self, **overrides: Any) -> WatchConfig:
        """Return a copy with the given fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown config options: {', '.join(sorted(unknown))}")
        return replace(self, **overrides)

    @classmethod
    def from_env(cls, prefix: str = "PROGRESSWATCH_") -> WatchConfig:
        """Build config from environment variables, e.g. PROGRESSWATCH_STREAM_INTERVAL."""
        converters = {
            "stream_interval": float,
            "completion_interval": float,
            "max_store_failures": int,
            "max_wait": float,
            "shared_polling": lambda v: v.strip().lower() in _TRUE,
        }
        values: dict[str, Any] = {}
        for name, convert in converters.items():
            raw = os.getenv(prefix + name.upper())
            if raw:
                values[name] = convert(raw)
        return cls(**values)
