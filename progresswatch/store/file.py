from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from ..exceptions import MalformedRecord, StoreUnavailable
from ..models import ProgressRecord
from .base import ProgressStore

logger = logging.getLogger("progresswatch.store.file")


class FileProgressStore(ProgressStore):
    """One JSON file per job, e.g. ``<directory>/<job_id>.json``.

    Producers should replace files atomically (write then rename); a
    half-written file reads as a malformed record.
    """

    def __init__(self, directory: str | Path, *, suffix: str = ".json", encoding: str = "utf-8"):
        self._directory = Path(directory)
        self._suffix = suffix
        self._encoding = encoding

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, job_id: str) -> Path | None:
        """Resolve the record file for a job; None for ids that escape the directory."""
        if not job_id or job_id in (".", "..") or "/" in job_id or "\\" in job_id:
            return None
        if "\x00" in job_id:
            return None
        return self._directory / f"{job_id}{self._suffix}"

    async def read(self, job_id: str) -> ProgressRecord | None:
        """Read and validate a job's record file."""
        path = self.path_for(job_id)
        if path is None:
            logger.debug(f"Rejected job id {job_id!r}")
            return None

        raw = await asyncio.to_thread(self._read_text, path)
        if raw is None:
            return None

        try:
            data = json.loads(raw)
        except ValueError as e:
            raise MalformedRecord(f"Invalid JSON in {path.name}: {e}") from e
        return ProgressRecord.from_dict(data)

    def _read_text(self, path: Path) -> str | None:
        try:
            if not self._directory.is_dir():
                raise StoreUnavailable(f"Progress directory not found: {self._directory}")
            return path.read_text(encoding=self._encoding)
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise MalformedRecord(f"Cannot decode {path.name}: {e}") from e
        except OSError as e:
            raise StoreUnavailable(f"Cannot read {path}: {e}") from e

    async def close(self) -> None:
        pass
