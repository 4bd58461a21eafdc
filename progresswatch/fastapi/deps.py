from fastapi import Request

from ..watcher import ProgressWatcher
from .lifecycle import WATCHER_STATE_KEY


def get_progress_watcher(request: Request) -> ProgressWatcher:
    """Dependency to get ProgressWatcher from app state."""
    watcher = getattr(request.app.state, WATCHER_STATE_KEY, None)
    if watcher is None:
        raise RuntimeError("ProgressWatcher not initialized. Did you call setup_progresswatch()?")
    return watcher
