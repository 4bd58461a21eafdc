from __future__ import annotations

import asyncio
import contextlib
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import StreamingResponse

from ..events import ProgressEvent
from ..exceptions import (
    CancelledError,
    MalformedRecord,
    ProgressWatchError,
    StoreUnavailable,
    TimeoutError,
)
from ..models import ProgressRecord
from ..watcher import ProgressWatcher
from .deps import get_progress_watcher
from .schemas import HealthResponse, ProgressResponse

logger = logging.getLogger("progresswatch.router")

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# nginx's "client closed request"
CLIENT_CLOSED_REQUEST = 499

DISCONNECT_CHECK_INTERVAL = 0.5


def _map_record(job_id: str, record: ProgressRecord) -> ProgressResponse:
    """Map ProgressRecord to ProgressResponse."""
    return ProgressResponse(
        job_id=job_id,
        progress=record.progress,
        done=record.is_terminal,
        result=record.result,
    )


async def _until_disconnected(request: Request) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_CHECK_INTERVAL)


def get_router() -> APIRouter:
    """Get FastAPI router for progress endpoints."""
    router = APIRouter(prefix="/jobs", tags=["Progress"])

    @router.get("/_health", response_model=HealthResponse)
    async def health_check(watcher: ProgressWatcher = Depends(get_progress_watcher)):
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            service="progresswatch",
            active_polls=watcher.active_polls,
        )

    @router.get("/{job_id}", response_model=ProgressResponse)
    async def get_progress(
        job_id: str,
        watcher: ProgressWatcher = Depends(get_progress_watcher),
    ) -> ProgressResponse:
        """Get current job progress."""
        try:
            record = await watcher.read(job_id)
        except MalformedRecord as e:
            raise HTTPException(status_code=502, detail=f"Malformed progress record: {e}")
        except StoreUnavailable as e:
            raise HTTPException(status_code=503, detail=f"Progress store unavailable: {e}")
        if record is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return _map_record(job_id, record)

    @router.get("/{job_id}/result", response_model=ProgressResponse)
    async def get_result(
        job_id: str,
        request: Request,
        timeout: float | None = Query(default=None, gt=0, le=86400),
        watcher: ProgressWatcher = Depends(get_progress_watcher),
    ):
        """Block until the job completes and return its final record."""
        wait_task = asyncio.create_task(watcher.wait(job_id, timeout=timeout))
        disconnect_task = asyncio.create_task(_until_disconnected(request))
        try:
            await asyncio.wait({wait_task, disconnect_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (wait_task, disconnect_task):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        if wait_task.cancelled():
            logger.info(f"Client disconnected while waiting for job {job_id}")
            return Response(status_code=CLIENT_CLOSED_REQUEST)

        try:
            record = wait_task.result()
        except MalformedRecord as e:
            raise HTTPException(status_code=502, detail=f"Malformed progress record: {e}")
        except TimeoutError as e:
            raise HTTPException(status_code=504, detail=str(e))
        except (StoreUnavailable, CancelledError) as e:
            raise HTTPException(status_code=503, detail=str(e))
        return _map_record(job_id, record)

    @router.get("/{job_id}/events")
    async def stream_progress(
        job_id: str,
        watcher: ProgressWatcher = Depends(get_progress_watcher),
    ) -> StreamingResponse:
        """Stream progress values as server-sent events until the job completes."""
        feed = watcher.stream(job_id)

        async def _gen():
            try:
                async for value in feed:
                    yield ProgressEvent(etype="progress", job_id=job_id, value=value).encode()
            except ProgressWatchError as e:
                logger.error(f"Progress events for job {job_id} closed on error: {e}")
            finally:
                feed.close()

        return StreamingResponse(_gen(), media_type="text/event-stream", headers=SSE_HEADERS)

    return router
