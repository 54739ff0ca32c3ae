from collections import deque

from fastapi import APIRouter, Depends

from ikanban.models.events import RuntimeLogEntry
from ikanban.orchestrator.dependencies import get_log_buffer

router = APIRouter(prefix="/logs", tags=["logs"])


@router.get("/", response_model=list[RuntimeLogEntry])
async def get_logs(
    limit: int = 50,
    task_id: str | None = None,
    log_buffer: deque[RuntimeLogEntry] = Depends(get_log_buffer),
):
    """Return recent log entries, newest first."""
    entries = [
        entry for entry in reversed(log_buffer)
        if task_id is None or entry.task_id == task_id
    ]
    return entries[:max(limit, 0)]
