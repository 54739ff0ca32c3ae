from fastapi import APIRouter, Depends

from ikanban.orchestrator.dependencies import get_runtime
from ikanban.runtime_client.client import RuntimeClientProvider

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(
    runtime: RuntimeClientProvider = Depends(get_runtime),
) -> dict:
    return {
        "status": "ok",
        "runtime_url": runtime.base_url,
        "runtime_connected": runtime.is_connected,
    }
