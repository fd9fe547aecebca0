"""Health check router."""

from fastapi import APIRouter, Depends

from ...errors import StoreError
from ...events import manager
from ...ingestion import IngestionLoop
from ..dependencies import get_ingestion_loop

router = APIRouter()


@router.get("/")
async def health_check(loop: IngestionLoop = Depends(get_ingestion_loop)) -> dict:
    """Check that the signal store is reachable.

    Returns:
        dict: Health status including store state and the active source.
    """
    try:
        counts = await loop.signal_store.outcome_counts()
    except StoreError as e:
        return {
            "status": "unhealthy",
            "store": {"reachable": False, "error": str(e)},
            "source": loop.source.name,
        }

    return {
        "status": "healthy",
        "store": {"reachable": True, "signals": sum(counts.values())},
        "source": loop.source.name,
        "websocket_clients": manager.connection_count,
    }
