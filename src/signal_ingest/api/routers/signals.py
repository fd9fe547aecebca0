"""Signals router."""

from fastapi import APIRouter, Depends, HTTPException, Query

from ...errors import StoreError
from ...models import Outcome
from ...stores.base import SignalStore
from ..dependencies import get_signal_store
from ..schemas.signals import SignalListResponse, SignalResponse, SignalStatsResponse

router = APIRouter()


@router.get("", response_model=SignalListResponse)
async def list_signals(
    limit: int = Query(20, ge=1, le=500),
    open_only: bool = False,
    store: SignalStore = Depends(get_signal_store),
):
    """Get the most recent signals, newest first."""
    try:
        records = await store.list_recent(limit=limit, open_only=open_only)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    signals = [SignalResponse.from_record(r) for r in records]
    return SignalListResponse(signals=signals, count=len(signals))


@router.get("/stats", response_model=SignalStatsResponse)
async def signal_stats(store: SignalStore = Depends(get_signal_store)):
    """Get signal totals per outcome and the overall win rate."""
    try:
        counts = await store.outcome_counts()
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    wins = sum(counts.get(o.value, 0) for o in Outcome if o.is_win)
    losses = counts.get(Outcome.LOSS.value, 0)
    resolved = wins + losses

    return SignalStatsResponse(
        total=sum(counts.values()),
        open=counts.get("open", 0),
        win=counts.get(Outcome.WIN.value, 0),
        win1=counts.get(Outcome.WIN1.value, 0),
        win2=counts.get(Outcome.WIN2.value, 0),
        loss=losses,
        win_rate=round(wins / resolved, 4) if resolved else None,
    )
