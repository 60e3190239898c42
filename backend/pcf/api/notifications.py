from fastapi import APIRouter, Depends, Query

from pcf.dependencies import get_notifier
from pcf.schemas.pcf import RecentNotificationsOut
from pcf.services.notifier import Notifier

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/recent", response_model=RecentNotificationsOut)
async def recent_notifications(
    limit: int = Query(20, ge=1, le=200),
    notifier: Notifier = Depends(get_notifier),
):
    return RecentNotificationsOut(ok=True, notifications=notifier.recent(limit))
