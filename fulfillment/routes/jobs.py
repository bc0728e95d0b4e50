"""Operational routes.

- POST /api/v1/jobs/expiry-sweep       run the expiry reaper once
- POST /api/v1/admin/cache/invalidate  drop cached settings (webhook config)
"""

from typing import Any

from fastapi import APIRouter, Depends

from fulfillment.dependencies import get_dispatcher, get_reaper
from fulfillment.services.expiry_reaper import ExpiryReaper
from fulfillment.services.notification_dispatcher import NotificationDispatcher
from fulfillment.utils.logging import get_logger

log = get_logger(__name__)
router = APIRouter(prefix="/api/v1", tags=["jobs"])


@router.post("/jobs/expiry-sweep")
async def run_expiry_sweep(reaper: ExpiryReaper = Depends(get_reaper)) -> dict[str, Any]:
    """Manual trigger for the scheduled sweep. Returns the SweepResult counts."""
    result = await reaper.run()
    return {"success": True, **result.to_dict()}


@router.post("/admin/cache/invalidate")
async def invalidate_settings_cache(
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, bool]:
    dispatcher.invalidate_config()
    log.info("settings_cache_invalidated")
    return {"success": True}
