"""Order lifecycle routes.

- POST /api/v1/orders/deliver       attach archived media, status → delivered
- POST /api/v1/orders/revision      customer revision request
- POST /api/v1/orders/portfolio     toggle portfolio visibility
- POST /api/v1/orders/archive-link  set the operator archive link
- GET  /api/v1/orders/{order_id}    buyer order view
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.database import get_session
from fulfillment.dependencies import get_lifecycle
from fulfillment.schemas.orders import (
    ArchiveLinkUpdate,
    DeliveryRequest,
    PortfolioUpdate,
    RevisionRequest,
)
from fulfillment.services.order_lifecycle import OrderLifecycleManager

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


@router.post("/deliver")
async def deliver_order(
    payload: DeliveryRequest,
    lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    await lifecycle.deliver(db, payload)
    return {"success": True}


@router.post("/revision")
async def request_revision(
    payload: RevisionRequest,
    lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    await lifecycle.request_revision(db, payload.order_id, payload.reason)
    return {"success": True}


@router.post("/portfolio")
async def update_portfolio(
    payload: PortfolioUpdate,
    lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    await lifecycle.update_portfolio(db, payload.order_id, payload.portfolio_enabled)
    return {"success": True}


@router.post("/archive-link")
async def update_archive_link(
    payload: ArchiveLinkUpdate,
    lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    await lifecycle.update_archive_url(db, payload.order_id, payload.archive_url)
    return {"success": True}


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    order = await lifecycle.get_order(db, order_id)
    return {"order": order.to_dict()}
