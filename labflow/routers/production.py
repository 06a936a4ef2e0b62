"""
Production floor endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from slowapi import Limiter
from slowapi.util import get_remote_address
import logging

from labflow.config import settings
from labflow.database import get_db
from labflow.schemas.production import FloorLayout, FloorResponse
from labflow.services.order_service import OrderService
from labflow.services.production_floor import build_floor, load_floor_layout, save_floor_layout
from labflow.auth.auth_handler import admin_required, user_required

logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

router = APIRouter()


def get_floor_layout() -> FloorLayout:
    """Dependency returning the configured station layout"""
    return load_floor_layout(settings.floor_layout_path)


@router.get("/floor", response_model=FloorResponse)
@limiter.limit("60/minute")
async def get_production_floor(
    request: Request,
    current_user: dict = Depends(user_required),
    layout: FloorLayout = Depends(get_floor_layout),
    db: Session = Depends(get_db)
):
    """Every order placed at the station matching its status"""
    orders = await OrderService(db).list_all_orders()
    return build_floor(orders, layout)


@router.get("/layout", response_model=FloorLayout)
@limiter.limit("30/minute")
async def get_layout(
    request: Request,
    current_user: dict = Depends(user_required),
    layout: FloorLayout = Depends(get_floor_layout)
):
    return layout


@router.put("/layout", response_model=FloorLayout)
@limiter.limit("10/minute")
async def update_layout(
    request: Request,
    layout: FloorLayout,
    current_user: dict = Depends(admin_required)
):
    """Replace station titles and user colors (Admin only)"""
    if not settings.floor_layout_path:
        raise HTTPException(status_code=409, detail="No floor layout file is configured")

    try:
        save_floor_layout(layout, settings.floor_layout_path)
    except OSError as e:
        logger.error(f"Failed to save floor layout: {e}")
        raise HTTPException(status_code=500, detail="Failed to save floor layout")
    return layout
