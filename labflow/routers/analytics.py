"""
Production analytics endpoint
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from slowapi import Limiter
from slowapi.util import get_remote_address
import logging

from labflow.config import settings
from labflow.database import get_db
from labflow.schemas.analytics import AnalyticsPeriod, AnalyticsResponse
from labflow.services.analytics import build_analytics
from labflow.services.order_service import OrderService
from labflow.services.status_tracking import StatusTrackingService
from labflow.services.user_service import UserService
from labflow.auth.auth_handler import admin_required
from labflow.utils.datetime_utils import utcnow
from labflow.utils.error_handler import DatabaseError

logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

router = APIRouter()


@router.get("/", response_model=AnalyticsResponse)
@limiter.limit("30/minute")
async def get_analytics(
    request: Request,
    period: AnalyticsPeriod = Query(AnalyticsPeriod.DAILY, description="Completion time bucket size"),
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Completion times, status distribution and per-user performance (Admin only)"""
    try:
        orders = await OrderService(db).list_all_orders()
        history = StatusTrackingService(db).get_all_history()
        usernames = UserService(db).get_usernames()
    except DatabaseError as e:
        logger.error(f"Failed to load analytics data: {e}")
        raise HTTPException(status_code=500, detail="Failed to load analytics")

    return build_analytics(
        orders,
        history,
        usernames,
        period,
        now=utcnow(),
        tz=settings.timezone,
        week_starts_on=settings.week_starts_on,
    )
