"""
Order intake and management endpoints
"""

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from slowapi import Limiter
from slowapi.util import get_remote_address
from typing import Optional
import logging
import math

from labflow.config import settings
from labflow.database import get_db
from labflow.schemas.order import (
    OrderCreate, OrderUpdate, OrderResponse, OrderListResponse, PublicOrderResponse,
    StatusChange, OrderAssignment, DeadlineUpdate, OrderHistoryResponse,
    StatusHistoryEntryResponse, FileUploadResponse, SignedUrlResponse,
)
from labflow.services.change_feed import change_feed
from labflow.services.durations import format_duration
from labflow.services.order_service import OrderService
from labflow.services.storage import OrderFileStorage, get_storage
from labflow.auth.auth_handler import admin_required, user_required
from labflow.utils.error_handler import DatabaseError, StorageError

logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

router = APIRouter()


@router.post("/", response_model=OrderResponse, status_code=201)
@limiter.limit("10/minute")
async def submit_order(
    request: Request,
    order: OrderCreate,
    db: Session = Depends(get_db)
):
    """Submit a new order from the public intake form"""
    try:
        return await OrderService(db).create_order(order)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create order: {e}")
        raise HTTPException(status_code=500, detail="Failed to submit order")


@router.post("/{order_id}/files/{kind}", response_model=FileUploadResponse, status_code=201)
@limiter.limit("20/minute")
async def upload_order_file(
    request: Request,
    order_id: str,
    kind: str,
    file: UploadFile = File(..., description="Smile photo (image) or scan file"),
    db: Session = Depends(get_db),
    storage: OrderFileStorage = Depends(get_storage)
):
    """Attach the smile photo (``kind=smile``) or scan file (``kind=scan``) to a pending order"""
    try:
        # never buffer more than one byte past the limit
        content = await file.read(settings.max_upload_bytes + 1)
        if not content:
            raise HTTPException(status_code=400, detail="File is empty")
        if len(content) > settings.max_upload_bytes:
            raise HTTPException(status_code=413, detail="File is too large")
        if kind == "smile" and not (file.content_type or "").startswith("image/"):
            raise HTTPException(status_code=400, detail="Smile photo must be an image")

        order = await OrderService(db).attach_file(order_id, kind, file.filename, content, storage)
        path = order.smile_photo_url if kind == "smile" else order.scan_file_url
        return FileUploadResponse(order_id=order.id, kind=kind, path=path)
    except HTTPException:
        raise
    except (DatabaseError, StorageError) as e:
        logger.error(f"Failed to upload {kind} file for order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload file")


@router.get("/public", response_model=list[PublicOrderResponse])
@limiter.limit("60/minute")
async def list_public_orders(
    request: Request,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """Limited order listing for the lab board"""
    return await OrderService(db).list_public_orders(limit)


@router.get("/changes")
async def order_changes(
    request: Request,
    current_user: dict = Depends(user_required)
):
    """Server-sent events: one ``orders-changed`` event per committed order mutation"""
    queue = change_feed.subscribe()
    return StreamingResponse(
        change_feed.stream(queue, request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@router.get("/", response_model=OrderListResponse)
@limiter.limit("60/minute")
async def get_orders(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    status: Optional[str] = Query(None, description="Filter by status"),
    priority: bool = Query(False, description="Only orders with a deadline, soonest first"),
    current_user: dict = Depends(user_required),
    db: Session = Depends(get_db)
):
    """Get paginated list of orders with per-status counts"""
    try:
        orders, total, counts = await OrderService(db).list_orders(page, page_size, status, priority)
        return OrderListResponse(
            orders=orders,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size),
            status_counts=counts,
        )
    except DatabaseError as e:
        logger.error(f"Failed to get orders: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve orders")


@router.get("/{order_id}", response_model=OrderResponse)
@limiter.limit("60/minute")
async def get_order(
    request: Request,
    order_id: str,
    current_user: dict = Depends(user_required),
    db: Session = Depends(get_db)
):
    """Get a specific order by ID"""
    return OrderService(db).get_order_or_404(order_id)


@router.put("/{order_id}", response_model=OrderResponse)
@limiter.limit("30/minute")
async def update_order(
    request: Request,
    order_id: str,
    order_update: OrderUpdate,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Edit an order's clinic, patient and technical details"""
    try:
        return await OrderService(db).update_order(order_id, order_update)
    except DatabaseError as e:
        logger.error(f"Failed to update order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update order")


@router.post("/{order_id}/status", response_model=OrderResponse)
@limiter.limit("30/minute")
async def change_order_status(
    request: Request,
    order_id: str,
    status_change: StatusChange,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Move an order to a new status, recording the transition in its history"""
    try:
        return await OrderService(db).transition_status(
            order_id, status_change.status, current_user["user_id"]
        )
    except DatabaseError as e:
        logger.error(f"Failed to change status of order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update status")


@router.post("/{order_id}/assign", response_model=OrderResponse)
@limiter.limit("30/minute")
async def assign_order(
    request: Request,
    order_id: str,
    assignment: OrderAssignment,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Assign an order to a lab user, or clear the assignment"""
    try:
        return await OrderService(db).assign_order(order_id, assignment.user_id)
    except DatabaseError as e:
        logger.error(f"Failed to assign order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to assign order")


@router.post("/{order_id}/accept", response_model=OrderResponse)
@limiter.limit("30/minute")
async def accept_order(
    request: Request,
    order_id: str,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Take the order: assign it to the caller and start production"""
    try:
        return await OrderService(db).accept_order(order_id, current_user["user_id"])
    except DatabaseError as e:
        logger.error(f"Failed to accept order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to accept order")


@router.post("/{order_id}/unaccept", response_model=OrderResponse)
@limiter.limit("30/minute")
async def unaccept_order(
    request: Request,
    order_id: str,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    """Release the order back to pending and clear its assignment"""
    try:
        return await OrderService(db).unaccept_order(order_id, current_user["user_id"])
    except DatabaseError as e:
        logger.error(f"Failed to release order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to release order")


@router.put("/{order_id}/deadline", response_model=OrderResponse)
@limiter.limit("30/minute")
async def update_delivery_deadline(
    request: Request,
    order_id: str,
    deadline: DeadlineUpdate,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db)
):
    try:
        return await OrderService(db).update_deadline(order_id, deadline.delivery_deadline)
    except DatabaseError as e:
        logger.error(f"Failed to update deadline of order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update delivery deadline")


@router.delete("/{order_id}")
@limiter.limit("10/minute")
async def delete_order(
    request: Request,
    order_id: str,
    current_user: dict = Depends(admin_required),
    db: Session = Depends(get_db),
    storage: OrderFileStorage = Depends(get_storage)
):
    """Delete an order, its history and its files"""
    try:
        await OrderService(db).delete_order(order_id, storage)
        return {"message": "Order deleted successfully"}
    except DatabaseError as e:
        logger.error(f"Failed to delete order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete order")


@router.get("/{order_id}/history", response_model=OrderHistoryResponse)
@limiter.limit("60/minute")
async def get_order_history(
    request: Request,
    order_id: str,
    current_user: dict = Depends(user_required),
    db: Session = Depends(get_db)
):
    """Status transitions of an order, oldest first, with its total production time"""
    try:
        entries, total_seconds = await OrderService(db).get_history(order_id)
    except DatabaseError as e:
        logger.error(f"Failed to get history of order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve order history")

    return OrderHistoryResponse(
        order_id=order_id,
        entries=[
            StatusHistoryEntryResponse(
                id=entry.id,
                order_id=entry.order_id,
                old_status=entry.old_status,
                new_status=entry.new_status,
                changed_by=entry.changed_by,
                changed_at=entry.changed_at,
                duration_seconds=entry.duration_seconds,
                duration_formatted=format_duration(entry.duration_seconds),
            )
            for entry in entries
        ],
        total_production_seconds=total_seconds,
        total_production_formatted=format_duration(total_seconds),
    )


@router.get("/{order_id}/files/{kind}/signed-url", response_model=SignedUrlResponse)
@limiter.limit("60/minute")
async def get_signed_file_url(
    request: Request,
    order_id: str,
    kind: str,
    expires_in: Optional[int] = Query(None, ge=60, le=7 * 24 * 3600),
    current_user: dict = Depends(user_required),
    db: Session = Depends(get_db),
    storage: OrderFileStorage = Depends(get_storage)
):
    """Time-limited download URL for an order's smile photo or scan file"""
    path = OrderService(db).get_file_path(order_id, kind)
    if not storage.exists(path):
        raise HTTPException(status_code=404, detail="File not found")

    expires_in = expires_in or settings.signed_url_expire_seconds
    token = storage.create_signed_token(path, expires_in)
    return SignedUrlResponse(path=path, signed_url=f"/api/v1/files/{token}", expires_in=expires_in)
