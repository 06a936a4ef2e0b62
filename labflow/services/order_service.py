"""
Order service
Business logic for order intake, admin edits and status transitions
"""

import time
import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from labflow.models.order import Order
from labflow.models.user import User
from labflow.schemas.order import OrderCreate, OrderUpdate
from labflow.services.change_feed import ChangeFeed, change_feed
from labflow.services.durations import calculate_total_production_time
from labflow.services.status_tracking import StatusTrackingService
from labflow.services.storage import OrderFileStorage
from labflow.statuses import OrderStatus, parse_status
from labflow.utils.error_handler import DatabaseError

logger = logging.getLogger(__name__)

FILE_KINDS = {
    "smile": "smile_photo_url",
    "scan": "scan_file_url",
}


def serialize_tooth_configs(configs) -> str:
    """Readable block describing per-tooth work, appended to the order notes"""
    lines = ["Configuração por dente:"]
    for config in configs:
        parts = [config.work_type] + [part for part in (config.implant_type, config.material) if part]
        lines.append(f"- {config.tooth_number}: {' / '.join(parts)}")
    return "\n".join(lines)


class OrderService:
    """Service for order management operations"""

    def __init__(self, db: Session, feed: ChangeFeed = change_feed):
        self.db = db
        self.feed = feed
        self.tracker = StatusTrackingService(db)

    def _commit(self, action: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to {action}: {e}")
            raise DatabaseError(f"Failed to {action}: {str(e)}", e)

    def _notify(self, order_id: Optional[str] = None):
        self.feed.publish(order_id=order_id)

    def _generate_order_number(self) -> str:
        candidate = int(time.time() * 1000)
        while self.db.query(Order.id).filter(Order.order_number == f"OS-{candidate}").first():
            candidate += 1
        return f"OS-{candidate}"

    def get_order_or_404(self, order_id: str) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
        return order

    async def create_order(self, order_data: OrderCreate) -> Order:
        """Register a submitted order in ``pending`` status"""
        data = order_data.dict(exclude={"tooth_configs"})

        if order_data.tooth_configs:
            block = serialize_tooth_configs(order_data.tooth_configs)
            notes = data.get("additional_notes")
            data["additional_notes"] = f"{notes}\n\n{block}" if notes else block

        db_order = Order(
            **data,
            order_number=self._generate_order_number(),
            status=OrderStatus.PENDING.value,
        )
        self.db.add(db_order)
        self._commit("create order")
        self.db.refresh(db_order)

        logger.info(f"Created order {db_order.order_number} with ID: {db_order.id}")
        self._notify(db_order.id)
        return db_order

    async def list_orders(
        self,
        page: int = 1,
        page_size: int = 20,
        status_filter: Optional[str] = None,
        priority: bool = False,
    ) -> tuple:
        """
        Paginated orders plus per-status counts over the whole table.

        ``priority`` keeps only orders with a delivery deadline, soonest first;
        otherwise orders are newest first. ``status_filter`` applies in both modes.
        """
        try:
            query = self.db.query(Order)
            if status_filter:
                query = query.filter(Order.status == status_filter)
            if priority:
                query = query.filter(Order.delivery_deadline.isnot(None)).order_by(
                    Order.delivery_deadline.asc(), Order.created_at.asc()
                )
            else:
                query = query.order_by(Order.created_at.desc())

            total = query.count()
            orders = query.offset((page - 1) * page_size).limit(page_size).all()

            counts = dict(
                self.db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to list orders: {e}")
            raise DatabaseError(f"Failed to list orders: {str(e)}", e)

        return orders, total, counts

    async def list_public_orders(self, limit: int = 100) -> list[Order]:
        return self.db.query(Order).order_by(Order.created_at.desc()).limit(limit).all()

    async def list_all_orders(self) -> list[Order]:
        return self.db.query(Order).order_by(Order.created_at.asc()).all()

    async def update_order(self, order_id: str, order_update: OrderUpdate) -> Order:
        """Apply admin edits; status is changed only through transitions"""
        db_order = self.get_order_or_404(order_id)

        for field, value in order_update.dict(exclude_unset=True).items():
            if field in ("patient_name", "dentist_name") and value is None:
                continue
            setattr(db_order, field, value)

        self._commit("update order")
        self.db.refresh(db_order)

        logger.info(f"Updated order with ID: {order_id}")
        self._notify(order_id)
        return db_order

    async def transition_status(
        self,
        order_id: str,
        new_status: str,
        actor_id: Optional[int],
        changed_at: Optional[datetime] = None,
        **changes,
    ) -> Order:
        """
        Move an order to ``new_status`` and append the history entry in one transaction.

        Extra keyword arguments are order fields updated in the same transaction
        (e.g. ``assigned_to``). Requesting the current status only applies those fields.
        """
        try:
            new_status = parse_status(new_status).value
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

        db_order = self.get_order_or_404(order_id)
        old_status = db_order.status

        if old_status == new_status and not changes:
            return db_order

        try:
            for field, value in changes.items():
                setattr(db_order, field, value)

            if old_status != new_status:
                last = self.tracker.get_last_status_change(db_order.id)
                self.tracker.record_status_change(
                    order_id=db_order.id,
                    old_status=last.new_status if last else None,
                    new_status=new_status,
                    actor_id=actor_id,
                    previous_changed_at=last.changed_at if last else None,
                    changed_at=changed_at,
                    commit=False,
                )
                db_order.status = new_status

            self._commit("change order status")
        except DatabaseError:
            self.db.rollback()
            raise

        self.db.refresh(db_order)
        logger.info(f"Order {db_order.order_number} moved {old_status} -> {new_status}")
        self._notify(order_id)
        return db_order

    def _get_active_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user or not user.is_active:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return user

    async def assign_order(self, order_id: str, user_id: Optional[int]) -> Order:
        db_order = self.get_order_or_404(order_id)
        if user_id is not None:
            self._get_active_user(user_id)

        db_order.assigned_to = user_id
        self._commit("assign order")
        self.db.refresh(db_order)

        logger.info(f"Order {db_order.order_number} assigned to user {user_id}")
        self._notify(order_id)
        return db_order

    async def accept_order(self, order_id: str, actor_id: int) -> Order:
        """Assign the order to the actor and start production"""
        return await self.transition_status(
            order_id, OrderStatus.IN_PROGRESS.value, actor_id, assigned_to=actor_id
        )

    async def unaccept_order(self, order_id: str, actor_id: int) -> Order:
        """Release the order back to the waiting queue"""
        return await self.transition_status(
            order_id, OrderStatus.PENDING.value, actor_id, assigned_to=None
        )

    async def update_deadline(self, order_id: str, deadline) -> Order:
        db_order = self.get_order_or_404(order_id)
        db_order.delivery_deadline = deadline
        self._commit("update delivery deadline")
        self.db.refresh(db_order)
        self._notify(order_id)
        return db_order

    async def delete_order(self, order_id: str, storage: Optional[OrderFileStorage] = None) -> None:
        db_order = self.get_order_or_404(order_id)
        order_number = db_order.order_number

        self.db.delete(db_order)
        self._commit("delete order")

        if storage is not None:
            storage.delete_prefix(order_number)

        logger.info(f"Deleted order {order_number} ({order_id})")
        self._notify(order_id)

    async def attach_file(
        self,
        order_id: str,
        kind: str,
        filename: Optional[str],
        content: bytes,
        storage: OrderFileStorage,
    ) -> Order:
        """
        Store a smile photo or scan file under the order number and record its path.

        Files are written once, while the order is still pending; a kind that
        already has a stored file is never replaced.
        """
        if kind not in FILE_KINDS:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown file kind")

        db_order = self.get_order_or_404(order_id)
        if db_order.status != OrderStatus.PENDING.value:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Files can only be attached while the order is pending"
            )
        if getattr(db_order, FILE_KINDS[kind]):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A {kind} file is already attached to this order"
            )

        path = storage.build_path(db_order.order_number, kind, filename)
        storage.upload_bytes(path, content)

        setattr(db_order, FILE_KINDS[kind], path)
        self._commit("attach file")
        self.db.refresh(db_order)

        self._notify(order_id)
        return db_order

    def get_file_path(self, order_id: str, kind: str) -> str:
        if kind not in FILE_KINDS:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown file kind")
        db_order = self.get_order_or_404(order_id)
        path = getattr(db_order, FILE_KINDS[kind])
        if not path:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No file attached")
        return path

    async def get_history(self, order_id: str) -> tuple:
        """History entries of an order with its total production time"""
        self.get_order_or_404(order_id)
        entries = self.tracker.get_order_status_history(order_id)
        return entries, calculate_total_production_time(entries)
