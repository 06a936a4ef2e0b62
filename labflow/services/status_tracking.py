"""
Status tracking service
Records order status transitions and reads them back
"""

import math
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from labflow.models.status_history import OrderStatusHistory
from labflow.utils.datetime_utils import as_utc, utcnow
from labflow.utils.error_handler import DatabaseError

logger = logging.getLogger(__name__)


class StatusTrackingService:
    """Append-only access to the order status history log"""

    def __init__(self, db: Session):
        self.db = db

    def record_status_change(
        self,
        order_id: str,
        old_status: Optional[str],
        new_status: str,
        actor_id: Optional[int],
        previous_changed_at: Optional[datetime] = None,
        changed_at: Optional[datetime] = None,
        commit: bool = True,
    ) -> OrderStatusHistory:
        """
        Append one history entry for a status change.

        ``previous_changed_at`` is the timestamp of the order's latest entry;
        when given, the entry's duration is the whole seconds elapsed since it.
        With ``commit=False`` the entry is only flushed so the caller can commit
        it together with other changes.
        """
        if not order_id or not new_status:
            raise ValueError("order_id and new_status are required")

        changed_at = as_utc(changed_at) if changed_at else utcnow()

        duration_seconds = None
        if previous_changed_at is not None:
            elapsed = changed_at - as_utc(previous_changed_at)
            duration_seconds = math.floor(elapsed.total_seconds())

        entry = OrderStatusHistory(
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=actor_id,
            changed_at=changed_at,
            duration_seconds=duration_seconds,
        )

        try:
            self.db.add(entry)
            if commit:
                self.db.commit()
                self.db.refresh(entry)
            else:
                self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error recording status change for order {order_id}: {e}")
            raise DatabaseError(f"Failed to record status change: {str(e)}", e)

        logger.info(f"Order {order_id} status {old_status} -> {new_status} by user {actor_id}")
        return entry

    def get_last_status_change(self, order_id: str) -> Optional[OrderStatusHistory]:
        """Most recent entry for an order, or None when it has no history"""
        try:
            return (
                self.db.query(OrderStatusHistory)
                .filter(OrderStatusHistory.order_id == order_id)
                .order_by(OrderStatusHistory.changed_at.desc(), OrderStatusHistory.id.desc())
                .first()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error fetching last status change for order {order_id}: {e}")
            raise DatabaseError(f"Failed to read status history: {str(e)}", e)

    def get_order_status_history(self, order_id: str) -> list[OrderStatusHistory]:
        """Full chronological history of an order; empty when none exists"""
        try:
            return (
                self.db.query(OrderStatusHistory)
                .filter(OrderStatusHistory.order_id == order_id)
                .order_by(OrderStatusHistory.changed_at.asc(), OrderStatusHistory.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error fetching status history for order {order_id}: {e}")
            raise DatabaseError(f"Failed to read status history: {str(e)}", e)

    def get_all_history(self) -> list[OrderStatusHistory]:
        try:
            return (
                self.db.query(OrderStatusHistory)
                .order_by(OrderStatusHistory.changed_at.asc(), OrderStatusHistory.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error fetching status history: {e}")
            raise DatabaseError(f"Failed to read status history: {str(e)}", e)
