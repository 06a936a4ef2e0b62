"""
Status history model: one immutable row per order status transition
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from labflow.database import Base
from labflow.utils.datetime_utils import utcnow


class OrderStatusHistory(Base):
    """Append-only ledger of order status changes"""
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    old_status = Column(String(30), nullable=True)
    new_status = Column(String(30), nullable=False)
    changed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    changed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    duration_seconds = Column(Integer, nullable=True)

    order = relationship("Order", back_populates="status_history")

    def __repr__(self):
        return (
            f"<OrderStatusHistory(order_id={self.order_id}, "
            f"{self.old_status!r} -> {self.new_status!r}, at={self.changed_at})>"
        )
