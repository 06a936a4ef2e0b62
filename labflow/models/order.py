"""
Order model for database operations
"""

import uuid

from sqlalchemy import Column, String, DateTime, Date, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship

from labflow.database import Base
from labflow.statuses import OrderStatus, status_label
from labflow.utils.datetime_utils import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class Order(Base):
    """Dental prosthesis work order"""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_new_id)
    order_number = Column(String(50), unique=True, index=True, nullable=False)
    patient_name = Column(String(200), nullable=False)
    patient_id = Column(String(100), nullable=True)
    dentist_name = Column(String(200), nullable=False)
    clinic_name = Column(String(200), nullable=True)
    phone = Column(String(30), nullable=True)
    email = Column(String(200), nullable=True)
    address = Column(Text, nullable=True)
    date = Column(Date, nullable=True)
    selected_teeth = Column(JSON, nullable=False, default=list)
    material = Column(String(100), nullable=True)
    color = Column(String(50), nullable=True)
    prosthesis_type = Column(String(100), nullable=True)
    delivery_deadline = Column(Date, nullable=True)
    smile_photo_url = Column(String(500), nullable=True)
    scan_file_url = Column(String(500), nullable=True)
    additional_notes = Column(Text, nullable=True)
    status = Column(String(30), default=OrderStatus.PENDING.value, nullable=False, index=True)
    assigned_to = Column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    assigned_user = relationship("User", lazy="joined")
    status_history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.changed_at",
    )

    @property
    def status_label(self) -> str:
        return status_label(self.status)

    @property
    def assigned_username(self):
        return self.assigned_user.username if self.assigned_user else None

    def __repr__(self):
        return f"<Order(id={self.id}, order_number='{self.order_number}', status='{self.status}')>"
