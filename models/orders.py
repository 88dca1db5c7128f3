from core.database import Base
from sqlalchemy.orm import relationship
from sqlalchemy import (Column, Integer, String, ForeignKey, Numeric, Enum, Boolean, DateTime, JSON, Index)
from .mixins import CreatedAtMixin, UpdatedAtMixin

ORDER_STATUSES = ("pending", "completed", "failed", "expired", "rejected")
ORDER_ACTIONS = {"hotspot": "action_hotspot", "dislike": "action_dislike",
                 "addToCart": "action_add_to_cart", "renew": "action_renew"}


class Order(Base, CreatedAtMixin, UpdatedAtMixin):
    """A single-use temporary number bought for one SMS verification."""
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
    )

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    original_order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)

    #relationships
    user = relationship("User", back_populates="orders")
    original_order = relationship("Order", remote_side=[id])

    service = Column(String, nullable=False, index=True)
    state = Column(String, default="random", nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(Enum(*ORDER_STATUSES, name="order_status"), default="pending", nullable=False, index=True)
    transaction_id = Column(String, index=True)
    number = Column(String)
    sms = Column(String)
    pin = Column(String)
    last_message_time = Column(DateTime(timezone=True))
    # Last message exactly as the provider returned it
    api_response = Column(JSON)
    expires_at = Column(DateTime(timezone=True), index=True)
    is_premium = Column(Boolean, default=False, nullable=False)
    markup_percentage = Column(Numeric(5, 2), default=0, nullable=False)

    is_renewal = Column(Boolean, default=False, nullable=False)

    action_hotspot = Column(Boolean, default=False, nullable=False)
    action_dislike = Column(Boolean, default=False, nullable=False)
    action_add_to_cart = Column(Boolean, default=False, nullable=False)
    action_renew = Column(Boolean, default=False, nullable=False)

    @property
    def actions(self):
        return {name: bool(getattr(self, column)) for name, column in ORDER_ACTIONS.items()}

    def to_dict(self):
        api_response = self.api_response or {}
        return {
            "id": self.id,
            "service": self.service,
            "state": self.state,
            "number": self.number,
            "status": self.status,
            "price": float(self.amount),
            "amount": float(self.amount),
            "transaction_id": self.transaction_id,
            "sms": self.sms,
            "pin": self.pin,
            "reply": api_response.get("reply", self.sms),
            "timestamp": api_response.get("timestamp"),
            "date_time": api_response.get("date_time"),
            "last_message_time": self.last_message_time,
            "expires_at": self.expires_at,
            "is_premium": self.is_premium,
            "markup_percentage": float(self.markup_percentage or 0),
            "is_renewal": self.is_renewal,
            "original_order_id": self.original_order_id,
            "actions": self.actions,
            "created_at": self.created_at,
        }
