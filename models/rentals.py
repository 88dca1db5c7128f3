from datetime import timedelta
from core.database import Base
from sqlalchemy.orm import relationship
from sqlalchemy import (Column, Integer, String, ForeignKey, Numeric, Enum, Boolean, DateTime, JSON, Index, CheckConstraint)
from .mixins import CreatedAtMixin, UpdatedAtMixin

RENTAL_STATUSES = ("active", "expired", "cancelled", "rejected")
RENTAL_DURATIONS = {"3days": 3, "30days": 30}
RENTAL_ACTIONS = {"hotspot": "action_hotspot", "dislike": "action_dislike",
                  "addToCart": "action_add_to_cart"}


class Rental(Base, CreatedAtMixin, UpdatedAtMixin):
    """A long-term number leased for 3 or 30 days."""
    __tablename__ = "rentals"
    __table_args__ = (
        CheckConstraint("expires_at >= start_date", name="ck_rentals_expiry_after_start"),
        Index("ix_rentals_user_created", "user_id", "created_at"),
    )

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    original_rental_id = Column(Integer, ForeignKey("rentals.id"), nullable=True)

    #relationships
    user = relationship("User", back_populates="rentals")
    original_rental = relationship("Rental", remote_side=[id])

    service = Column(String, nullable=False, index=True)
    state = Column(String, default="random", nullable=False)
    duration = Column(Enum(*RENTAL_DURATIONS, name="rental_duration"), nullable=False)
    number = Column(String)
    transaction_id = Column(String, index=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(Enum(*RENTAL_STATUSES, name="rental_status"), default="active", nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)

    # Last message read from the rental inbox
    sms = Column(String)
    pin = Column(String)
    last_message_time = Column(DateTime(timezone=True))
    api_response = Column(JSON)

    is_renewal = Column(Boolean, default=False, nullable=False)

    action_hotspot = Column(Boolean, default=False, nullable=False)
    action_dislike = Column(Boolean, default=False, nullable=False)
    action_add_to_cart = Column(Boolean, default=False, nullable=False)

    @property
    def duration_days(self) -> int:
        return RENTAL_DURATIONS[self.duration]

    @property
    def duration_delta(self) -> timedelta:
        return timedelta(days=self.duration_days)

    @property
    def actions(self):
        return {name: bool(getattr(self, column)) for name, column in RENTAL_ACTIONS.items()}

    def to_dict(self):
        return {
            "id": self.id,
            "service": self.service,
            "state": self.state,
            "duration": self.duration,
            "number": self.number,
            "price": float(self.price),
            "status": self.status,
            "transaction_id": self.transaction_id,
            "start_date": self.start_date,
            "expires_at": self.expires_at,
            "sms": self.sms,
            "pin": self.pin,
            "last_message_time": self.last_message_time,
            "is_renewal": self.is_renewal,
            "original_rental_id": self.original_rental_id,
            "actions": self.actions,
            "created_at": self.created_at,
        }
