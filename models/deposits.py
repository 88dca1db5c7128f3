from core.database import Base
from sqlalchemy.orm import relationship
from sqlalchemy import (Column, Integer, String, ForeignKey, Numeric, JSON)
from .mixins import CreatedAtMixin, UpdatedAtMixin


class Deposit(Base, CreatedAtMixin, UpdatedAtMixin):
    """
    A funding transaction. Crypto deposits start pending and are completed
    by the payment webhook; the USD amount is what gets credited.
    """
    __tablename__ = "deposits"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="deposits")

    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(String, nullable=False)
    # pending, completed or whatever the payment provider last reported
    status = Column(String, default="pending", nullable=False, index=True)
    transaction_id = Column(String, unique=True, index=True)
    payment_url = Column(String)
    payment_data = Column(JSON)

    def to_dict(self):
        return {
            "id": self.id,
            "amount": float(self.amount),
            "method": self.method,
            "status": self.status,
            "transaction_id": self.transaction_id,
            "payment_url": self.payment_url,
            "created_at": self.created_at,
        }
