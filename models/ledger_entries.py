from core.database import Base
from sqlalchemy import (Column, Integer, String, ForeignKey, Numeric, Enum, CheckConstraint)
from sqlalchemy.orm import relationship
from .mixins import CreatedAtMixin

LEDGER_KINDS = ("debit", "credit")


class LedgerEntry(Base, CreatedAtMixin):
    """
    Append-only record of one balance change. Rows are never updated;
    a user's balance is the sum of credits minus the sum of debits.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_ledger_amount_positive"),
    )

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="ledger_entries")

    kind = Column(Enum(*LEDGER_KINDS, name="ledger_kind"), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    balance_after = Column(Numeric(10, 2), nullable=False)
    reason = Column(String, nullable=False)
    reference_type = Column(String)
    reference_id = Column(String)
    # Set for credits that must happen at most once (webhook deliveries)
    idempotency_key = Column(String, unique=True, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "kind": self.kind,
            "amount": float(self.amount),
            "balance_after": float(self.balance_after),
            "reason": self.reason,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "created_at": self.created_at,
        }
