from core.database import Base
from sqlalchemy import (Column, Integer, String, Boolean, DateTime, Numeric, Enum, CheckConstraint)
from sqlalchemy.orm import relationship
from .mixins import CreatedAtMixin, UpdatedAtMixin

CONTACT_METHODS = ("telegram", "teams", "whatsapp", "slack", "discord")


class User(Base, CreatedAtMixin, UpdatedAtMixin):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
    )

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #relationships
    orders = relationship("Order", back_populates="user")
    rentals = relationship("Rental", back_populates="user")
    deposits = relationship("Deposit", back_populates="user")
    ledger_entries = relationship("LedgerEntry", back_populates="user")
    tickets = relationship("Ticket", back_populates="user")
    refresh_tokens = relationship("RefreshToken", back_populates="user")

    email = Column(String, unique=True, nullable=False)
    username = Column(String, nullable=False, index=True)
    hashed_password = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    role = Column(String, default="member", nullable=False)
    contact_method = Column(Enum(*CONTACT_METHODS, name="contact_method"), nullable=False)
    contact_value = Column(String, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    # Materialised head of the ledger, only ever changed by LedgerService
    balance = Column(Numeric(10, 2), default=0, nullable=False)
    # Email verification fields
    is_verified = Column(Boolean, default=False, nullable=False)
    verification_token = Column(String(255), nullable=True, index=True)
    verification_token_expires_at = Column(DateTime(timezone=True), nullable=True)
    # Password reset fields
    password_reset_token = Column(String(255), nullable=True, index=True)
    password_reset_expires_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "role": self.role,
            "contact_method": self.contact_method,
            "contact_value": self.contact_value,
            "balance": float(self.balance or 0),
            "last_login": self.last_login,
        }
