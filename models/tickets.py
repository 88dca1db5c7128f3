from core.database import Base
from sqlalchemy import (Column, Integer, String, ForeignKey, Enum, Text)
from sqlalchemy.orm import relationship
from .mixins import CreatedAtMixin, UpdatedAtMixin

TICKET_STATUSES = ("open", "pending", "closed")
TICKET_PRIORITIES = ("low", "medium", "high")
TICKET_CATEGORIES = ("general", "technical", "billing", "account")


class Ticket(Base, CreatedAtMixin, UpdatedAtMixin):
    __tablename__ = "tickets"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="tickets")
    messages = relationship("TicketMessage", back_populates="ticket",
                            order_by="TicketMessage.id", cascade="all, delete-orphan")

    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    status = Column(Enum(*TICKET_STATUSES, name="ticket_status"), default="open", nullable=False, index=True)
    priority = Column(Enum(*TICKET_PRIORITIES, name="ticket_priority"), default="medium", nullable=False)
    category = Column(Enum(*TICKET_CATEGORIES, name="ticket_category"), default="general", nullable=False)

    def to_dict(self, with_messages: bool = False):
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "category": self.category,
            "created_at": self.created_at,
        }
        if with_messages:
            data["messages"] = [message.to_dict() for message in self.messages]
        return data


class TicketMessage(Base, CreatedAtMixin):
    __tablename__ = "ticket_messages"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    ticket = relationship("Ticket", back_populates="messages")

    sender = Column(Enum("user", "support", name="ticket_sender"), nullable=False)
    content = Column(Text, nullable=False)

    def to_dict(self):
        return {"sender": self.sender, "content": self.content, "created_at": self.created_at}
