from fastapi import BackgroundTasks
from sqlalchemy.orm import Session
from models.tickets import Ticket, TicketMessage
from models.users import User
from schemas.ticket_schemas import CreateTicketRequest, TicketReplyRequest
from services.email_service import send_email, ticket_notification_email
from core.config import settings
from core.exceptions import NotFound, InvalidInput
from utils.logger import get_logger

logger = get_logger(__name__)


class TicketService:

    @staticmethod
    def _notify_support(bg: BackgroundTasks, ticket: Ticket, user: User, message: str, is_reply: bool = False):
        recipient = settings.ADMIN_EMAIL or settings.MAIL_FROM
        subject, body = ticket_notification_email(ticket, user.username, message, is_reply=is_reply)
        bg.add_task(send_email, to_email=recipient, subject=subject, body=body)

    @staticmethod
    def create_ticket(db: Session, user: User, body: CreateTicketRequest, bg: BackgroundTasks) -> Ticket:
        ticket = Ticket(
            user_id=user.id,
            title=body.title,
            description=body.description,
            category=body.category,
            priority=body.priority,
            status="open"
        )
        # The description doubles as the first message of the thread
        ticket.messages.append(TicketMessage(sender="user", content=body.description))
        db.add(ticket)
        db.commit()
        db.refresh(ticket)

        logger.info("Ticket created", extra={"ticket_id": ticket.id, "user_id": user.id, "category": ticket.category})
        TicketService._notify_support(bg, ticket, user, body.description)
        return ticket

    @staticmethod
    def list_tickets(db: Session, user: User) -> list[Ticket]:
        return db.query(Ticket).filter(Ticket.user_id == user.id).order_by(
            Ticket.created_at.desc(), Ticket.id.desc()
        ).all()

    @staticmethod
    def get_ticket(db: Session, user: User, ticket_id: int) -> Ticket:
        ticket = db.query(Ticket).filter(Ticket.id == ticket_id, Ticket.user_id == user.id).one_or_none()
        if not ticket:
            raise NotFound("Ticket not found")
        return ticket

    @staticmethod
    def reply(db: Session, user: User, ticket_id: int, body: TicketReplyRequest, bg: BackgroundTasks) -> Ticket:
        ticket = TicketService.get_ticket(db, user, ticket_id)

        ticket.messages.append(TicketMessage(sender="user", content=body.message))
        if ticket.status == "closed":
            ticket.status = "open"
        db.commit()
        db.refresh(ticket)

        logger.info("Ticket reply added", extra={"ticket_id": ticket.id, "user_id": user.id})
        TicketService._notify_support(bg, ticket, user, body.message, is_reply=True)
        return ticket

    @staticmethod
    def close(db: Session, user: User, ticket_id: int) -> Ticket:
        ticket = TicketService.get_ticket(db, user, ticket_id)
        if ticket.status == "closed":
            raise InvalidInput("Ticket is already closed")

        ticket.status = "closed"
        db.commit()
        db.refresh(ticket)

        logger.info("Ticket closed", extra={"ticket_id": ticket.id, "user_id": user.id})
        return ticket
