from fastapi import APIRouter, Request, BackgroundTasks
from starlette import status
from utils.deps import db_dependency, user_dependency
from schemas.ticket_schemas import CreateTicketRequest, TicketReplyRequest
from services.ticket_service import TicketService
from middleware.rate_limiter import limiter


router = APIRouter(
    prefix="/api/tickets",
    tags=["tickets"]
)


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def create_ticket(request: Request, body: CreateTicketRequest, user: user_dependency,
                        db: db_dependency, bg: BackgroundTasks):
    ticket = TicketService.create_ticket(db, user, body, bg)
    return {"success": True, "message": "Ticket created successfully", "ticket": ticket.to_dict(with_messages=True)}


@router.get("", status_code=status.HTTP_200_OK)
async def get_tickets(request: Request, user: user_dependency, db: db_dependency):
    tickets = TicketService.list_tickets(db, user)
    return {"success": True, "tickets": [ticket.to_dict() for ticket in tickets]}


@router.get("/{ticket_id}", status_code=status.HTTP_200_OK)
async def get_ticket(request: Request, ticket_id: int, user: user_dependency, db: db_dependency):
    ticket = TicketService.get_ticket(db, user, ticket_id)
    return {"success": True, "ticket": ticket.to_dict(with_messages=True)}


@router.post("/{ticket_id}/reply", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def reply_ticket(request: Request, ticket_id: int, body: TicketReplyRequest, user: user_dependency,
                       db: db_dependency, bg: BackgroundTasks):
    ticket = TicketService.reply(db, user, ticket_id, body, bg)
    return {"success": True, "message": "Reply added", "ticket": ticket.to_dict(with_messages=True)}


@router.post("/{ticket_id}/close", status_code=status.HTTP_200_OK)
async def close_ticket(request: Request, ticket_id: int, user: user_dependency, db: db_dependency):
    ticket = TicketService.close(db, user, ticket_id)
    return {"success": True, "message": "Ticket closed", "ticket": ticket.to_dict()}
