from fastapi import APIRouter, Request
from starlette import status
from utils.deps import db_dependency, user_dependency, tellabot_dependency
from schemas.rental_schemas import CreateRentalRequest
from schemas.number_schemas import ActionRequest
from services.rental_service import RentalService
from middleware.rate_limiter import limiter


router = APIRouter(
    prefix="/api/rentals",
    tags=["rentals"]
)


@router.post("/create", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def create_rental(request: Request, body: CreateRentalRequest, user: user_dependency,
                        db: db_dependency, tellabot: tellabot_dependency):
    return await RentalService.create_rental(db, user, body, tellabot)


@router.get("", status_code=status.HTTP_200_OK)
async def get_rentals(request: Request, user: user_dependency, db: db_dependency,
                      search: str | None = None, status: str | None = None, duration: str | None = None):
    rentals = RentalService.list_rentals(db, user, search=search, status=status, duration=duration)
    return {"success": True, "rentals": [rental.to_dict() for rental in rentals]}


@router.get("/{rental_id}/messages", status_code=status.HTTP_200_OK)
@limiter.limit("60/minute")
async def check_messages(request: Request, rental_id: int, user: user_dependency,
                         db: db_dependency, tellabot: tellabot_dependency):
    return await RentalService.check_messages(db, user, rental_id, tellabot)


@router.get("/{rental_id}/status", status_code=status.HTTP_200_OK)
async def rental_status(request: Request, rental_id: int, user: user_dependency,
                        db: db_dependency, tellabot: tellabot_dependency):
    return await RentalService.provider_status(db, user, rental_id, tellabot)


@router.post("/{rental_id}/activate", status_code=status.HTTP_200_OK)
async def activate_rental(request: Request, rental_id: int, user: user_dependency,
                          db: db_dependency, tellabot: tellabot_dependency):
    return await RentalService.activate(db, user, rental_id, tellabot)


@router.post("/{rental_id}/release", status_code=status.HTTP_200_OK)
async def release_rental(request: Request, rental_id: int, user: user_dependency,
                         db: db_dependency, tellabot: tellabot_dependency):
    return await RentalService.release(db, user, rental_id, tellabot)


@router.post("/{rental_id}/extend", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def extend_rental(request: Request, rental_id: int, user: user_dependency, db: db_dependency):
    return RentalService.extend(db, user, rental_id)


@router.post("/{rental_id}/renew", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def renew_rental(request: Request, rental_id: int, user: user_dependency,
                       db: db_dependency, tellabot: tellabot_dependency):
    return await RentalService.renew(db, user, rental_id, tellabot)


@router.post("/{rental_id}/cancel", status_code=status.HTTP_200_OK)
async def cancel_rental(request: Request, rental_id: int, user: user_dependency, db: db_dependency):
    return RentalService.cancel(db, user, rental_id)


@router.post("/{rental_id}/toggle-action", status_code=status.HTTP_200_OK)
async def toggle_action(request: Request, rental_id: int, body: ActionRequest,
                        user: user_dependency, db: db_dependency):
    return RentalService.toggle_action(db, user, rental_id, body.action)
