from datetime import date
from fastapi import APIRouter, Request
from starlette import status
from utils.deps import db_dependency, user_dependency, tellabot_dependency
from schemas.number_schemas import BuyNumberRequest, ActionRequest
from services.number_service import OrderService
from services.catalog_service import CatalogService
from middleware.rate_limiter import limiter


router = APIRouter(
    prefix="/api",
    tags=["numbers"]
)


@router.post("/buy-number", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def buy_number(request: Request, body: BuyNumberRequest, user: user_dependency,
                     db: db_dependency, tellabot: tellabot_dependency):
    return await OrderService.buy_number(db, user, body, tellabot)


@router.get("/check-sms/{order_id}", status_code=status.HTTP_200_OK)
@limiter.limit("60/minute")
async def check_sms(request: Request, order_id: int, user: user_dependency,
                    db: db_dependency, tellabot: tellabot_dependency):
    return await OrderService.check_sms(db, user, order_id, tellabot)


@router.get("/request-status/{order_id}", status_code=status.HTTP_200_OK)
@limiter.limit("60/minute")
async def request_status(request: Request, order_id: int, user: user_dependency,
                         db: db_dependency, tellabot: tellabot_dependency):
    return await OrderService.request_status(db, user, order_id, tellabot)


@router.post("/reject-mdn/{order_id}", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def reject_mdn(request: Request, order_id: int, user: user_dependency,
                     db: db_dependency, tellabot: tellabot_dependency):
    return await OrderService.reject_mdn(db, user, order_id, tellabot)


@router.post("/renew-order/{order_id}", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def renew_order(request: Request, order_id: int, user: user_dependency,
                      db: db_dependency, tellabot: tellabot_dependency):
    return await OrderService.renew_order(db, user, order_id, tellabot)


@router.get("/orders", status_code=status.HTTP_200_OK)
async def get_orders(request: Request, user: user_dependency, db: db_dependency,
                     search: str | None = None, status: str | None = None,
                     date_from: date | None = None, date_to: date | None = None):
    orders = OrderService.list_orders(db, user, search=search, status=status,
                                      date_from=date_from, date_to=date_to)
    return {"success": True, "orders": [order.to_dict() for order in orders]}


@router.post("/orders/{order_id}/action", status_code=status.HTTP_200_OK)
async def order_action(request: Request, order_id: int, body: ActionRequest,
                       user: user_dependency, db: db_dependency):
    return OrderService.toggle_action(db, user, order_id, body.action)


@router.get("/services", status_code=status.HTTP_200_OK)
async def get_services(request: Request, db: db_dependency, search: str | None = None):
    """Public service catalog."""
    services = CatalogService.list_services(db, search)
    return {"success": True, "services": [service.to_dict() for service in services]}
