from fastapi import APIRouter, Request
from starlette import status
from utils.deps import db_dependency, user_dependency, cryptomus_dependency, price_dependency
from schemas.payment_schemas import CryptoPaymentRequest, ManualDepositRequest
from services.payment_service import PaymentService
from core.exceptions import InvalidInput
from middleware.rate_limiter import limiter


router = APIRouter(
    prefix="/api",
    tags=["payments"]
)


@router.post("/deposits/crypto", status_code=status.HTTP_200_OK)
@limiter.limit("5/minute")
async def create_crypto_payment(request: Request, body: CryptoPaymentRequest, user: user_dependency,
                                db: db_dependency, cryptomus: cryptomus_dependency,
                                prices: price_dependency):
    return await PaymentService.create_payment(db, user, body, cryptomus, prices)


@router.post("/payment/webhook", status_code=status.HTTP_200_OK)
@limiter.exempt
async def payment_webhook(request: Request, db: db_dependency, cryptomus: cryptomus_dependency):
    """
    Payment gateway callback. Authenticated by signature, not by session.
    The body is read as sent so the signature is checked over the same key order.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise InvalidInput("Invalid JSON body")

    if not isinstance(payload, dict):
        raise InvalidInput("Invalid JSON body")

    return PaymentService.handle_webhook(db, payload, request.headers.get("sign"), cryptomus)


@router.get("/deposits", status_code=status.HTTP_200_OK)
async def get_deposits(request: Request, user: user_dependency, db: db_dependency):
    deposits = PaymentService.list_deposits(db, user)
    return {"success": True, "deposits": [deposit.to_dict() for deposit in deposits]}


@router.post("/deposits", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def create_manual_deposit(request: Request, body: ManualDepositRequest, user: user_dependency,
                                db: db_dependency):
    deposit = PaymentService.create_manual_deposit(db, user, body)
    return {"success": True, "message": "Deposit recorded", "deposit": deposit.to_dict()}
