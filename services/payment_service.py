import secrets
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from models.deposits import Deposit
from models.users import User
from schemas.payment_schemas import CryptoPaymentRequest, ManualDepositRequest
from services.cryptomus_client import CryptomusClient
from services.price_client import PriceClient
from services.ledger_service import LedgerService
from core.config import settings
from core.exceptions import NotFound, InvalidSignature
from utils.logger import get_logger

logger = get_logger(__name__)

CRYPTO_PLACES = Decimal("0.00000001")


def new_order_id() -> str:
    return secrets.token_hex(12)


class PaymentService:

    @staticmethod
    async def create_payment(db: Session, user: User, body: CryptoPaymentRequest,
                             cryptomus: CryptomusClient, prices: PriceClient):
        """
        Open a crypto invoice for body.amount USD.

        The deposit is stored pending with the USD amount; the webhook
        credits exactly that amount once the invoice is paid.
        """
        crypto_amount = (await prices.usd_to_crypto(body.amount, body.currency)).quantize(
            CRYPTO_PLACES, rounding=ROUND_HALF_UP
        )
        order_id = new_order_id()

        payload = {
            "amount": f"{crypto_amount:.8f}",
            "currency": body.currency,
            "network": body.network,
            "order_id": order_id,
            "url_callback": f"{settings.BASE_URL}/api/payment/webhook",
            "url_return": f"{settings.BASE_URL}/deposit",
            "url_success": f"{settings.BASE_URL}/deposit/success",
            "is_payment_multiple": False,
            "lifetime": settings.PAYMENT_LIFETIME_SECONDS
        }

        result = await cryptomus.create_payment(payload)

        deposit = Deposit(
            user_id=user.id,
            amount=body.amount,
            method=f"{body.currency} ({body.network})",
            status="pending",
            transaction_id=order_id,
            payment_url=result.get("url"),
            payment_data=result
        )
        db.add(deposit)
        db.commit()
        db.refresh(deposit)

        logger.info(
            "Crypto payment created",
            extra={"user_id": user.id, "deposit_id": deposit.id, "order_id": order_id,
                   "amount": str(body.amount), "currency": body.currency, "network": body.network}
        )

        return {
            "success": True,
            "payment_url": deposit.payment_url,
            "crypto_amount": payload["amount"],
            "deposit": deposit.to_dict()
        }

    @staticmethod
    def handle_webhook(db: Session, payload: dict, header_sign: str | None, cryptomus: CryptomusClient):
        """
        Apply a payment notification.

        The signature covers the body without its own "sign" field. A "paid"
        notification flips the deposit to completed and credits the user in
        one transaction; the flip is conditional and the ledger credit carries
        a unique key, so replays and concurrent duplicates credit nothing.
        """
        body = dict(payload)
        body_sign = body.pop("sign", None)
        signature = header_sign or body_sign

        if not cryptomus.verify_signature(body, signature):
            logger.warning("Webhook rejected - invalid signature", extra={"order_id": body.get("order_id")})
            raise InvalidSignature()

        order_id = body.get("order_id")
        deposit = None
        if order_id:
            deposit = db.query(Deposit).filter(Deposit.transaction_id == str(order_id)).one_or_none()
        if not deposit:
            logger.warning("Webhook for unknown deposit", extra={"order_id": order_id})
            raise NotFound("Deposit not found")

        status = str(body.get("status") or "")

        if status != "paid":
            # A completed deposit is never downgraded by a late notification
            db.execute(
                update(Deposit)
                .where(Deposit.id == deposit.id, Deposit.status != "completed")
                .values(status=status or deposit.status, payment_data=body)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            logger.info("Deposit status updated", extra={"deposit_id": deposit.id, "status": status})
            return {"success": True, "message": "Deposit status updated", "credited": False}

        flipped = db.execute(
            update(Deposit)
            .where(Deposit.id == deposit.id, Deposit.status != "completed")
            .values(status="completed", payment_data=body)
            .execution_options(synchronize_session=False)
        )
        if flipped.rowcount == 0:
            db.rollback()
            logger.info("Webhook replay ignored", extra={"deposit_id": deposit.id, "order_id": order_id})
            return {"success": True, "message": "Deposit already processed", "credited": False}

        user = db.get(User, deposit.user_id)
        try:
            LedgerService.credit(db, user, deposit.amount, "deposit",
                                 reference_type="deposit", reference_id=deposit.id,
                                 idempotency_key=f"deposit:{order_id}")
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning("Duplicate deposit credit ignored", extra={"deposit_id": deposit.id, "order_id": order_id})
            return {"success": True, "message": "Deposit already processed", "credited": False}

        logger.info(
            "Deposit completed",
            extra={"user_id": deposit.user_id, "deposit_id": deposit.id, "amount": str(deposit.amount)}
        )
        return {"success": True, "message": "Deposit completed", "credited": True}

    @staticmethod
    def list_deposits(db: Session, user: User) -> list[Deposit]:
        return db.query(Deposit).filter(Deposit.user_id == user.id).order_by(
            Deposit.created_at.desc(), Deposit.id.desc()
        ).all()

    @staticmethod
    def create_manual_deposit(db: Session, user: User, body: ManualDepositRequest) -> Deposit:
        """Record a deposit paid outside the gateway. It is credited out of band."""
        deposit = Deposit(
            user_id=user.id,
            amount=body.amount,
            method=body.method,
            status="pending",
            transaction_id=f"manual-{new_order_id()}"
        )
        db.add(deposit)
        db.commit()
        db.refresh(deposit)

        logger.info(
            "Manual deposit recorded",
            extra={"user_id": user.id, "deposit_id": deposit.id, "amount": str(body.amount)}
        )
        return deposit
