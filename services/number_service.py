from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from sqlalchemy import or_
from sqlalchemy.orm import Session
from models.orders import Order, ORDER_ACTIONS
from models.users import User
from schemas.number_schemas import BuyNumberRequest
from services.ledger_service import LedgerService
from services.tellabot_client import TellabotClient
from services.lifecycle import (has_number, record_message, transition_status,
                                stacked_expiry, expire_if_due, expire_overdue)
from core.config import settings
from core.exceptions import NotFound, InvalidInput, InsufficientFunds, ProviderError
from utils.money import to_money, apply_markup
from utils.timeutils import utcnow
from utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TILL_EXPIRATION = 900

RENEWABLE_STATUSES = ("pending", "completed")

# Provider request_status values that move a pending order
PROVIDER_STATUS_MAP = {
    "reserved": "pending",
    "awaiting mdn": "pending",
    "completed": "completed",
}


def _till_expiration(assigned: dict) -> timedelta:
    try:
        seconds = int(assigned.get("till_expiration") or DEFAULT_TILL_EXPIRATION)
    except (TypeError, ValueError):
        seconds = DEFAULT_TILL_EXPIRATION
    return timedelta(seconds=seconds)


def _day_start(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


class OrderService:
    """
    Single-use number orders.

    pending -> completed   first SMS read
    pending -> rejected    user rejects the number
    pending -> expired     expires_at passes (applied lazily on load)

    completed, rejected and expired are terminal.
    """

    @staticmethod
    def get_user_order(db: Session, user: User, order_id: int) -> Order:
        order = db.query(Order).filter(Order.id == order_id, Order.user_id == user.id).one_or_none()
        if not order:
            raise NotFound("Order not found")

        if expire_if_due(order, "pending"):
            db.commit()
            db.refresh(order)
            logger.info("Order expired", extra={"order_id": order.id, "user_id": user.id})

        return order

    @staticmethod
    async def _give_back_number(tellabot: TellabotClient, request_id: str):
        """Best-effort provider reject for a number we could not charge for."""
        try:
            result = await tellabot.reject(request_id)
        except ProviderError as e:
            logger.error(
                "Could not return unpaid number to provider",
                extra={"transaction_id": request_id, "error": e.message}
            )
            return

        if not result.ok:
            logger.error(
                "Provider refused to take back unpaid number",
                extra={"transaction_id": request_id, "provider_message": result.error_message}
            )

    @staticmethod
    async def _charge(db: Session, user: User, order: Order, reason: str, tellabot: TellabotClient,
                      give_back: bool = True):
        """
        Persist order and debit its amount in one unit of work.

        The pre-check happened before the provider call; if the balance was
        spent in the meantime the atomic debit fails and, for a fresh purchase,
        the number goes back. A renewal keeps the number the user already holds.
        """
        request_id = order.transaction_id
        db.add(order)
        db.flush()
        try:
            LedgerService.debit(db, user, order.amount, reason,
                                reference_type="order", reference_id=order.id)
        except InsufficientFunds:
            db.rollback()
            if give_back:
                await OrderService._give_back_number(tellabot, request_id)
            raise
        db.commit()
        db.refresh(order)
        db.refresh(user)

    @staticmethod
    async def buy_number(db: Session, user: User, body: BuyNumberRequest, tellabot: TellabotClient):
        """
        Buy a one-off number for body.service.

        Flow:
        1. Quote the service price with the provider
        2. Apply premium markup
        3. Check balance (no provider call when short)
        4. Request the number
        5. Debit and create the pending order together
        """
        quote = await tellabot.list_services(body.service)
        listing = quote.first() if quote.ok else {}
        if not listing or listing.get("price") is None:
            raise InvalidInput("Invalid service or service not available")

        try:
            price = to_money(listing["price"])
        except ValueError:
            raise ProviderError("Invalid response from number provider")

        if body.is_premium and body.markup_percentage > 0:
            price = apply_markup(price, body.markup_percentage)

        if to_money(user.balance) < price:
            logger.info(
                "Purchase refused - insufficient balance",
                extra={"user_id": user.id, "service": body.service, "price": str(price)}
            )
            raise InsufficientFunds()

        result = await tellabot.request_number(body.service)
        assigned = result.first()
        if not result.ok or not assigned.get("id"):
            raise ProviderError(result.error_message or "Failed to purchase number",
                                response=result.to_dict())

        order = Order(
            user_id=user.id,
            service=body.service,
            state=body.state,
            amount=price,
            status="pending",
            transaction_id=str(assigned["id"]),
            number=assigned.get("mdn"),
            expires_at=utcnow() + _till_expiration(assigned),
            is_premium=body.is_premium,
            markup_percentage=body.markup_percentage
        )
        await OrderService._charge(db, user, order, "order_purchase", tellabot)

        logger.info(
            "Number purchased",
            extra={"user_id": user.id, "order_id": order.id, "service": order.service,
                   "amount": str(price), "transaction_id": order.transaction_id}
        )

        return {
            "success": True,
            "message": "Number purchased successfully",
            "data": assigned,
            "order": order.to_dict(),
            "balance": float(user.balance)
        }

    @staticmethod
    async def check_sms(db: Session, user: User, order_id: int, tellabot: TellabotClient):
        order = OrderService.get_user_order(db, user, order_id)

        if not has_number(order) or not order.transaction_id:
            raise InvalidInput("No phone number available to check SMS")

        result = await tellabot.read_sms_by_id(order.transaction_id)

        if result.is_empty_inbox:
            return {
                "success": True,
                "message": "No messages received yet",
                "data": [],
                "order": order.to_dict()
            }

        if not result.ok:
            raise ProviderError(result.error_message or "Failed to check SMS", response=result.to_dict())

        messages = result.items()
        if messages:
            record_message(order, messages[-1])
            # A late SMS on a rejected or expired number is stored but never reopens it
            transition_status(db, order, "completed", ("pending",))
            db.commit()
            db.refresh(order)
            logger.info(
                "SMS received",
                extra={"order_id": order.id, "user_id": user.id, "status": order.status}
            )

        return {
            "success": True,
            "message": "SMS checked successfully",
            "data": messages,
            "order": order.to_dict()
        }

    @staticmethod
    async def request_status(db: Session, user: User, order_id: int, tellabot: TellabotClient):
        order = OrderService.get_user_order(db, user, order_id)

        if not order.transaction_id:
            raise InvalidInput("Order has no transaction ID")

        result = await tellabot.request_status(order.transaction_id)
        if not result.ok:
            raise ProviderError(result.error_message or "Failed to get request status",
                                response=result.to_dict())

        info = result.first()
        if info:
            provider_status = str(info.get("status") or "").lower()
            if PROVIDER_STATUS_MAP.get(provider_status) == "completed":
                transition_status(db, order, "completed", ("pending",))

            mdn = info.get("mdn")
            if mdn and str(mdn) != order.number:
                order.number = str(mdn)

            db.commit()
            db.refresh(order)

        return {
            "success": True,
            "message": "Request status retrieved successfully",
            "data": result.message,
            "order": order.to_dict()
        }

    @staticmethod
    async def reject_mdn(db: Session, user: User, order_id: int, tellabot: TellabotClient):
        """
        Hand a pending number back to the provider.

        A provider-accepted reject refunds only when REFUND_ON_REJECT is set.
        When the provider answers "Unable to reject" the order is still
        rejected locally and always refunded, since the user cannot use it.
        """
        order = OrderService.get_user_order(db, user, order_id)

        if order.status != "pending":
            raise InvalidInput("Can only reject pending orders")

        if not order.transaction_id:
            raise InvalidInput("Order has no transaction ID for rejection")

        result = await tellabot.reject(order.transaction_id)

        if result.ok:
            refund = settings.REFUND_ON_REJECT
            message = "MDN rejected successfully"
        elif "Unable to reject" in (result.error_message or ""):
            refund = True
            message = "Order cancelled and refunded (API rejection not allowed for this order)"
        else:
            raise ProviderError(result.error_message or "Failed to reject MDN", response=result.to_dict())

        if not transition_status(db, order, "rejected", ("pending",)):
            db.rollback()
            raise InvalidInput("Can only reject pending orders")

        refund_amount = Decimal(0)
        if refund:
            refund_amount = to_money(order.amount)
            LedgerService.credit(db, user, refund_amount, "order_refund",
                                 reference_type="order", reference_id=order.id,
                                 idempotency_key=f"refund:order:{order.id}")

        db.commit()
        db.refresh(order)
        db.refresh(user)

        logger.info(
            "Order rejected",
            extra={"order_id": order.id, "user_id": user.id, "refunded": refund,
                   "provider_message": result.error_message}
        )

        return {
            "success": True,
            "message": message,
            "order": order.to_dict(),
            "refunded": refund,
            "refund_amount": float(refund_amount),
            "balance": float(user.balance)
        }

    @staticmethod
    async def renew_order(db: Session, user: User, order_id: int, tellabot: TellabotClient):
        """
        Request the same number again as a new linked order.
        The original order is left as it is.
        """
        original = OrderService.get_user_order(db, user, order_id)

        if original.status not in RENEWABLE_STATUSES:
            raise InvalidInput("Can only renew pending or completed orders")

        if not has_number(original):
            raise InvalidInput("Cannot renew order: No phone number assigned")

        price = to_money(original.amount)
        balance = to_money(user.balance)
        if balance < price:
            raise InsufficientFunds(
                f"Insufficient balance for renewal. Required: ${price}, Available: ${balance}"
            )

        result = await tellabot.request_number(original.service, mdn=original.number)
        assigned = result.first()
        if not result.ok or not assigned.get("id"):
            raise ProviderError(result.error_message or "Renewal request failed",
                                response=result.to_dict())

        renewal = Order(
            user_id=user.id,
            original_order_id=original.id,
            service=original.service,
            state=original.state,
            amount=price,
            status="pending",
            transaction_id=str(assigned["id"]),
            number=assigned.get("mdn") or original.number,
            expires_at=stacked_expiry(original.expires_at, _till_expiration(assigned)),
            is_premium=original.is_premium,
            markup_percentage=original.markup_percentage,
            is_renewal=True
        )
        await OrderService._charge(db, user, renewal, "order_renewal", tellabot, give_back=False)

        logger.info(
            "Order renewed",
            extra={"user_id": user.id, "order_id": renewal.id, "original_order_id": original.id,
                   "amount": str(price)}
        )

        return {
            "success": True,
            "message": f"Number {renewal.number} renewed successfully",
            "data": assigned,
            "order": renewal.to_dict(),
            "original_order": original.to_dict(),
            "balance": float(user.balance)
        }

    @staticmethod
    def list_orders(db: Session, user: User, search: str | None = None, status: str | None = None,
                    date_from: date | None = None, date_to: date | None = None) -> list[Order]:
        if expire_overdue(db, Order, user.id, "pending"):
            db.commit()

        query = db.query(Order).filter(Order.user_id == user.id)

        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Order.service.ilike(pattern), Order.number.ilike(pattern)))
        if status:
            query = query.filter(Order.status == status)
        if date_from:
            query = query.filter(Order.created_at >= _day_start(date_from))
        if date_to:
            query = query.filter(Order.created_at < _day_start(date_to) + timedelta(days=1))

        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    @staticmethod
    def toggle_action(db: Session, user: User, order_id: int, action: str):
        column = ORDER_ACTIONS.get(action)
        if column is None:
            raise InvalidInput("Invalid action")

        order = OrderService.get_user_order(db, user, order_id)
        setattr(order, column, not getattr(order, column))
        db.commit()
        db.refresh(order)

        return {
            "success": True,
            "message": f"{action} action updated successfully",
            "actions": order.actions
        }
