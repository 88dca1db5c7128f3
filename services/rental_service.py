from datetime import timedelta
from decimal import Decimal
from sqlalchemy import or_
from sqlalchemy.orm import Session
from models.rentals import Rental, RENTAL_DURATIONS, RENTAL_ACTIONS
from models.users import User
from models.catalog import Service
from schemas.rental_schemas import CreateRentalRequest
from services.catalog_service import CatalogService
from services.ledger_service import LedgerService
from services.tellabot_client import TellabotClient
from services.lifecycle import (has_number, record_message, transition_status,
                                stacked_expiry, expire_if_due, expire_overdue)
from core.exceptions import NotFound, InvalidInput, InsufficientFunds, ProviderError
from utils.money import to_money
from utils.timeutils import utcnow
from utils.logger import get_logger

logger = get_logger(__name__)


def rental_price(service: Service, duration: str) -> Decimal:
    """Catalog LTR price, falling back to a multiple of the one-off price."""
    if duration == "3days":
        if service.ltr_short_price is not None:
            return to_money(service.ltr_short_price)
        return to_money(to_money(service.price) * Decimal("0.5"))
    if service.ltr_price is not None:
        return to_money(service.ltr_price)
    return to_money(to_money(service.price) * 2)


def extension_price(service: Service | None, rental: Rental) -> Decimal:
    if service is not None:
        catalog_price = service.ltr_short_price if rental.duration == "3days" else service.ltr_price
        if catalog_price is not None:
            return to_money(catalog_price)
    return to_money(rental.price)


class RentalService:
    """
    Long-term number rentals.

    active -> expired      expires_at passes (applied lazily on load)
    active -> cancelled    user cancels, local only
    active -> rejected     user releases the number at the provider

    Only active rentals can be extended, renewed, released or cancelled.
    """

    @staticmethod
    def get_user_rental(db: Session, user: User, rental_id: int) -> Rental:
        rental = db.query(Rental).filter(Rental.id == rental_id, Rental.user_id == user.id).one_or_none()
        if not rental:
            raise NotFound("Rental not found")

        if expire_if_due(rental, "active"):
            db.commit()
            db.refresh(rental)
            logger.info("Rental expired", extra={"rental_id": rental.id, "user_id": user.id})

        return rental

    @staticmethod
    def _require_active(rental: Rental, verb: str):
        if rental.status != "active":
            raise InvalidInput(f"Can only {verb} active rentals")

    @staticmethod
    def _require_number(rental: Rental):
        if not has_number(rental):
            raise InvalidInput("Rental has no MDN yet")

    @staticmethod
    async def create_rental(db: Session, user: User, body: CreateRentalRequest, tellabot: TellabotClient):
        service = CatalogService.get_service(db, body.service)
        price = rental_price(service, body.duration)
        days = RENTAL_DURATIONS[body.duration]

        if to_money(user.balance) < price:
            raise InsufficientFunds()

        result = await tellabot.ltr_rent(body.service, days, autorenew=True)
        assigned = result.first()
        if not result.ok or not assigned.get("mdn"):
            raise ProviderError(result.error_message or "Failed to create rental", response=result.to_dict())

        now = utcnow()
        rental = Rental(
            user_id=user.id,
            service=body.service,
            state=body.state,
            duration=body.duration,
            number=str(assigned["mdn"]),
            transaction_id=str(assigned["id"]) if assigned.get("id") else None,
            start_date=now,
            expires_at=now + timedelta(days=days),
            status="active",
            price=price
        )
        db.add(rental)
        db.flush()

        try:
            LedgerService.debit(db, user, price, "rental_purchase",
                                reference_type="rental", reference_id=rental.id)
        except InsufficientFunds:
            db.rollback()
            await RentalService._give_back_number(tellabot, assigned, body.service)
            raise

        db.commit()
        db.refresh(rental)
        db.refresh(user)

        logger.info(
            "Rental created",
            extra={"user_id": user.id, "rental_id": rental.id, "service": rental.service,
                   "duration": rental.duration, "price": str(price)}
        )

        return {
            "success": True,
            "message": "Rental created successfully",
            "rental": rental.to_dict(),
            "balance": float(user.balance)
        }

    @staticmethod
    async def _give_back_number(tellabot: TellabotClient, assigned: dict, service: str):
        """Best-effort release of a freshly rented number we could not charge for."""
        try:
            result = await tellabot.ltr_release(request_id=assigned.get("id"),
                                                mdn=assigned.get("mdn"), service=service)
        except ProviderError as e:
            logger.error("Could not release unpaid rental", extra={"mdn": assigned.get("mdn"), "error": e.message})
            return

        if not result.ok:
            logger.error(
                "Provider refused to release unpaid rental",
                extra={"mdn": assigned.get("mdn"), "provider_message": result.error_message}
            )

    @staticmethod
    async def check_messages(db: Session, user: User, rental_id: int, tellabot: TellabotClient):
        """
        Read the rental inbox by service + number.

        The latest message is kept on the rental; a rental keeps receiving
        so its status does not change.
        """
        rental = RentalService.get_user_rental(db, user, rental_id)

        if not has_number(rental):
            raise InvalidInput("No phone number available to check SMS")

        result = await tellabot.read_sms(rental.service, rental.number)

        if result.is_empty_inbox:
            return {"success": True, "messages": []}

        if not result.ok:
            raise ProviderError(result.error_message or "Failed to read SMS", response=result.to_dict())

        messages = result.items()
        if messages:
            record_message(rental, messages[-1])
            db.commit()

        return {"success": True, "messages": messages}

    @staticmethod
    async def provider_status(db: Session, user: User, rental_id: int, tellabot: TellabotClient):
        rental = RentalService.get_user_rental(db, user, rental_id)
        RentalService._require_number(rental)

        result = await tellabot.ltr_status(rental.number)
        if not result.ok:
            raise ProviderError(result.error_message or "Failed to get status", response=result.to_dict())

        return {"success": True, "data": result.message}

    @staticmethod
    async def activate(db: Session, user: User, rental_id: int, tellabot: TellabotClient):
        rental = RentalService.get_user_rental(db, user, rental_id)
        RentalService._require_number(rental)

        result = await tellabot.ltr_activate(rental.number)
        if not result.ok:
            raise ProviderError(result.error_message or "Failed to activate", response=result.to_dict())

        logger.info("Rental activated", extra={"rental_id": rental.id, "user_id": user.id})
        return {"success": True, "data": result.message}

    @staticmethod
    async def release(db: Session, user: User, rental_id: int, tellabot: TellabotClient):
        """Give the number back to the provider. No refund."""
        rental = RentalService.get_user_rental(db, user, rental_id)
        RentalService._require_active(rental, "release")

        result = await tellabot.ltr_release(request_id=rental.transaction_id,
                                            mdn=rental.number, service=rental.service)
        if not result.ok:
            raise ProviderError(result.error_message or "Failed to release rental", response=result.to_dict())

        if not transition_status(db, rental, "rejected", ("active",)):
            db.rollback()
            raise InvalidInput("Can only release active rentals")
        db.commit()
        db.refresh(rental)

        logger.info("Rental released", extra={"rental_id": rental.id, "user_id": user.id})

        return {"success": True, "message": "Rental released successfully", "rental": rental.to_dict()}

    @staticmethod
    def extend(db: Session, user: User, rental_id: int):
        """
        Extend the same rental by its duration, charging the current catalog
        price. The provider rental auto-renews, so nothing is sent upstream.
        """
        rental = RentalService.get_user_rental(db, user, rental_id)
        RentalService._require_active(rental, "extend")

        service = db.query(Service).filter(Service.name == rental.service).one_or_none()
        price = extension_price(service, rental)

        LedgerService.debit(db, user, price, "rental_extension",
                            reference_type="rental", reference_id=rental.id,
                            message="Insufficient balance for extension")

        rental.expires_at = stacked_expiry(rental.expires_at, rental.duration_delta)
        db.commit()
        db.refresh(rental)
        db.refresh(user)

        logger.info(
            "Rental extended",
            extra={"rental_id": rental.id, "user_id": user.id, "price": str(price)}
        )

        return {
            "success": True,
            "message": "Rental extended successfully",
            "rental": rental.to_dict(),
            "charged": float(price),
            "balance": float(user.balance)
        }

    @staticmethod
    async def renew(db: Session, user: User, rental_id: int, tellabot: TellabotClient):
        """
        Re-rent the same number at the provider as a new linked rental.
        The original rental is left as it is.
        """
        original = RentalService.get_user_rental(db, user, rental_id)
        RentalService._require_active(original, "renew")

        if not has_number(original):
            raise InvalidInput("Cannot renew rental: No phone number assigned")

        price = to_money(original.price)
        balance = to_money(user.balance)
        if balance < price:
            raise InsufficientFunds(
                f"Insufficient balance for renewal. Required: ${price}, Available: ${balance}"
            )

        days = original.duration_days
        result = await tellabot.ltr_rent(original.service, days, mdn=original.number)
        if not result.ok:
            raise ProviderError(result.error_message or "Renewal request failed", response=result.to_dict())

        assigned = result.first()
        renewal = Rental(
            user_id=user.id,
            original_rental_id=original.id,
            service=original.service,
            state=original.state,
            duration=original.duration,
            number=str(assigned.get("mdn") or original.number),
            transaction_id=str(assigned["id"]) if assigned.get("id") else None,
            start_date=utcnow(),
            expires_at=stacked_expiry(original.expires_at, original.duration_delta),
            status="active",
            price=price,
            is_renewal=True
        )
        db.add(renewal)
        db.flush()

        # The renewed number is the one the user already holds, so a failed
        # debit leaves it with them rather than releasing it.
        try:
            LedgerService.debit(db, user, price, "rental_renewal",
                                reference_type="rental", reference_id=renewal.id)
        except InsufficientFunds:
            db.rollback()
            raise

        db.commit()
        db.refresh(renewal)
        db.refresh(user)

        logger.info(
            "Rental renewed",
            extra={"user_id": user.id, "rental_id": renewal.id, "original_rental_id": original.id,
                   "price": str(price)}
        )

        return {
            "success": True,
            "message": f"Rental renewed successfully! Extended {original.number} for {days} more days",
            "rental": renewal.to_dict(),
            "original_rental": original.to_dict(),
            "balance": float(user.balance)
        }

    @staticmethod
    def cancel(db: Session, user: User, rental_id: int):
        """Local cancellation. No provider call, no refund."""
        rental = RentalService.get_user_rental(db, user, rental_id)
        RentalService._require_active(rental, "cancel")

        if not transition_status(db, rental, "cancelled", ("active",)):
            db.rollback()
            raise InvalidInput("Can only cancel active rentals")
        db.commit()
        db.refresh(rental)

        logger.info("Rental cancelled", extra={"rental_id": rental.id, "user_id": user.id})

        return {"success": True, "message": "Rental cancelled successfully", "rental": rental.to_dict()}

    @staticmethod
    def list_rentals(db: Session, user: User, search: str | None = None, status: str | None = None,
                     duration: str | None = None) -> list[Rental]:
        if expire_overdue(db, Rental, user.id, "active"):
            db.commit()

        query = db.query(Rental).filter(Rental.user_id == user.id)

        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Rental.service.ilike(pattern), Rental.number.ilike(pattern)))
        if status:
            query = query.filter(Rental.status == status)
        if duration:
            query = query.filter(Rental.duration == duration)

        return query.order_by(Rental.created_at.desc(), Rental.id.desc()).all()

    @staticmethod
    def toggle_action(db: Session, user: User, rental_id: int, action: str):
        column = RENTAL_ACTIONS.get(action)
        if column is None:
            raise InvalidInput("Invalid action")

        rental = RentalService.get_user_rental(db, user, rental_id)
        setattr(rental, column, not getattr(rental, column))
        db.commit()
        db.refresh(rental)

        return {
            "success": True,
            "message": f"{action} toggled successfully",
            "actions": rental.actions
        }
