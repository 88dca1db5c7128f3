from decimal import Decimal
from sqlalchemy import update, func, case
from sqlalchemy.orm import Session
from models.users import User
from models.ledger_entries import LedgerEntry
from core.exceptions import InsufficientFunds, InvalidInput
from utils.money import to_money
from utils.logger import get_logger

logger = get_logger(__name__)


class LedgerService:
    """
    Balance changes for a user.

    Every debit or credit is one conditional UPDATE on users.balance plus one
    appended LedgerEntry. Nothing here commits: the caller's unit of work
    decides whether the balance change and the record it pays for persist.
    """

    @staticmethod
    def _validate_amount(amount) -> Decimal:
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidInput("Amount must be greater than zero")
        return amount

    @staticmethod
    def debit(db: Session, user: User, amount, reason: str,
              reference_type: str | None = None, reference_id=None,
              message: str | None = None) -> LedgerEntry:
        """
        Take amount from the user's balance.

        The balance check and the decrement are a single statement, so two
        concurrent purchases can never both pass the check and overdraw.

        Raises:
            InsufficientFunds: balance < amount; nothing is written
        """
        amount = LedgerService._validate_amount(amount)

        result = db.execute(
            update(User)
            .where(User.id == user.id, User.balance >= amount)
            .values(balance=User.balance - amount)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            logger.warning(
                "Debit refused - insufficient balance",
                extra={"user_id": user.id, "amount": str(amount), "reason": reason}
            )
            raise InsufficientFunds(message)

        return LedgerService._append(db, user, "debit", amount, reason, reference_type, reference_id)

    @staticmethod
    def credit(db: Session, user: User, amount, reason: str,
               reference_type: str | None = None, reference_id=None,
               idempotency_key: str | None = None) -> LedgerEntry:
        """
        Add amount to the user's balance.

        With an idempotency_key a second credit for the same key fails the
        flush with IntegrityError; the caller rolls the unit of work back.
        """
        amount = LedgerService._validate_amount(amount)

        db.execute(
            update(User)
            .where(User.id == user.id)
            .values(balance=User.balance + amount)
            .execution_options(synchronize_session=False)
        )

        return LedgerService._append(db, user, "credit", amount, reason, reference_type,
                                     reference_id, idempotency_key)

    @staticmethod
    def _append(db: Session, user: User, kind: str, amount: Decimal, reason: str,
                reference_type, reference_id, idempotency_key=None) -> LedgerEntry:
        db.refresh(user, attribute_names=["balance"])

        entry = LedgerEntry(
            user_id=user.id,
            kind=kind,
            amount=amount,
            balance_after=user.balance,
            reason=reason,
            reference_type=reference_type,
            reference_id=str(reference_id) if reference_id is not None else None,
            idempotency_key=idempotency_key
        )
        db.add(entry)
        db.flush()

        logger.info(
            f"Balance {kind}",
            extra={
                "user_id": user.id,
                "amount": str(amount),
                "balance_after": str(user.balance),
                "reason": reason,
                "reference_type": reference_type,
                "reference_id": entry.reference_id
            }
        )
        return entry

    @staticmethod
    def derive_balance(db: Session, user_id: int) -> Decimal:
        """Replay the ledger: sum of credits minus sum of debits."""
        signed = case((LedgerEntry.kind == "credit", LedgerEntry.amount), else_=-LedgerEntry.amount)
        total = db.query(func.coalesce(func.sum(signed), 0)).filter(
            LedgerEntry.user_id == user_id
        ).scalar()
        return to_money(total)

    @staticmethod
    def history(db: Session, user_id: int, limit: int = 100) -> list[LedgerEntry]:
        return db.query(LedgerEntry).filter(
            LedgerEntry.user_id == user_id
        ).order_by(LedgerEntry.id.desc()).limit(limit).all()
