from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from models.orders import Order
from models.rentals import Rental
from models.deposits import Deposit
from models.ledger_entries import LedgerEntry
from models.users import User
from utils.money import to_money
from utils.timeutils import utcnow

RECENT_LIMIT = 10


def _sum(db: Session, column, *criteria):
    return to_money(db.query(func.coalesce(func.sum(column), 0)).filter(*criteria).scalar())


class DashboardService:

    @staticmethod
    def get_stats(db: Session, user: User):
        """
        Account overview.

        Spending is read from the ledger: every order and rental debit
        (purchases, renewals, extensions) minus order refunds.
        """
        total_orders = db.query(Order).filter(Order.user_id == user.id).count()
        completed_orders = db.query(Order).filter(Order.user_id == user.id, Order.status == "completed").count()
        pending_orders = db.query(Order).filter(
            Order.user_id == user.id, Order.status == "pending",
            or_(Order.expires_at.is_(None), Order.expires_at > utcnow())
        ).count()

        total_rentals = db.query(Rental).filter(Rental.user_id == user.id).count()
        active_rentals = db.query(Rental).filter(
            Rental.user_id == user.id, Rental.status == "active", Rental.expires_at > utcnow()
        ).count()

        debits = _sum(db, LedgerEntry.amount, LedgerEntry.user_id == user.id, LedgerEntry.kind == "debit")
        refunds = _sum(db, LedgerEntry.amount, LedgerEntry.user_id == user.id,
                       LedgerEntry.reason == "order_refund")
        deposits = _sum(db, Deposit.amount, Deposit.user_id == user.id, Deposit.status == "completed")

        recent_orders = db.query(Order).filter(Order.user_id == user.id).order_by(
            Order.created_at.desc(), Order.id.desc()
        ).limit(RECENT_LIMIT).all()
        recent_rentals = db.query(Rental).filter(Rental.user_id == user.id).order_by(
            Rental.created_at.desc(), Rental.id.desc()
        ).limit(RECENT_LIMIT).all()

        success_rate = round(completed_orders / total_orders * 100, 1) if total_orders else 0

        return {
            "success": True,
            "stats": {
                "total_orders": total_orders,
                "completed_orders": completed_orders,
                "pending_orders": pending_orders,
                "total_rentals": total_rentals,
                "active_rentals": active_rentals,
                "current_balance": float(user.balance),
                "total_spent": float(debits - refunds),
                "total_deposits": float(deposits),
                "success_rate": success_rate
            },
            "recent_activity": {
                "orders": [order.to_dict() for order in recent_orders],
                "rentals": [rental.to_dict() for rental in recent_rentals]
            }
        }
