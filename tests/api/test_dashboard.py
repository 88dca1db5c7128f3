from datetime import timedelta
from decimal import Decimal
from models.deposits import Deposit
from services.ledger_service import LedgerService
from utils.timeutils import utcnow


async def test_dashboard_stats(client, auth_headers, tellabot, make_order, make_rental, verified_user, session):
    """Spending is what the ledger debited, less order refunds."""
    make_order(status="completed", transaction_id="a")
    make_order(transaction_id="b")
    make_order(transaction_id="c", expires_at=utcnow() - timedelta(minutes=1))
    make_rental()
    session.add(Deposit(user_id=verified_user.id, amount=Decimal("25.00"), method="USDT (TRC20)",
                        status="completed", transaction_id="dep-1"))
    session.add(Deposit(user_id=verified_user.id, amount=Decimal("5.00"), method="BTC (BTC)",
                        status="pending", transaction_id="dep-2"))
    LedgerService.debit(session, verified_user, Decimal("0.50"), "order_purchase")
    LedgerService.debit(session, verified_user, Decimal("2.00"), "rental_purchase")
    LedgerService.credit(session, verified_user, Decimal("0.50"), "order_refund")
    session.commit()

    response = await client.get("/api/dashboard/stats", headers=auth_headers)

    assert response.status_code == 200
    stats = response.json()["stats"]
    assert stats["total_orders"] == 3
    assert stats["completed_orders"] == 1
    assert stats["pending_orders"] == 1
    assert stats["total_rentals"] == 1
    assert stats["active_rentals"] == 1
    assert stats["current_balance"] == 8.0
    assert stats["total_spent"] == 2.0
    assert stats["total_deposits"] == 25.0
    assert stats["success_rate"] == 33.3

    recent = response.json()["recent_activity"]
    assert len(recent["orders"]) == 3
    assert len(recent["rentals"]) == 1


async def test_dashboard_counts_pending_order_without_expiry(client, auth_headers, make_order):
    make_order(transaction_id="open", expires_at=None)
    make_order(transaction_id="overdue", expires_at=utcnow() - timedelta(minutes=1))

    response = await client.get("/api/dashboard/stats", headers=auth_headers)

    assert response.json()["stats"]["pending_orders"] == 1


async def test_dashboard_empty_account(client, auth_headers):
    response = await client.get("/api/dashboard/stats", headers=auth_headers)

    stats = response.json()["stats"]
    assert stats["total_orders"] == 0
    assert stats["success_rate"] == 0
    assert stats["total_spent"] == 0.0


async def test_ledger_history(client, auth_headers, verified_user, session):
    LedgerService.debit(session, verified_user, Decimal("0.50"), "order_purchase",
                        reference_type="order", reference_id=1)
    session.commit()

    response = await client.get("/api/ledger", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["balance"] == 9.5
    assert [e["reason"] for e in data["entries"]] == ["order_purchase", "deposit"]
    assert data["entries"][0]["kind"] == "debit"
    assert data["entries"][0]["balance_after"] == 9.5

    response = await client.get("/api/ledger", headers=auth_headers, params={"limit": 0})
    assert len(response.json()["entries"]) == 1


async def test_dashboard_requires_auth(client):
    response = await client.get("/api/dashboard/stats")

    assert response.status_code == 401
