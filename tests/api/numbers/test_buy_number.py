from decimal import Decimal
from models.orders import Order
from models.ledger_entries import LedgerEntry
from services.ledger_service import LedgerService
from services.tellabot_client import TellabotResponse

WHATSAPP_LISTING = [{"name": "WhatsApp", "price": "0.50", "ltr_price": "15.00", "available": "120"}]
ASSIGNED = [{"id": "req-1", "mdn": "5551234567", "service": "whatsapp", "till_expiration": 900}]


async def test_buy_number_success(client, auth_headers, tellabot, verified_user, session):
    """Test buying a number debits the quoted price and opens a pending order."""
    tellabot.script("list_services", message=WHATSAPP_LISTING)
    tellabot.script("request", message=ASSIGNED)

    response = await client.post("/api/buy-number", headers=auth_headers, json={"service": "whatsapp"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["balance"] == 9.5
    assert data["data"]["mdn"] == "5551234567"

    order = data["order"]
    assert order["status"] == "pending"
    assert order["number"] == "5551234567"
    assert order["transaction_id"] == "req-1"
    assert order["amount"] == 0.5
    assert order["expires_at"] is not None

    session.refresh(verified_user)
    assert verified_user.balance == Decimal("9.50")
    assert LedgerService.derive_balance(session, verified_user.id) == Decimal("9.50")

    entry = session.query(LedgerEntry).filter(LedgerEntry.reason == "order_purchase").one()
    assert entry.reference_id == str(order["id"])
    assert tellabot.called("request") == [{"service": "whatsapp", "mdn": None}]


async def test_buy_number_premium_markup(client, auth_headers, tellabot):
    tellabot.script("list_services", message=WHATSAPP_LISTING)
    tellabot.script("request", message=ASSIGNED)

    response = await client.post("/api/buy-number", headers=auth_headers, json={
        "service": "whatsapp", "isPremium": True, "markupPercentage": 20
    })

    assert response.status_code == 200
    order = response.json()["order"]
    assert order["amount"] == 0.6
    assert order["is_premium"] is True
    assert order["markup_percentage"] == 20.0
    assert response.json()["balance"] == 9.4


async def test_buy_number_insufficient_balance(client, auth_headers, tellabot, verified_user, session):
    """A short balance is refused before any number is requested."""
    tellabot.script("list_services", message=[{"price": "25.00"}])

    response = await client.post("/api/buy-number", headers=auth_headers, json={"service": "whatsapp"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Insufficient balance"}
    assert tellabot.called("request") == []
    assert session.query(Order).count() == 0
    session.refresh(verified_user)
    assert verified_user.balance == Decimal("10.00")


async def test_buy_number_unknown_service(client, auth_headers, tellabot):
    tellabot.script("list_services", status="error", message="Invalid service")

    response = await client.post("/api/buy-number", headers=auth_headers, json={"service": "nope"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid service or service not available"
    assert tellabot.called("request") == []


async def test_buy_number_provider_error_charges_nothing(client, auth_headers, tellabot, verified_user, session):
    tellabot.script("list_services", message=WHATSAPP_LISTING)
    tellabot.script("request", status="error", message="No numbers available for this service")

    response = await client.post("/api/buy-number", headers=auth_headers, json={"service": "whatsapp"})

    assert response.status_code == 400
    assert response.json()["message"] == "No numbers available for this service"
    assert session.query(Order).count() == 0
    session.refresh(verified_user)
    assert verified_user.balance == Decimal("10.00")


async def test_buy_number_balance_spent_meanwhile(client, auth_headers, tellabot, verified_user, session):
    """If the balance is gone by the time of the debit, the number goes back to the provider."""
    tellabot.script("list_services", message=WHATSAPP_LISTING)
    tellabot.script("reject", message="ok")

    async def drain_then_assign(service, mdn=None):
        LedgerService.debit(session, verified_user, Decimal("9.80"), "order_purchase")
        session.commit()
        tellabot.calls.append(("request", {"service": service, "mdn": mdn}))
        return TellabotResponse("ok", ASSIGNED)

    tellabot.request_number = drain_then_assign

    response = await client.post("/api/buy-number", headers=auth_headers, json={"service": "whatsapp"})

    assert response.status_code == 400
    assert response.json()["message"] == "Insufficient balance"
    assert session.query(Order).count() == 0
    assert tellabot.called("reject") == [{"id": "req-1"}]
    session.refresh(verified_user)
    assert verified_user.balance == Decimal("0.20")


async def test_buy_number_requires_auth(client, tellabot):
    response = await client.post("/api/buy-number", json={"service": "whatsapp"})

    assert response.status_code == 401
    assert tellabot.calls == []


async def test_buy_number_blank_service(client, auth_headers):
    response = await client.post("/api/buy-number", headers=auth_headers, json={"service": "  "})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Service is required"}


async def test_buy_number_missing_service(client, auth_headers, tellabot):
    response = await client.post("/api/buy-number", headers=auth_headers, json={})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Service is required"}
    assert tellabot.calls == []


async def test_buy_then_receive_code_then_reject_refused(client, auth_headers, tellabot, verified_user, session):
    """
    Balance 10.00, buy at 0.50, the code arrives, and a reject after
    completion is refused without touching the balance.
    """
    tellabot.script("list_services", message=WHATSAPP_LISTING)
    tellabot.script("request", message=ASSIGNED)
    tellabot.script("read_sms", message=[{
        "timestamp": "1760875200",
        "date_time": "2026-10-19 12:00:00",
        "from": "WhatsApp",
        "reply": "Your WhatsApp code is 4821"
    }])

    response = await client.post("/api/buy-number", headers=auth_headers, json={"service": "whatsapp"})
    assert response.json()["balance"] == 9.5
    order_id = response.json()["order"]["id"]

    response = await client.get(f"/api/check-sms/{order_id}", headers=auth_headers)
    assert response.status_code == 200
    order = response.json()["order"]
    assert order["pin"] == "4821"
    assert order["status"] == "completed"

    response = await client.post(f"/api/reject-mdn/{order_id}", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Can only reject pending orders"
    assert tellabot.called("reject") == []

    session.refresh(verified_user)
    assert verified_user.balance == Decimal("9.50")
