import base64
import hashlib
import json
from decimal import Decimal
import httpx
import pytest
from core.exceptions import ProviderError
from services.cryptomus_client import CryptomusClient, encode_payload
from services.price_client import PriceClient

REAL_ASYNC_CLIENT = httpx.AsyncClient


@pytest.fixture
def gateway(monkeypatch):
    state = {"handler": None, "requests": []}

    def transport_handler(request: httpx.Request):
        state["requests"].append(request)
        return state["handler"](request)

    def client_factory(**kwargs):
        return REAL_ASYNC_CLIENT(transport=httpx.MockTransport(transport_handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    return state


def _client():
    return CryptomusClient(merchant_id="merchant-1", api_key="api-key-1", api_url="http://cryptomus.test/v1/payment")


def test_encode_payload_is_compact_and_unescaped():
    assert encode_payload({"a": 1, "b": "é"}) == '{"a":1,"b":"é"}'


def test_sign_matches_md5_of_base64_json_plus_key():
    payload = {"order_id": "abc", "status": "paid", "amount": "10.00"}
    encoded = base64.b64encode(json.dumps(payload, separators=(",", ":")).encode()).decode()
    expected = hashlib.md5((encoded + "api-key-1").encode()).hexdigest()

    assert _client().sign(payload) == expected


def test_verify_signature():
    client = _client()
    payload = {"order_id": "abc", "status": "paid"}
    signature = client.sign(payload)

    assert client.verify_signature(payload, signature) is True
    assert client.verify_signature({"order_id": "abc", "status": "cancel"}, signature) is False
    assert client.verify_signature(payload, None) is False
    assert client.verify_signature(payload, "0" * 32) is False


async def test_create_payment_sends_signed_body(gateway):
    gateway["handler"] = lambda request: httpx.Response(200, json={
        "state": 0, "result": {"uuid": "u-1", "url": "https://pay.test/u-1"}
    })
    client = _client()
    payload = {"amount": "0.00020000", "currency": "BTC", "order_id": "abc"}

    result = await client.create_payment(payload)

    assert result["url"] == "https://pay.test/u-1"
    request = gateway["requests"][0]
    assert request.headers["merchant"] == "merchant-1"
    assert request.headers["sign"] == client.sign(payload)
    assert request.content.decode() == encode_payload(payload)


async def test_create_payment_surfaces_validation_errors(gateway):
    gateway["handler"] = lambda request: httpx.Response(422, json={
        "state": 1, "errors": {"url_callback": ["The url callback format is invalid."]}
    })

    with pytest.raises(ProviderError) as exc_info:
        await _client().create_payment({"order_id": "abc"})

    assert exc_info.value.message == "Invalid callback URL: The url callback format is invalid."


async def test_create_payment_falls_back_to_message(gateway):
    gateway["handler"] = lambda request: httpx.Response(401, json={"state": 1, "message": "Merchant not found"})

    with pytest.raises(ProviderError) as exc_info:
        await _client().create_payment({"order_id": "abc"})

    assert exc_info.value.message == "Merchant not found"


async def test_stablecoins_convert_one_to_one(gateway):
    prices = PriceClient(api_url="http://prices.test/ticker")

    assert await prices.usd_to_crypto(Decimal("25"), "usdt") == Decimal("25")
    # No lookup needed
    assert gateway["requests"] == []


async def test_price_lookup_uses_usdt_ticker(gateway):
    gateway["handler"] = lambda request: httpx.Response(200, json={"symbol": "BTCUSDT", "price": "50000.00"})
    prices = PriceClient(api_url="http://prices.test/ticker")

    amount = await prices.usd_to_crypto(Decimal("10"), "BTC")

    assert amount == Decimal("0.0002")
    assert gateway["requests"][0].url.params["symbol"] == "BTCUSDT"


async def test_price_lookup_failure_raises_provider_error(gateway):
    gateway["handler"] = lambda request: httpx.Response(400, json={"code": -1121, "msg": "Invalid symbol."})
    prices = PriceClient(api_url="http://prices.test/ticker")

    with pytest.raises(ProviderError):
        await prices.get_price("DOGE")
