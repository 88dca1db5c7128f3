import base64
import hashlib
import hmac
import json
import httpx
from core.config import settings
from core.exceptions import ProviderError
from utils.logger import get_logger

logger = get_logger(__name__)


def encode_payload(payload: dict) -> str:
    """Compact JSON, the exact text that gets signed and sent."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class CryptomusClient:
    """
    Crypto payment gateway.

    Requests and webhooks are signed with md5(base64(json) + api_key).
    """

    def __init__(self, merchant_id: str | None = None, api_key: str | None = None,
                 api_url: str | None = None, timeout: float | None = None):
        self.merchant_id = merchant_id or settings.CRYPTOMUS_MERCHANT_ID
        self.api_key = api_key or settings.CRYPTOMUS_API_KEY
        self.api_url = api_url or settings.CRYPTOMUS_API_URL
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS

    def sign(self, payload: dict) -> str:
        encoded = base64.b64encode(encode_payload(payload).encode("utf-8")).decode("ascii")
        return hashlib.md5((encoded + self.api_key).encode("utf-8")).hexdigest()

    def verify_signature(self, payload: dict, signature: str | None) -> bool:
        if not signature:
            return False
        return hmac.compare_digest(self.sign(payload), signature)

    async def create_payment(self, payload: dict) -> dict:
        """
        Create a hosted invoice.

        Returns:
            The provider's "result" object (contains "url" and "uuid")

        Raises:
            ProviderError: with the provider's validation messages when it refuses
        """
        body = encode_payload(payload)
        headers = {
            "merchant": self.merchant_id,
            "sign": self.sign(payload),
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                res = await client.post(self.api_url, content=body.encode("utf-8"), headers=headers)
            data = res.json()
        except httpx.HTTPError as e:
            logger.error(
                f"Cryptomus request failed: {e}",
                extra={"order_id": payload.get("order_id"), "error_type": type(e).__name__}
            )
            raise ProviderError("Payment provider is unavailable, please try again later")
        except ValueError:
            logger.error("Cryptomus returned a non-JSON body", extra={"order_id": payload.get("order_id")})
            raise ProviderError("Invalid response from payment provider")

        if not isinstance(data, dict):
            raise ProviderError("Invalid response from payment provider")

        if res.is_error or not isinstance(data.get("result"), dict):
            message = self._error_message(data)
            logger.warning(
                "Cryptomus refused payment",
                extra={"order_id": payload.get("order_id"), "status_code": res.status_code,
                       "provider_message": message}
            )
            raise ProviderError(message, response=data)

        return data["result"]

    @staticmethod
    def _error_message(data: dict) -> str:
        errors = data.get("errors")
        if isinstance(errors, dict) and errors:
            if "url_callback" in errors:
                return f"Invalid callback URL: {', '.join(errors['url_callback'])}"
            if "url_return" in errors:
                return f"Invalid return URL: {', '.join(errors['url_return'])}"
            return ", ".join(
                message for messages in errors.values()
                for message in (messages if isinstance(messages, list) else [messages])
            )
        return data.get("message") or "Payment processing failed"
