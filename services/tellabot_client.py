from dataclasses import dataclass
from typing import Any
import httpx
from core.config import settings
from core.exceptions import ProviderError
from utils.logger import get_logger, sanitize_log_data

logger = get_logger(__name__)

EMPTY_INBOX = "No messages"


@dataclass
class TellabotResponse:
    """Envelope every command answers with: {"status": "ok"|"error", "message": ...}"""
    status: str
    message: Any = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def is_empty_inbox(self) -> bool:
        return not self.ok and self.message == EMPTY_INBOX

    @property
    def error_message(self) -> str | None:
        if self.ok or self.message is None:
            return None
        return self.message if isinstance(self.message, str) else str(self.message)

    def items(self) -> list:
        """message as a list of records (the API sends a list, a dict or a string)."""
        if isinstance(self.message, list):
            return self.message
        if isinstance(self.message, dict):
            return [self.message]
        return []

    def first(self) -> dict:
        records = self.items()
        return records[0] if records else {}

    def to_dict(self):
        return {"status": self.status, "message": self.message}


class TellabotClient:
    """
    Client for the number provisioning API.

    Every command is a GET with the credentials and arguments in the query
    string. Errors the API reports come back as a non-ok TellabotResponse;
    transport failures and unreadable bodies raise ProviderError.
    """

    def __init__(self, api_url: str | None = None, user: str | None = None,
                 api_key: str | None = None, timeout: float | None = None):
        self.api_url = api_url or settings.TELLABOT_API_URL
        self.user = user or settings.TELLABOT_USER
        self.api_key = api_key or settings.TELLABOT_API_KEY
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS

    async def command(self, cmd: str, **params) -> TellabotResponse:
        query = {"user": self.user, "api_key": self.api_key, "cmd": cmd}
        for key, value in params.items():
            if value is None:
                continue
            query[key] = str(value).lower() if isinstance(value, bool) else value

        logger.debug("Tellabot request", extra={"params": sanitize_log_data(query)})

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                res = await client.get(self.api_url, params=query, headers={"Accept": "application/json"})
            res.raise_for_status()
            data = res.json()
        except httpx.HTTPError as e:
            logger.error(
                f"Tellabot request failed: {e}",
                extra={"cmd": cmd, "error_type": type(e).__name__}
            )
            raise ProviderError("Number provider is unavailable, please try again later")
        except ValueError:
            logger.error("Tellabot returned a non-JSON body", extra={"cmd": cmd})
            raise ProviderError("Invalid response from number provider")

        if not isinstance(data, dict) or "status" not in data:
            logger.error("Tellabot returned an unexpected envelope", extra={"cmd": cmd})
            raise ProviderError("Invalid response from number provider")

        response = TellabotResponse(status=data["status"], message=data.get("message"))
        if not response.ok and not response.is_empty_inbox:
            logger.warning(
                "Tellabot command returned an error",
                extra={"cmd": cmd, "provider_message": response.error_message}
            )
        return response

    # One-off numbers

    async def list_services(self, service: str | None = None) -> TellabotResponse:
        return await self.command("list_services", service=service)

    async def request_number(self, service: str, mdn: str | None = None) -> TellabotResponse:
        return await self.command("request", service=service, mdn=mdn)

    async def read_sms_by_id(self, request_id: str) -> TellabotResponse:
        return await self.command("read_sms", id=request_id)

    async def request_status(self, request_id: str) -> TellabotResponse:
        return await self.command("request_status", id=request_id)

    async def reject(self, request_id: str) -> TellabotResponse:
        return await self.command("reject", id=request_id)

    # Long-term rentals

    async def read_sms(self, service: str, mdn: str) -> TellabotResponse:
        return await self.command("read_sms", service=service, mdn=mdn)

    async def ltr_rent(self, service: str, duration: int, mdn: str | None = None,
                       autorenew: bool | None = None) -> TellabotResponse:
        return await self.command("ltr_rent", service=service, duration=duration,
                                  mdn=mdn, autorenew=autorenew)

    async def ltr_release(self, request_id: str | None = None, mdn: str | None = None,
                          service: str | None = None) -> TellabotResponse:
        return await self.command("ltr_release", id=request_id, mdn=mdn, service=service)

    async def ltr_status(self, mdn: str) -> TellabotResponse:
        return await self.command("ltr_status", mdn=mdn)

    async def ltr_activate(self, mdn: str) -> TellabotResponse:
        return await self.command("ltr_activate", mdn=mdn)
