from decimal import Decimal, InvalidOperation
import httpx
from core.config import settings
from core.exceptions import ProviderError
from utils.logger import get_logger

logger = get_logger(__name__)

STABLECOINS = {"USDT", "USDC"}


class PriceClient:
    """USD prices for the currencies deposits can be paid in."""

    def __init__(self, api_url: str | None = None, timeout: float | None = None):
        self.api_url = api_url or settings.PRICE_API_URL
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS

    async def get_price(self, currency: str) -> Decimal:
        currency = currency.upper()
        # Stablecoins trade 1:1 with USD
        if currency in STABLECOINS:
            return Decimal(1)

        symbol = f"{currency}USDT"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                res = await client.get(self.api_url, params={"symbol": symbol})
            res.raise_for_status()
            price = Decimal(str(res.json()["price"]))
        except (httpx.HTTPError, ValueError, KeyError, InvalidOperation) as e:
            logger.error(
                f"Price lookup failed for {symbol}",
                extra={"symbol": symbol, "error_type": type(e).__name__}
            )
            raise ProviderError(f"Failed to get {currency} price")

        if price <= 0:
            raise ProviderError(f"Failed to get {currency} price")
        return price

    async def usd_to_crypto(self, usd_amount: Decimal, currency: str) -> Decimal:
        price = await self.get_price(currency)
        return Decimal(usd_amount) / price
