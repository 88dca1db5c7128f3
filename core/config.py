from pydantic_settings import BaseSettings
from pydantic import ConfigDict

class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env", extra="ignore")

    ENV: str = "development"

    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    VERIFICATION_TOKEN_EXPIRE_HOURS: int = 24
    PASSWORD_RESET_EXPIRE_MINUTES: int = 15

    MAIL_USERNAME: str
    MAIL_PASSWORD: str
    MAIL_FROM: str
    MAIL_SERVER: str
    MAIL_PORT: int = 587
    ADMIN_EMAIL: str | None = None

    BASE_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Number provisioning (Tellabot)
    TELLABOT_API_URL: str = "https://www.tellabot.com/sims/api_command.php"
    TELLABOT_USER: str
    TELLABOT_API_KEY: str
    PROVIDER_TIMEOUT_SECONDS: float = 10.0

    # Crypto payments (Cryptomus)
    CRYPTOMUS_API_URL: str = "https://api.cryptomus.com/v1/payment"
    CRYPTOMUS_MERCHANT_ID: str
    CRYPTOMUS_API_KEY: str
    PAYMENT_LIFETIME_SECONDS: int = 1800
    PRICE_API_URL: str = "https://api.binance.com/api/v3/ticker/price"

    # Refund the order amount when the provider accepts a reject
    REFUND_ON_REJECT: bool = False


settings = Settings()
