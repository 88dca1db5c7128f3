from typing import Annotated
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from jose import JWTError, jwt
from core.config import settings
from core.database import SessionLocal
from core.exceptions import Unauthorized
from models.users import User
from services.tellabot_client import TellabotClient
from services.cryptomus_client import CryptomusClient
from services.price_client import PriceClient


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]

oauth2_bearer = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)


def get_current_user(token: Annotated[str | None, Depends(oauth2_bearer)], db: db_dependency) -> User:
    """Active, verified user behind the bearer access token."""
    if not token:
        raise Unauthorized()

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise Unauthorized("Could not validate credentials.")

    user_id = payload.get("id")
    if user_id is None or payload.get("sub") is None:
        raise Unauthorized("Could not validate credentials.")

    if payload.get("type") != "access":
        raise Unauthorized("Invalid token type. Access token required.")

    user = db.query(User).filter(User.id == user_id).one_or_none()
    if not user or not user.is_active or not user.is_verified:
        raise Unauthorized()

    return user

user_dependency = Annotated[User, Depends(get_current_user)]


def get_tellabot_client() -> TellabotClient:
    return TellabotClient()


def get_cryptomus_client() -> CryptomusClient:
    return CryptomusClient()


def get_price_client() -> PriceClient:
    return PriceClient()

tellabot_dependency = Annotated[TellabotClient, Depends(get_tellabot_client)]
cryptomus_dependency = Annotated[CryptomusClient, Depends(get_cryptomus_client)]
price_dependency = Annotated[PriceClient, Depends(get_price_client)]
