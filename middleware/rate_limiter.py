from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from jose import jwt, JWTError
from core.config import settings


def get_user_id(request: Request):
    """Rate-limit key: the user id from a valid bearer token, else the client IP."""
    authorization = request.headers.get("Authorization")
    if not authorization:
        return get_remote_address(request)

    try:
        payload = jwt.decode(authorization.replace("Bearer ", ""), settings.SECRET_KEY,
                             algorithms=[settings.ALGORITHM])
    except JWTError:
        return get_remote_address(request)

    user_id = payload.get("id")
    return f"user:{user_id}" if user_id else get_remote_address(request)


limiter = Limiter(
    key_func=get_user_id,
    default_limits=["200/hour"],
    enabled=settings.ENV != "testing"
)
