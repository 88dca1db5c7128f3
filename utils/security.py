import secrets
from datetime import timedelta
from passlib.context import CryptContext
from utils.timeutils import utcnow

bcrypt_context = CryptContext(schemes=['bcrypt'], deprecated='auto')


def get_password_hash(password: str) -> str:
    # Bcrypt has a 72-byte limit
    return bcrypt_context.hash(password[:72])


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt_context.verify(plain_password[:72], hashed_password)


def generate_token(nbytes: int = 32) -> str:
    """URL-safe random token for email verification and password reset links."""
    return secrets.token_urlsafe(nbytes)


def get_token_expiry(**delta):
    return utcnow() + timedelta(**delta)
