import hashlib
import secrets
from datetime import timedelta
from sqlalchemy.orm import Session
from jose import jwt, JWTError
from models.refresh_tokens import RefreshToken
from models.users import User
from core.config import settings
from core.exceptions import Unauthorized
from utils.timeutils import utcnow, is_past
from utils.logger import get_logger

logger = get_logger(__name__)


def _hash_jti(jti: str) -> str:
    return hashlib.sha256(jti.encode()).hexdigest()


class TokenService:
    """
    Handles all token operations: creation, validation, rotation, and revocation.
    """

    @staticmethod
    def create_access_token(user: User, expires_delta: timedelta | None = None) -> str:
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

        payload = {
            "sub": user.email,
            "id": user.id,
            "role": user.role,
            "type": "access",
            "exp": utcnow() + expires_delta
        }
        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def create_refresh_token(user: User):
        """
        Returns:
            Tuple of (refresh_token_string, jti, expires_at)
        """
        jti = secrets.token_urlsafe(32)
        expire = utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

        payload = {
            "sub": user.email,
            "id": user.id,
            "role": user.role,
            "jti": jti,
            "type": "refresh",
            "exp": expire
        }
        refresh_token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
        return refresh_token, jti, expire

    @staticmethod
    def create_tokens(user: User, db: Session):
        """
        Creates access token + refresh token pair.
        Only the hash of the refresh token's JTI is stored.
        """
        access_token = TokenService.create_access_token(user)
        refresh_token, jti, expires_at = TokenService.create_refresh_token(user)

        db.add(RefreshToken(
            user_id=user.id,
            token_hash=_hash_jti(jti),
            expires_at=expires_at
        ))
        db.commit()

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer"
        }

    @staticmethod
    def refresh_access_token(refresh_token: str, db: Session):
        """
        Validates refresh token and issues new access + refresh tokens.
        The old refresh token is revoked (rotation).

        Raises:
            Unauthorized: token invalid, expired, revoked or owner inactive
        """
        try:
            payload = jwt.decode(refresh_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            raise Unauthorized("Invalid token")

        if payload.get("type") != "refresh":
            raise Unauthorized("Invalid token type")

        user_id = payload.get("id")
        jti = payload.get("jti")
        if not user_id or not jti:
            raise Unauthorized("Invalid token payload")

        db_token = db.query(RefreshToken).filter(
            RefreshToken.token_hash == _hash_jti(jti),
            RefreshToken.revoked == False
        ).first()

        if not db_token:
            logger.warning("Refresh with unknown or revoked token", extra={"user_id": user_id})
            raise Unauthorized("Token not found or revoked")

        if is_past(db_token.expires_at):
            raise Unauthorized("Token expired")

        user = db.query(User).filter(User.id == user_id).one_or_none()
        if not user or not user.is_active:
            raise Unauthorized("Account is inactive")

        db_token.revoked = True
        db.commit()

        return TokenService.create_tokens(user, db)

    @staticmethod
    def revoke_token(refresh_token: str, db: Session):
        """Revokes a refresh token (logout). Unreadable tokens have nothing to revoke."""
        try:
            payload = jwt.decode(refresh_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            logger.info("Logout with unreadable refresh token")
            return

        jti = payload.get("jti")
        if not jti:
            return

        db_token = db.query(RefreshToken).filter(RefreshToken.token_hash == _hash_jti(jti)).first()
        if db_token:
            db_token.revoked = True
            db.commit()

    @staticmethod
    def revoke_all_user_tokens(user_id: int, db: Session):
        """Revokes all refresh tokens for a user (logout from all devices)."""
        db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked == False
        ).update({"revoked": True})
        db.commit()
