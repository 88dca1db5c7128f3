from fastapi import BackgroundTasks
from sqlalchemy.orm import Session
from models.users import User
from schemas.auth_schemas import CreateUserRequest, UpdateProfileRequest
from services.email_service import send_email, verification_email, password_reset_email
from core.config import settings
from core.exceptions import Unauthorized, Forbidden, InvalidInput
from utils.security import verify_password, get_password_hash, generate_token, get_token_expiry
from utils.timeutils import utcnow, is_past
from utils.logger import get_logger

logger = get_logger(__name__)


class AuthService:

    @staticmethod
    def _send_verification(user: User, bg: BackgroundTasks):
        user.verification_token = generate_token()
        user.verification_token_expires_at = get_token_expiry(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS)
        subject, body = verification_email(user.username, user.verification_token)
        bg.add_task(send_email, to_email=user.email, subject=subject, body=body)

    @staticmethod
    def create_user(request: CreateUserRequest, db: Session, bg: BackgroundTasks) -> User:
        """
        Creates a new user and sends verification email.

        Flow:
        1. Check if email already exists
        2. Create user (unverified, zero balance)
        3. Generate verification token and email the link
        """
        email = request.email.lower().strip()
        existing_user = db.query(User).filter(User.email == email).first()
        if existing_user:
            logger.warning(
                "Registration attempt with existing email",
                extra={"email": email}
            )
            raise InvalidInput("Email already registered")

        model = User(
            email=email,
            username=request.username,
            hashed_password=get_password_hash(request.password),
            contact_method=request.contact_method,
            contact_value=request.contact_value,
            balance=0,
            is_verified=False
        )
        AuthService._send_verification(model, bg)

        db.add(model)
        db.commit()
        db.refresh(model)

        logger.info("User registered", extra={"user_id": model.id, "contact_method": model.contact_method})
        return model

    @staticmethod
    def authenticate_user(email: str, password: str, db: Session) -> User:
        email = email.lower().strip()
        user = db.query(User).filter(User.email == email).first()

        if not user:
            logger.warning(
                "Login failed - user not found",
                extra={"email": email}
            )
            raise Unauthorized("Could not validate user.")

        if not user.is_active:
            logger.warning(
                "Login failed - inactive account",
                extra={"email": email}
            )
            raise Unauthorized("Could not validate user.")

        if not verify_password(password, user.hashed_password):
            logger.warning(
                "Login failed - invalid password",
                extra={"user_id": user.id, "email": email}
            )
            raise Unauthorized("Could not validate user.")

        if not user.is_verified:
            logger.warning(
                "Login attempt with unverified email",
                extra={"user_id": user.id, "email": email}
            )
            raise Forbidden("Email not verified. Please check your inbox.")

        user.last_login = utcnow()
        db.commit()

        logger.debug(
            "User authenticated successfully",
            extra={"user_id": user.id, "email": email}
        )
        return user

    @staticmethod
    def verify_email(token: str, db: Session) -> User:
        user = db.query(User).filter(User.verification_token == token).first()
        if not user:
            raise InvalidInput("Invalid verification token")

        if not user.is_active:
            raise Forbidden("Account inactive")

        if is_past(user.verification_token_expires_at):
            raise InvalidInput("Verification link expired")

        user.is_verified = True
        user.verification_token = user.verification_token_expires_at = None
        db.commit()

        logger.info("Email verified", extra={"user_id": user.id})
        return user

    @staticmethod
    def resend_verification(email: str, db: Session, bg: BackgroundTasks):
        """Issues a fresh link. Silent for unknown or already verified emails."""
        user = db.query(User).filter(User.email == email.lower().strip()).first()
        if not user or user.is_verified or not user.is_active:
            return

        AuthService._send_verification(user, bg)
        db.commit()

    @staticmethod
    def request_password_reset(email: str, db: Session, bg: BackgroundTasks):
        user = db.query(User).filter(User.email == email.lower().strip(), User.is_active == True).first()
        if not user:
            logger.info("Password reset requested for unknown email", extra={"email": email})
            return

        user.password_reset_token = generate_token()
        user.password_reset_expires_at = get_token_expiry(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
        db.commit()

        subject, body = password_reset_email(user.password_reset_token)
        bg.add_task(send_email, to_email=user.email, subject=subject, body=body)

    @staticmethod
    def reset_password(token: str, new_password: str, db: Session) -> User:
        user = db.query(User).filter(User.password_reset_token == token).first()
        if not user or is_past(user.password_reset_expires_at):
            raise InvalidInput("Invalid or expired token")

        user.hashed_password = get_password_hash(new_password)
        user.password_reset_token = user.password_reset_expires_at = None
        db.commit()

        logger.info("Password reset", extra={"user_id": user.id})
        return user

    @staticmethod
    def change_password(user: User, current_password: str, new_password: str, db: Session):
        if not verify_password(current_password, user.hashed_password):
            raise Unauthorized("Incorrect current password")

        user.hashed_password = get_password_hash(new_password)
        db.commit()
        logger.info("Password changed", extra={"user_id": user.id})

    @staticmethod
    def update_profile(user: User, body: UpdateProfileRequest, db: Session) -> User:
        if body.username is not None:
            username = body.username.strip()
            if len(username) < 3:
                raise InvalidInput("Username must be at least 3 characters")
            user.username = username

        if body.contact_method is not None:
            user.contact_method = body.contact_method
            user.contact_value = body.contact_value

        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def deactivate(user: User, password: str, db: Session):
        if not verify_password(plain_password=password, hashed_password=user.hashed_password):
            raise Unauthorized("Incorrect password")

        user.is_active = False
        db.commit()
        logger.info("User deactivated", extra={"user_id": user.id})

    @staticmethod
    def get_active_user_by_id(db: Session, user_id: int) -> User | None:
        return db.query(User).filter(User.id == user_id, User.is_active == True).one_or_none()

