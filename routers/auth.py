from fastapi import APIRouter, Depends, Request, BackgroundTasks
from fastapi.security import OAuth2PasswordRequestForm
from starlette import status
from utils.deps import db_dependency
from schemas.auth_schemas import (Token, CreateUserRequest, EmailRequest,
                                  RefreshTokenRequest, ResetPasswordRequest)
from services.auth_service import AuthService
from services.token_service import TokenService
from middleware.rate_limiter import limiter
from utils.logger import get_logger

logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


@router.post("/token", response_model=Token)
@limiter.limit("5/minute")
async def login_for_access_token(request: Request, db: db_dependency, form_data: OAuth2PasswordRequestForm = Depends()):
    """Log in with email (OAuth2 "username" field) and password."""
    user = AuthService.authenticate_user(form_data.username, form_data.password, db)
    token = TokenService.create_tokens(user, db)

    logger.info(
        "User logged in successfully",
        extra={"user_id": user.id}
    )
    return token


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("3/minute")
async def create_user(request: Request, body: CreateUserRequest, db: db_dependency, bg: BackgroundTasks):
    AuthService.create_user(body, db, bg)
    return {"success": True, "message": "Registration successful. Please check your email to verify your account."}


@router.get("/verify-email", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def verify_email(request: Request, token: str, db: db_dependency):
    AuthService.verify_email(token, db)
    return {"success": True, "message": "Email verified successfully"}


@router.post("/resend-verification", status_code=status.HTTP_200_OK)
@limiter.limit("3/minute")
async def resend_verification(request: Request, body: EmailRequest, db: db_dependency, bg: BackgroundTasks):
    AuthService.resend_verification(body.email, db, bg)
    return {"success": True, "message": "If that account needs verification, a new link has been sent."}


@router.post("/refresh", response_model=Token)
@limiter.limit("10/minute")
async def refresh_token(request: Request, body: RefreshTokenRequest, db: db_dependency):
    """Get new access token using refresh token. The old refresh token is revoked."""
    token = TokenService.refresh_access_token(body.refresh_token, db)
    logger.info("Access token refreshed")
    return token


@router.post("/logout", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def logout(request: Request, body: RefreshTokenRequest, db: db_dependency):
    TokenService.revoke_token(body.refresh_token, db)
    logger.info("User logged out")
    return {"success": True, "message": "Logged out successfully"}


@router.post("/forgot-password", status_code=status.HTTP_200_OK)
@limiter.limit("3/minute")
async def forgot_password_request(request: Request, body: EmailRequest, db: db_dependency, bg: BackgroundTasks):
    AuthService.request_password_reset(body.email, db, bg)
    return {"success": True, "message": "If that email exists, a reset link has been sent."}


@router.post("/reset-password", status_code=status.HTTP_200_OK)
@limiter.limit("5/minute")
async def reset_password(request: Request, body: ResetPasswordRequest, db: db_dependency):
    user = AuthService.reset_password(body.token, body.new_password, db)
    # Force re-login everywhere
    TokenService.revoke_all_user_tokens(user.id, db)
    return {"success": True, "message": "Password updated successfully. Please login again."}
