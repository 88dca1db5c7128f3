from fastapi import APIRouter, Request
from starlette import status
from utils.deps import user_dependency, db_dependency
from schemas.auth_schemas import ChangePasswordRequest, DeactivateUserRequest, UpdateProfileRequest
from services.auth_service import AuthService
from services.token_service import TokenService
from middleware.rate_limiter import limiter


router = APIRouter(
    prefix="/users",
    tags=["users"]
)


@router.get("/me", status_code=status.HTTP_200_OK)
@limiter.limit("30/minute")
async def get_user_info(request: Request, user: user_dependency):
    """Current user's profile and balance."""
    return {"success": True, "user": user.to_dict()}


@router.put("/me", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def update_profile(request: Request, body: UpdateProfileRequest, user: user_dependency, db: db_dependency):
    user = AuthService.update_profile(user, body, db)
    return {"success": True, "message": "Profile updated", "user": user.to_dict()}


@router.put("/me/password", status_code=status.HTTP_200_OK)
@limiter.limit("2/minute")
async def change_password(request: Request, body: ChangePasswordRequest, user: user_dependency, db: db_dependency):
    AuthService.change_password(user, body.current_password, body.new_password, db)
    TokenService.revoke_all_user_tokens(user.id, db)
    return {"success": True, "message": "Password updated successfully. Please login again."}


@router.delete("/deactivate", status_code=status.HTTP_200_OK)
@limiter.limit("3/minute")
async def deactivate_user(request: Request, body: DeactivateUserRequest, user: user_dependency, db: db_dependency):
    AuthService.deactivate(user, body.password, db)
    # End every session of the deactivated account
    TokenService.revoke_all_user_tokens(user.id, db)
    return {"success": True, "message": "Account deactivated"}
