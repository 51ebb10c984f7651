"""Admin self-service account endpoints."""

from __future__ import annotations

from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from warden.config import get_settings

from api.dependencies import (
    ADMIN_AUTH_COOKIE_NAME,
    get_account_service,
    get_admin_identity,
    get_password_policy,
    get_raw_token,
)
from api.middleware.csrf import csrf_token_for, require_csrf
from api.services.account_lifecycle import (
    AccountConflict,
    AccountLifecycleError,
    AccountLifecycleService,
    AccountNotFound,
    AdminIdentity,
    ValidationFailed,
    Violation,
)
from api.services.password_strength import PasswordStrengthPolicy

router = APIRouter(dependencies=[Depends(require_csrf)])
ADMIN_AUTH_COOKIE_PATH = "/"


class ProfileUpdateRequest(BaseModel):
    username: str = Field(max_length=256)
    email: str = Field(max_length=320)


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(
        default="",
        max_length=256,
        validation_alias=AliasChoices("currentPassword", "current_password"),
    )
    new_password: str = Field(
        max_length=256,
        validation_alias=AliasChoices("newPassword", "new_password"),
    )


class PasswordStrengthRequest(BaseModel):
    password: str = Field(max_length=256)


def _raise_http(exc: AccountLifecycleError) -> NoReturn:
    if isinstance(exc, AccountNotFound):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, AccountConflict):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": str(exc), "field": exc.field},
        ) from exc
    if isinstance(exc, ValidationFailed):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": exc.error,
                "errors": [violation.as_dict() for violation in exc.violations],
            },
        ) from exc
    raise exc


def _clear_admin_auth_cookie(response: JSONResponse) -> None:
    response.delete_cookie(
        key=ADMIN_AUTH_COOKIE_NAME,
        path=ADMIN_AUTH_COOKIE_PATH,
    )


@router.get("/profile")
async def get_profile(
    identity: AdminIdentity = Depends(get_admin_identity),
    service: AccountLifecycleService = Depends(get_account_service),
) -> dict:
    try:
        return await service.get_profile(identity)
    except AccountLifecycleError as exc:
        _raise_http(exc)


@router.get("/csrf")
async def get_csrf_token(
    request: Request,
    identity: AdminIdentity = Depends(get_admin_identity),
) -> dict[str, str]:
    """Token to echo in ``X-CSRF-Token`` on writes made with the session cookie."""
    return {"csrfToken": csrf_token_for(get_raw_token(request) or "")}


@router.put("/profile")
async def update_profile(
    req: ProfileUpdateRequest,
    identity: AdminIdentity = Depends(get_admin_identity),
    service: AccountLifecycleService = Depends(get_account_service),
) -> dict:
    try:
        user = await service.update_profile(identity, req.username, req.email)
    except AccountLifecycleError as exc:
        _raise_http(exc)
    return {"message": "Profile updated successfully", "user": user}


@router.post("/change-password")
async def change_password(
    req: ChangePasswordRequest,
    identity: AdminIdentity = Depends(get_admin_identity),
    service: AccountLifecycleService = Depends(get_account_service),
) -> dict[str, str]:
    try:
        await service.change_password(identity, req.current_password, req.new_password)
    except AccountLifecycleError as exc:
        _raise_http(exc)
    return {"message": "Password changed successfully"}


@router.post("/logout")
async def logout(
    request: Request,
    identity: AdminIdentity = Depends(get_admin_identity),
    service: AccountLifecycleService = Depends(get_account_service),
) -> JSONResponse:
    await service.logout(identity, get_raw_token(request))
    response = JSONResponse({"message": "Logged out successfully"})
    _clear_admin_auth_cookie(response)
    return response


@router.post("/password-strength")
async def password_strength(
    req: PasswordStrengthRequest,
    identity: AdminIdentity = Depends(get_admin_identity),
    policy: PasswordStrengthPolicy = Depends(get_password_policy),
) -> dict:
    min_length = get_settings().password_min_length
    result = policy.evaluate(req.password, username=identity.username)
    violations = list(result.violations)
    if len(req.password) < min_length:
        violations.insert(
            0,
            Violation(
                "too_short",
                f"Password must be at least {min_length} characters",
                "password",
            ),
        )
    return {
        "valid": not violations,
        "score": result.score,
        "errors": [violation.as_dict() for violation in violations],
    }
