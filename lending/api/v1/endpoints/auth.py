from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from lending.db.session import get_db
from lending.api.v1.dependencies import get_current_staff, oauth2_scheme
from lending.db.models import User
from lending.schemas.auth import TokenResponse, LogoutResponse
from lending.services.auth import authenticate_staff, create_staff_token, blacklist_token

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Staff login",
    description="Authenticate a librarian or admin using the OAuth2 form "
                "(`username` holds the email address).",
    responses={
        200: {"description": "Login successful, JWT token returned"},
        401: {"description": "Invalid email or password"},
    },
)
async def login(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    user = await authenticate_staff(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return TokenResponse(access_token=create_staff_token(user))


@router.post(
    "/logout",
    response_model=LogoutResponse,
    summary="Logout",
    description="Invalidate the current staff token.",
    responses={
        200: {"description": "Successfully logged out"},
        401: {"description": "Not authenticated or token already invalid"},
    },
)
async def logout(
    token: Annotated[str, Depends(oauth2_scheme)],
    current_user: Annotated[User, Depends(get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await blacklist_token(db, token)
    return LogoutResponse()
