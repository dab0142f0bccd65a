import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from consent_service.crud import consent_crud, user_crud
from consent_service.db import get_db
from consent_service.dependencies import (
    get_current_principal,
    get_current_user,
    get_token_issuer,
)
from consent_service.dependencies.user_deps import credentials_exception
from consent_service.exceptions import DuplicateNameError
from consent_service.models.consent import TokenValidity
from consent_service.models.user import User
from consent_service.rate_limiting import LOGIN_LIMIT, REGISTRATION_LIMIT, limiter
from consent_service.schemas.auth_schemas import (
    AuthResponse,
    LoginRequest,
    Principal,
    RegisterRequest,
)
from consent_service.security import TokenIssuer, verify_password
from consent_service.security_audit import (
    log_login_failure,
    log_login_success,
    log_registration,
)

logger = logging.getLogger(__name__)

# Informational validity of a consent token minted before any consent exists
FIRST_CONTACT_VALIDITY = TokenValidity.ONE_DAY

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
)


async def _issue_for(
    db: AsyncSession, issuer: TokenIssuer, user: User, client_id: str | None
) -> str:
    if not client_id:
        return issuer.issue_dashboard_token(user)
    consent = await consent_crud.get_consent_by_client_id(
        db, user.id, client_id, include_accesses=False
    )
    validity = consent.token_validity if consent else FIRST_CONTACT_VALIDITY
    return issuer.issue_consent_token(user, client_id, validity)


@router.post("/login", response_model=AuthResponse, status_code=status.HTTP_200_OK)
@limiter.limit(LOGIN_LIMIT)
async def login_user(
    request: Request,
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Exchanges credentials for a token. With a clientId the token is bound to
    that client and its lifetime follows the user's consent for it.
    """
    user = await user_crud.get_user_by_username(db, login_data.username)
    if user is None or not verify_password(login_data.password, user.password_hash):
        log_login_failure(request, login_data.username, "Invalid username or password")
        raise credentials_exception()

    token = await _issue_for(db, issuer, user, login_data.client_id)
    log_login_success(request, user.id, user.username, client_id=login_data.client_id)
    return AuthResponse(
        user_id=user.id,
        username=user.username,
        message="Login successful",
        token=token,
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(REGISTRATION_LIMIT)
async def register_user(
    request: Request,
    register_data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    try:
        user = await user_crud.create_user(
            db,
            username=register_data.username,
            password=register_data.password,
            email=register_data.email,
        )
    except DuplicateNameError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    await user_crud.provision_default_identity(db, user)
    await db.commit()

    log_registration(request, user.id, user.username)
    return AuthResponse(
        user_id=user.id,
        username=user.username,
        message="User registered successfully",
        token=issuer.issue_dashboard_token(user),
    )


@router.get("/validate-token", response_model=AuthResponse)
async def validate_token(
    principal: Principal = Depends(get_current_principal),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Silent sign-in: trades a token the gate accepted for a fresh one of the
    same kind.
    """
    token = await _issue_for(db, issuer, user, principal.client_id)
    return AuthResponse(
        user_id=user.id,
        username=user.username,
        message="Token is valid",
        token=token,
    )
