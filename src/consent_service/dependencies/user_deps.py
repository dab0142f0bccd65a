import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from consent_service.crud import user_crud
from consent_service.db import get_db
from consent_service.models.user import User
from consent_service.schemas.auth_schemas import Principal

logger = logging.getLogger(__name__)

# Documents the scheme in OpenAPI; the gate does the actual token handling
bearer_scheme = HTTPBearer(auto_error=False)


def credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_optional_principal(request: Request) -> Optional[Principal]:
    return getattr(request.state, "principal", None)


async def get_current_principal(
    request: Request,
    _credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    """
    Dependency returning the principal admitted by the authentication gate.
    Raises 401 when the gate left the request anonymous.
    """
    principal = await get_optional_principal(request)
    if principal is None:
        logger.debug(
            f"Anonymous request to protected route {request.url.path} "
            f"({getattr(request.state, 'auth_reason', 'no gate')})"
        )
        raise credentials_exception()
    return principal


async def get_current_user(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> User:
    """The stored user behind the principal; 401 if it no longer exists."""
    user = await user_crud.get_user_by_id(db, principal.user_id)
    if user is None:
        logger.warning(f"Token refers to unknown user {principal.user_id}")
        raise credentials_exception()
    return user


async def require_dashboard_principal(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Identity management is reserved to the user's own dashboard session."""
    if principal.is_consent_scoped:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This operation requires a dashboard session.",
        )
    return principal
