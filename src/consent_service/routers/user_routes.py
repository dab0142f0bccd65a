import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from consent_service.crud import consent_crud, identity_crud
from consent_service.db import get_db
from consent_service.dependencies import get_current_principal, get_current_user
from consent_service.models.user import User
from consent_service.schemas.auth_schemas import Principal
from consent_service.schemas.identity_schemas import (
    AttributeResponse,
    UserProfileResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["Users"],
)


@router.get("/me", response_model=UserProfileResponse)
async def get_current_user_profile(user: User = Depends(get_current_user)):
    return user


@router.get("/{user_id}/attributes", response_model=List[AttributeResponse])
async def get_shared_attributes(
    user_id: str,
    client_id: str = Query(..., alias="clientId", min_length=1),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """
    What a client may read about a user: the visible attributes shared
    under the user's consent for that client.
    """
    if principal.user_id != user_id or (
        principal.is_consent_scoped and principal.client_id != client_id
    ):
        logger.warning(
            f"Principal {principal.user_id} ({principal.client_id}) denied attributes "
            f"of user {user_id} for client {client_id}"
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    consent = await consent_crud.get_consent_by_client_id(
        db, user_id, client_id, include_accesses=False
    )
    if consent is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Consent not found")
    return await identity_crud.get_consented_attributes(db, consent)
