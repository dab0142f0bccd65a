import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from consent_service.crud import connection_crud, identity_crud
from consent_service.db import get_db
from consent_service.dependencies import require_dashboard_principal
from consent_service.schemas.auth_schemas import Principal
from consent_service.schemas.connection_schemas import (
    ConnectionCreateRequest,
    ConnectionResponse,
)
from consent_service.security_audit import log_connection_changed

logger = logging.getLogger(__name__)

# Linking data providers is a dashboard activity; client tokens get 403
router = APIRouter(
    prefix="/users/me/connections",
    tags=["Connections"],
)


@router.get("", response_model=List[ConnectionResponse])
async def list_connections(
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    return await connection_crud.list_connections(db, principal.user_id)


@router.post("", response_model=ConnectionResponse, status_code=status.HTTP_201_CREATED)
async def save_connection(
    request: Request,
    connection_in: ConnectionCreateRequest,
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    """Links a provider account, or refreshes the token of an existing link."""
    if connection_in.context_id and not await identity_crud.get_context(
        db, principal.user_id, connection_in.context_id
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown context."
        )

    connection = await connection_crud.save_connection(
        db,
        user_id=principal.user_id,
        provider_id=connection_in.provider_id,
        provider_access_token=connection_in.provider_access_token,
        context_id=connection_in.context_id,
        provider_user_id=connection_in.provider_user_id,
    )
    await db.commit()

    log_connection_changed(request, principal.user_id, connection.provider_id, "saved")
    return ConnectionResponse.model_validate(connection)


@router.delete("/{provider_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_connection(
    request: Request,
    provider_id: str,
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    deleted = await connection_crud.delete_connection(db, principal.user_id, provider_id)
    if not deleted:
        log_connection_changed(
            request, principal.user_id, provider_id, "deleted", status="failure"
        )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Connection not found"
        )
    await db.commit()
    log_connection_changed(request, principal.user_id, provider_id, "deleted")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
