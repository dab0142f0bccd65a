import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from consent_service.crud import identity_crud
from consent_service.db import get_db
from consent_service.dependencies import require_dashboard_principal
from consent_service.exceptions import DuplicateNameError
from consent_service.schemas.auth_schemas import Principal
from consent_service.schemas.identity_schemas import (
    AttributeCreate,
    AttributeResponse,
    AttributeUpdate,
    ContextCreate,
    ContextResponse,
    ContextUpdate,
)

logger = logging.getLogger(__name__)

context_router = APIRouter(
    prefix="/contexts",
    tags=["Contexts"],
)

attribute_router = APIRouter(
    prefix="/attributes",
    tags=["Attributes"],
)


# --- Contexts ---


@context_router.get("", response_model=List[ContextResponse])
async def list_contexts(
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    return await identity_crud.list_contexts(db, principal.user_id)


@context_router.post("", response_model=ContextResponse, status_code=status.HTTP_201_CREATED)
async def create_context(
    context_in: ContextCreate,
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    context = await identity_crud.create_context(
        db, principal.user_id, context_in.name, context_in.description
    )
    await db.commit()
    return context


@context_router.put("/{context_id}", response_model=ContextResponse)
async def update_context(
    context_id: str,
    context_in: ContextUpdate,
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    context = await identity_crud.get_context(db, principal.user_id, context_id)
    if context is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Context not found")
    context = await identity_crud.update_context(
        db, context, context_in.name, context_in.description
    )
    await db.commit()
    return context


@context_router.delete("/{context_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_context(
    context_id: str,
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    """Deletes a context; attributes that belonged to it stay, without it."""
    if not await identity_crud.delete_context(db, principal.user_id, context_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Context not found")
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Attributes ---


@attribute_router.get("", response_model=List[AttributeResponse])
async def list_attributes(
    visible: Optional[bool] = None,
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    """All of the user's attributes, or only the shareable ones with ?visible=true."""
    return await identity_crud.list_attributes(db, principal.user_id, visible=visible)


@attribute_router.post(
    "", response_model=AttributeResponse, status_code=status.HTTP_201_CREATED
)
async def create_attribute(
    attribute_in: AttributeCreate,
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    try:
        attribute = await identity_crud.create_attribute(
            db,
            principal.user_id,
            name=attribute_in.name,
            value=attribute_in.value,
            visible=attribute_in.visible,
            context_ids=attribute_in.context_ids,
        )
    except DuplicateNameError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    await db.commit()
    return attribute


@attribute_router.put("/{attribute_id}", response_model=AttributeResponse)
async def update_attribute(
    attribute_id: str,
    attribute_in: AttributeUpdate,
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    attribute = await identity_crud.get_attribute(db, principal.user_id, attribute_id)
    if attribute is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attribute not found")
    try:
        attribute = await identity_crud.update_attribute(
            db,
            attribute,
            name=attribute_in.name,
            value=attribute_in.value,
            visible=attribute_in.visible,
            context_ids=attribute_in.context_ids,
        )
    except DuplicateNameError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    await db.commit()
    return attribute


@attribute_router.delete("/{attribute_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attribute(
    attribute_id: str,
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    if not await identity_crud.delete_attribute(db, principal.user_id, attribute_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attribute not found")
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
