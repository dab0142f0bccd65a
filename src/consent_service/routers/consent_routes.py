import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from consent_service.crud import consent_crud, identity_crud
from consent_service.db import get_db
from consent_service.dependencies import (
    get_current_principal,
    require_dashboard_principal,
)
from consent_service.exceptions import UnshareableAttributeError
from consent_service.schemas.auth_schemas import Principal
from consent_service.schemas.consent_schemas import (
    ConsentCreateRequest,
    ConsentListResponse,
    ConsentResponse,
)
from consent_service.security_audit import log_consent_recorded, log_consent_revoked

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/consents",
    tags=["Consents"],
)


def _not_found(detail: str = "Consent not found") -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


@router.post("", response_model=ConsentResponse, status_code=status.HTTP_201_CREATED)
async def record_consent(
    request: Request,
    consent_in: ConsentCreateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """
    Records the user's consent for a client, replacing any earlier one.

    Called from the consent screen with either a dashboard token or the
    client-bound token obtained at login; the latter may only consent for
    its own client.
    """
    if principal.is_consent_scoped and principal.client_id != consent_in.client_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token is not bound to this client.",
        )

    try:
        shared = await identity_crud.validate_shareable_attributes(
            db, principal.user_id, consent_in.shared_attribute_ids
        )
    except UnshareableAttributeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if consent_in.context_id and not await identity_crud.get_context(
        db, principal.user_id, consent_in.context_id
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown context."
        )

    consent = await consent_crud.upsert_consent(
        db,
        user_id=principal.user_id,
        client_id=consent_in.client_id,
        shared_attribute_ids=shared,
        token_validity=consent_in.validity_policy,
        context_id=consent_in.context_id,
    )
    await db.commit()

    log_consent_recorded(
        request,
        principal.user_id,
        consent.id,
        consent.client_id,
        consent.token_validity.value,
    )
    return ConsentResponse.model_validate(consent)


@router.get("", response_model=ConsentListResponse)
async def list_consents(
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    consents = await consent_crud.list_consents(db, principal.user_id)
    return ConsentListResponse(
        consents=[ConsentResponse.model_validate(consent) for consent in consents],
        count=len(consents),
    )


@router.get("/clients/{client_id:path}", response_model=ConsentResponse)
async def get_consent_for_client(
    client_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """The consent given to one client. Client-bound tokens see only their own."""
    if principal.is_consent_scoped and principal.client_id != client_id:
        raise _not_found()
    consent = await consent_crud.get_consent_by_client_id(db, principal.user_id, client_id)
    if consent is None:
        raise _not_found()
    return ConsentResponse.model_validate(consent)


@router.delete("/{consent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_consent(
    request: Request,
    consent_id: str,
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    """Revokes a consent; tokens already issued to the client stop working."""
    revoked = await consent_crud.revoke_consent(db, principal.user_id, consent_id)
    if not revoked:
        log_consent_revoked(request, principal.user_id, consent_id, status="failure")
        raise _not_found()
    await db.commit()
    log_consent_revoked(request, principal.user_id, consent_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{consent_id}/attributes/{attribute_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def revoke_consented_attribute(
    request: Request,
    consent_id: str,
    attribute_id: str,
    principal: Principal = Depends(require_dashboard_principal),
    db: AsyncSession = Depends(get_db),
):
    """Stops sharing a single attribute; the consent itself stays."""
    removed = await consent_crud.remove_consented_attribute(
        db, principal.user_id, consent_id, attribute_id
    )
    if not removed:
        raise _not_found("Consent or attribute not found")
    await db.commit()
    log_consent_revoked(request, principal.user_id, consent_id, attribute_id=attribute_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
