# src/consent_service/crud/consent_crud.py
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select
from sqlalchemy.orm import raiseload

from ..db import dialect_insert
from ..models.consent import Consent, ConsentAccess, ConsentRevocation, TokenValidity
from ..utils import ensure_utc, generate_prefixed_id, utcnow

logger = logging.getLogger(__name__)

# Tombstones older than the longest token lifetime can no longer match a token
REVOCATION_RETENTION = TokenValidity.longest().duration


async def get_consent_by_client_id(
    db_session: AsyncSession,
    user_id: str,
    client_id: str,
    include_accesses: bool = True,
) -> Optional[Consent]:
    """
    Looks up the consent a user granted to a client.

    Database errors propagate: a failed lookup must never be mistaken for
    "no consent".
    """
    stmt = select(Consent).filter(
        Consent.user_id == user_id, Consent.client_id == client_id
    )
    if not include_accesses:
        stmt = stmt.options(raiseload(Consent.accesses))
    try:
        result = await db_session.execute(stmt)
        return result.scalars().first()
    except SQLAlchemyError as e:
        logger.error(
            f"Database error while fetching consent for user {user_id} "
            f"and client {client_id}: {e}",
            exc_info=True,
        )
        raise


async def get_consent_by_id(
    db_session: AsyncSession, user_id: str, consent_id: str
) -> Optional[Consent]:
    """Retrieves one of the user's consents by its id."""
    try:
        result = await db_session.execute(
            select(Consent).filter(Consent.id == consent_id, Consent.user_id == user_id)
        )
        return result.scalars().first()
    except SQLAlchemyError as e:
        logger.error(
            f"Database error while fetching consent {consent_id}: {e}", exc_info=True
        )
        raise


async def list_consents(db_session: AsyncSession, user_id: str) -> Sequence[Consent]:
    try:
        result = await db_session.execute(
            select(Consent)
            .filter(Consent.user_id == user_id)
            .order_by(Consent.created_at, Consent.id)
        )
        return result.scalars().all()
    except SQLAlchemyError as e:
        logger.error(
            f"Database error while listing consents for user {user_id}: {e}",
            exc_info=True,
        )
        raise


def _latest(*moments: Optional[datetime]) -> Optional[datetime]:
    present = [ensure_utc(moment) for moment in moments if moment is not None]
    return max(present) if present else None


async def upsert_consent(
    db_session: AsyncSession,
    user_id: str,
    client_id: str,
    shared_attribute_ids: List[str],
    token_validity: TokenValidity,
    context_id: Optional[str] = None,
) -> Consent:
    """
    Records a user's consent for a client, replacing an existing one.

    At most one consent exists per (user, client). The row is inserted with
    ON CONFLICT DO NOTHING and then locked, so concurrent first-time writers
    never collide: whoever writes last wins. An update keeps the original
    creation time; last_updated_at never moves backwards.

    A revocation tombstone for the pair is folded into tokens_not_before and
    then cleared, so tokens issued before the revocation stay rejected.
    """
    now = utcnow()
    try:
        revocation = await get_revocation(db_session, user_id, client_id)
        not_before = revocation.revoked_at if revocation is not None else None

        insert_stmt = (
            dialect_insert(db_session)(Consent)
            .values(
                id=generate_prefixed_id("cons"),
                user_id=user_id,
                client_id=client_id,
                context_id=context_id,
                shared_attributes=list(shared_attribute_ids),
                token_validity=TokenValidity(token_validity),
                created_at=now,
                last_updated_at=now,
                tokens_not_before=not_before,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "client_id"])
            .returning(Consent.id)
        )
        inserted_id = (await db_session.execute(insert_stmt)).scalar_one_or_none()

        result = await db_session.execute(
            select(Consent)
            .filter(Consent.user_id == user_id, Consent.client_id == client_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        consent = result.scalars().one()

        if inserted_id is None:
            consent.context_id = context_id
            consent.shared_attributes = list(shared_attribute_ids)
            consent.token_validity = TokenValidity(token_validity)
            consent.last_updated_at = _latest(now, consent.last_updated_at)
            consent.tokens_not_before = _latest(consent.tokens_not_before, not_before)
            action = "updated"
        else:
            action = "created"

        if revocation is not None:
            await db_session.execute(
                delete(ConsentRevocation).where(
                    ConsentRevocation.user_id == user_id,
                    ConsentRevocation.client_id == client_id,
                )
            )
        await db_session.flush()
        await db_session.refresh(consent)
        logger.info(
            f"Consent {consent.id} {action} for user {user_id} and client {client_id} "
            f"({consent.token_validity.value})"
        )
        return consent
    except SQLAlchemyError as e:
        logger.error(
            f"Database error while recording consent for user {user_id} "
            f"and client {client_id}: {e}",
            exc_info=True,
        )
        await db_session.rollback()
        raise


async def revoke_consent(
    db_session: AsyncSession, user_id: str, consent_id: str
) -> bool:
    """
    Deletes a consent. Returns False when the user has no such consent.

    A tombstone remembers when the client lost access, so that tokens issued
    before this moment can be told apart from a first contact.
    """
    try:
        result = await db_session.execute(
            select(Consent)
            .filter(Consent.id == consent_id, Consent.user_id == user_id)
            .with_for_update()
        )
        consent = result.scalars().first()
        if consent is None:
            return False

        now = utcnow()
        client_id = consent.client_id
        await purge_expired_revocations(db_session, now=now)
        await _write_revocation(db_session, user_id, client_id, consent.id, now)
        await db_session.delete(consent)
        await db_session.flush()
        logger.info(f"Consent {consent_id} revoked for user {user_id} and client {client_id}")
        return True
    except SQLAlchemyError as e:
        logger.error(
            f"Database error while revoking consent {consent_id}: {e}", exc_info=True
        )
        await db_session.rollback()
        raise


async def _write_revocation(
    db_session: AsyncSession,
    user_id: str,
    client_id: str,
    consent_id: str,
    revoked_at: datetime,
) -> ConsentRevocation:
    result = await db_session.execute(
        select(ConsentRevocation).filter(
            ConsentRevocation.user_id == user_id,
            ConsentRevocation.client_id == client_id,
        )
    )
    tombstone = result.scalars().first()
    if tombstone is None:
        tombstone = ConsentRevocation(
            user_id=user_id,
            client_id=client_id,
            consent_id=consent_id,
            revoked_at=revoked_at,
        )
        db_session.add(tombstone)
    else:
        tombstone.consent_id = consent_id
        tombstone.revoked_at = revoked_at
    return tombstone


async def remove_consented_attribute(
    db_session: AsyncSession, user_id: str, consent_id: str, attribute_id: str
) -> bool:
    """
    Stops sharing one attribute under a consent.

    Returns False when the consent does not exist or does not share the
    attribute. The consent itself stays in place, even with nothing left.
    """
    try:
        result = await db_session.execute(
            select(Consent)
            .filter(Consent.id == consent_id, Consent.user_id == user_id)
            .with_for_update()
        )
        consent = result.scalars().first()
        if consent is None or attribute_id not in (consent.shared_attributes or []):
            return False

        consent.shared_attributes = [
            shared for shared in consent.shared_attributes if shared != attribute_id
        ]
        consent.last_updated_at = _latest(utcnow(), consent.last_updated_at)
        await db_session.flush()
        logger.info(f"Attribute {attribute_id} removed from consent {consent_id}")
        return True
    except SQLAlchemyError as e:
        logger.error(
            f"Database error while removing attribute {attribute_id} "
            f"from consent {consent_id}: {e}",
            exc_info=True,
        )
        await db_session.rollback()
        raise


async def audit_access(
    session_factory: async_sessionmaker,
    consent_id: str,
    accessed_at: Optional[datetime] = None,
) -> bool:
    """
    Appends an access record to a consent in its own transaction.

    Auditing is best effort: any failure is logged and reported as False,
    never raised, so it cannot turn an authenticated request into an error.
    """
    try:
        async with session_factory() as session:
            session.add(
                ConsentAccess(consent_id=consent_id, accessed_at=accessed_at or utcnow())
            )
            await session.commit()
        return True
    except Exception as e:
        logger.warning(f"Could not audit access to consent {consent_id}: {e}")
        return False


async def get_revocation(
    db_session: AsyncSession, user_id: str, client_id: str
) -> Optional[ConsentRevocation]:
    try:
        result = await db_session.execute(
            select(ConsentRevocation).filter(
                ConsentRevocation.user_id == user_id,
                ConsentRevocation.client_id == client_id,
            )
        )
        return result.scalars().first()
    except SQLAlchemyError as e:
        logger.error(
            f"Database error while fetching revocation for user {user_id} "
            f"and client {client_id}: {e}",
            exc_info=True,
        )
        raise


async def purge_expired_revocations(
    db_session: AsyncSession, now: Optional[datetime] = None
) -> int:
    """Drops tombstones that no unexpired token can predate."""
    cutoff = (now or utcnow()) - REVOCATION_RETENTION
    result = await db_session.execute(
        delete(ConsentRevocation)
        .where(ConsentRevocation.revoked_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0
