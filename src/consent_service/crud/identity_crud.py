# src/consent_service/crud/identity_crud.py
import logging
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from ..exceptions import DuplicateNameError, UnshareableAttributeError
from ..models.connection import Connection
from ..models.consent import Consent
from ..models.identity import Context, IdentityAttribute

logger = logging.getLogger(__name__)


# --- Contexts ---


async def list_contexts(db_session: AsyncSession, user_id: str) -> Sequence[Context]:
    result = await db_session.execute(
        select(Context).filter(Context.user_id == user_id).order_by(Context.name)
    )
    return result.scalars().all()


async def get_context(
    db_session: AsyncSession, user_id: str, context_id: str
) -> Optional[Context]:
    result = await db_session.execute(
        select(Context).filter(Context.id == context_id, Context.user_id == user_id)
    )
    return result.scalars().first()


async def create_context(
    db_session: AsyncSession,
    user_id: str,
    name: str,
    description: Optional[str] = None,
) -> Context:
    context = Context(user_id=user_id, name=name, description=description)
    db_session.add(context)
    await db_session.flush()
    logger.info(f"Context {context.id} created for user {user_id}")
    return context


async def update_context(
    db_session: AsyncSession,
    context: Context,
    name: str,
    description: Optional[str] = None,
) -> Context:
    context.name = name
    context.description = description
    await db_session.flush()
    return context


async def delete_context(db_session: AsyncSession, user_id: str, context_id: str) -> bool:
    """
    Deletes a context and drops its id from every attribute that listed it.
    Connections feeding the context are kept but no longer attached to one.
    """
    context = await get_context(db_session, user_id, context_id)
    if context is None:
        return False

    for attribute in await list_attributes(db_session, user_id):
        if context_id in (attribute.context_ids or []):
            attribute.context_ids = [cid for cid in attribute.context_ids if cid != context_id]

    await db_session.execute(
        update(Connection)
        .where(Connection.user_id == user_id, Connection.context_id == context_id)
        .values(context_id=None)
    )

    await db_session.delete(context)
    await db_session.flush()
    logger.info(f"Context {context_id} deleted for user {user_id}")
    return True


# --- Attributes ---


async def list_attributes(
    db_session: AsyncSession, user_id: str, visible: Optional[bool] = None
) -> Sequence[IdentityAttribute]:
    stmt = select(IdentityAttribute).filter(IdentityAttribute.user_id == user_id)
    if visible is not None:
        stmt = stmt.filter(IdentityAttribute.visible == visible)
    result = await db_session.execute(stmt.order_by(IdentityAttribute.name))
    return result.scalars().all()


async def get_attribute(
    db_session: AsyncSession, user_id: str, attribute_id: str
) -> Optional[IdentityAttribute]:
    result = await db_session.execute(
        select(IdentityAttribute).filter(
            IdentityAttribute.id == attribute_id, IdentityAttribute.user_id == user_id
        )
    )
    return result.scalars().first()


async def _ensure_unique_name(
    db_session: AsyncSession,
    user_id: str,
    name: str,
    exclude_id: Optional[str] = None,
) -> None:
    # Names are compared case-insensitively within one user
    stmt = select(IdentityAttribute.id).filter(
        IdentityAttribute.user_id == user_id,
        func.lower(IdentityAttribute.name) == name.lower(),
    )
    if exclude_id:
        stmt = stmt.filter(IdentityAttribute.id != exclude_id)
    result = await db_session.execute(stmt)
    if result.first() is not None:
        raise DuplicateNameError("attribute", name)


async def _known_context_ids(
    db_session: AsyncSession, user_id: str, context_ids: Iterable[str]
) -> List[str]:
    owned = {context.id for context in await list_contexts(db_session, user_id)}
    return [cid for cid in dict.fromkeys(context_ids) if cid in owned]


async def create_attribute(
    db_session: AsyncSession,
    user_id: str,
    name: str,
    value: Optional[str] = None,
    visible: bool = False,
    context_ids: Iterable[str] = (),
) -> IdentityAttribute:
    await _ensure_unique_name(db_session, user_id, name)
    attribute = IdentityAttribute(
        user_id=user_id,
        name=name,
        value=value,
        visible=visible,
        context_ids=await _known_context_ids(db_session, user_id, context_ids),
    )
    db_session.add(attribute)
    await db_session.flush()
    logger.info(f"Attribute {attribute.id} created for user {user_id}")
    return attribute


async def update_attribute(
    db_session: AsyncSession,
    attribute: IdentityAttribute,
    name: str,
    value: Optional[str] = None,
    visible: bool = False,
    context_ids: Iterable[str] = (),
) -> IdentityAttribute:
    await _ensure_unique_name(db_session, attribute.user_id, name, exclude_id=attribute.id)
    attribute.name = name
    attribute.value = value
    attribute.visible = visible
    attribute.context_ids = await _known_context_ids(
        db_session, attribute.user_id, context_ids
    )
    await db_session.flush()
    return attribute


async def delete_attribute(
    db_session: AsyncSession, user_id: str, attribute_id: str
) -> bool:
    """Deletes an attribute; consents stop sharing it."""
    attribute = await get_attribute(db_session, user_id, attribute_id)
    if attribute is None:
        return False

    result = await db_session.execute(select(Consent).filter(Consent.user_id == user_id))
    for consent in result.scalars().all():
        if attribute_id in (consent.shared_attributes or []):
            consent.shared_attributes = [
                shared for shared in consent.shared_attributes if shared != attribute_id
            ]

    await db_session.delete(attribute)
    await db_session.flush()
    logger.info(f"Attribute {attribute_id} deleted for user {user_id}")
    return True


async def validate_shareable_attributes(
    db_session: AsyncSession, user_id: str, attribute_ids: Iterable[str]
) -> List[str]:
    """
    Returns the ids unchanged if every one names a visible attribute of the
    user; raises UnshareableAttributeError otherwise.
    """
    requested = list(attribute_ids)
    visible = {attribute.id for attribute in await list_attributes(db_session, user_id, visible=True)}
    rejected = set(requested) - visible
    if rejected:
        raise UnshareableAttributeError(rejected)
    return requested


async def get_consented_attributes(
    db_session: AsyncSession, consent: Consent
) -> List[IdentityAttribute]:
    """The user's attributes currently shared under a consent, visible ones only."""
    shared = set(consent.shared_attributes or [])
    if not shared:
        return []
    attributes = await list_attributes(db_session, consent.user_id, visible=True)
    return [attribute for attribute in attributes if attribute.id in shared]
