# src/consent_service/crud/connection_crud.py
import logging
from typing import Optional, Sequence

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from ..db import dialect_insert
from ..models.connection import Connection
from ..utils import generate_prefixed_id, utcnow

logger = logging.getLogger(__name__)


async def list_connections(db_session: AsyncSession, user_id: str) -> Sequence[Connection]:
    result = await db_session.execute(
        select(Connection)
        .filter(Connection.user_id == user_id)
        .order_by(Connection.provider_id)
    )
    return result.scalars().all()


async def get_connection(
    db_session: AsyncSession, user_id: str, provider_id: str
) -> Optional[Connection]:
    result = await db_session.execute(
        select(Connection).filter(
            Connection.user_id == user_id, Connection.provider_id == provider_id
        )
    )
    return result.scalars().first()


async def save_connection(
    db_session: AsyncSession,
    user_id: str,
    provider_id: str,
    provider_access_token: str,
    context_id: Optional[str] = None,
    provider_user_id: Optional[str] = None,
) -> Connection:
    """
    Links a provider account to the user, or refreshes the existing link.

    A user holds one connection per provider. Reconnecting replaces the
    access token, the provider account and the context but keeps the
    original connection time.
    """
    new_id = generate_prefixed_id("conn")
    insert_stmt = dialect_insert(db_session)(Connection).values(
        id=new_id,
        user_id=user_id,
        provider_id=provider_id,
        provider_user_id=provider_user_id,
        context_id=context_id,
        provider_access_token=provider_access_token,
        connected_at=utcnow(),
    )
    stmt = insert_stmt.on_conflict_do_update(
        index_elements=["user_id", "provider_id"],
        set_={
            "provider_user_id": insert_stmt.excluded.provider_user_id,
            "context_id": insert_stmt.excluded.context_id,
            "provider_access_token": insert_stmt.excluded.provider_access_token,
        },
    ).returning(Connection)
    try:
        result = await db_session.scalars(
            stmt, execution_options={"populate_existing": True}
        )
        connection = result.one()
        action = "created" if connection.id == new_id else "updated"
        logger.info(f"Connection to {provider_id} {action} for user {user_id}")
        return connection
    except SQLAlchemyError as e:
        logger.error(
            f"Database error while saving connection to {provider_id} "
            f"for user {user_id}: {e}",
            exc_info=True,
        )
        await db_session.rollback()
        raise


async def delete_connection(
    db_session: AsyncSession, user_id: str, provider_id: str
) -> bool:
    """Unlinks a provider. Returns False when the user never connected it."""
    try:
        result = await db_session.execute(
            delete(Connection)
            .where(Connection.user_id == user_id, Connection.provider_id == provider_id)
            .execution_options(synchronize_session="fetch")
        )
        deleted = (result.rowcount or 0) > 0
        if deleted:
            logger.info(f"Connection to {provider_id} deleted for user {user_id}")
        return deleted
    except SQLAlchemyError as e:
        logger.error(
            f"Database error while deleting connection to {provider_id} "
            f"for user {user_id}: {e}",
            exc_info=True,
        )
        await db_session.rollback()
        raise
