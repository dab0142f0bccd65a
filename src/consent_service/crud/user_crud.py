# src/consent_service/crud/user_crud.py
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from ..exceptions import DuplicateNameError
from ..models.identity import Context, IdentityAttribute
from ..models.user import DEFAULT_ROLES, User
from ..security import hash_password
from ..utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_CONTEXTS = [
    ("Personal", "Attributes for personal use"),
    ("Professional", "Attributes shared with work-related services"),
    ("Academic", "Attributes shared with schools and universities"),
]
USERNAME_ATTRIBUTE = "Username"


async def get_user_by_id(db_session: AsyncSession, user_id: str) -> Optional[User]:
    """Retrieves a user from the database by id."""
    try:
        result = await db_session.execute(select(User).filter(User.id == user_id))
        return result.scalars().first()
    except SQLAlchemyError as e:
        logger.error(
            f"Database error while fetching user {user_id}: {e}", exc_info=True
        )
        raise


async def get_user_by_username(
    db_session: AsyncSession, username: str
) -> Optional[User]:
    """Retrieves a user from the database by username."""
    try:
        result = await db_session.execute(
            select(User).filter(User.username == username)
        )
        return result.scalars().first()
    except SQLAlchemyError as e:
        logger.error(
            f"Database error while fetching user {username}: {e}", exc_info=True
        )
        raise


async def create_user(
    db_session: AsyncSession,
    username: str,
    password: str,
    email: Optional[str] = None,
    roles: Optional[List[str]] = None,
) -> User:
    """
    Creates a user with a hashed password.

    Raises DuplicateNameError when the username is taken. The caller commits.
    """
    if await get_user_by_username(db_session, username) is not None:
        raise DuplicateNameError("user", username)

    new_user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        roles=list(roles or DEFAULT_ROLES),
        created_at=utcnow(),
    )
    db_session.add(new_user)
    try:
        await db_session.flush()
    except IntegrityError:
        # Lost a race with a concurrent registration
        await db_session.rollback()
        raise DuplicateNameError("user", username)
    except SQLAlchemyError as e:
        logger.error(
            f"Database error during user creation for {username}: {e}", exc_info=True
        )
        await db_session.rollback()
        raise

    logger.info(f"User created successfully: {new_user.id}")
    return new_user


async def provision_default_identity(db_session: AsyncSession, user: User) -> User:
    """
    Gives a new user the default contexts and a visible username attribute
    that belongs to all of them.
    """
    contexts = [
        Context(user_id=user.id, name=name, description=description)
        for name, description in DEFAULT_CONTEXTS
    ]
    db_session.add_all(contexts)
    await db_session.flush()

    db_session.add(
        IdentityAttribute(
            user_id=user.id,
            name=USERNAME_ATTRIBUTE,
            value=user.username,
            visible=True,
            context_ids=[context.id for context in contexts],
        )
    )
    await db_session.flush()
    await db_session.refresh(user)
    logger.info(f"Default contexts provisioned for user {user.id}")
    return user
