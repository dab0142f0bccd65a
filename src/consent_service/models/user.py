import uuid

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.orm import relationship

from consent_service.db import Base
from consent_service.utils import utcnow

DEFAULT_ROLES = ["ROLE_USER"]


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    roles = Column(JSON, nullable=False, default=lambda: list(DEFAULT_ROLES))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Contexts, attributes and consents live and die with their user
    contexts = relationship(
        "Context",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    attributes = relationship(
        "IdentityAttribute",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    consents = relationship(
        "Consent",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    connections = relationship(
        "Connection",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="Connection.provider_id",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<User(id='{self.id}', username='{self.username}')>"
