from sqlalchemy import JSON, Boolean, Column, ForeignKey, String
from sqlalchemy.orm import relationship

from consent_service.db import Base
from consent_service.utils import generate_prefixed_id


class Context(Base):
    __tablename__ = "contexts"

    id = Column(String, primary_key=True, default=lambda: generate_prefixed_id("ctx"))
    user_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)

    user = relationship("User", back_populates="contexts")

    def __repr__(self):
        return f"<Context(id='{self.id}', name='{self.name}')>"


class IdentityAttribute(Base):
    __tablename__ = "identity_attributes"

    id = Column(String, primary_key=True, default=lambda: generate_prefixed_id("attr"))
    user_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String, nullable=False)
    value = Column(String, nullable=True)
    # Only visible attributes are ever offered for sharing
    visible = Column(Boolean, default=False, nullable=False)
    # Lists are replaced, never mutated in place, so the ORM sees the change
    context_ids = Column(JSON, nullable=False, default=list)

    user = relationship("User", back_populates="attributes")

    def __repr__(self):
        return f"<IdentityAttribute(id='{self.id}', name='{self.name}')>"
