from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from consent_service.db import Base
from consent_service.utils import generate_prefixed_id, utcnow


class Connection(Base):
    """An external data provider account linked to one of the user's contexts."""

    __tablename__ = "connections"

    id = Column(String, primary_key=True, default=lambda: generate_prefixed_id("conn"))
    user_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider_id = Column(String, nullable=False)
    provider_user_id = Column(String, nullable=True)
    context_id = Column(String, nullable=True)
    provider_access_token = Column(String, nullable=False)
    connected_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    user = relationship("User", back_populates="connections")

    __table_args__ = (
        UniqueConstraint("user_id", "provider_id", name="uq_connection_user_provider"),
    )

    def __repr__(self):
        return f"<Connection(id='{self.id}', provider_id='{self.provider_id}')>"
