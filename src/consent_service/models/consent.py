import enum
from datetime import timedelta

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from consent_service.db import Base
from consent_service.utils import generate_prefixed_id, utcnow


class TokenValidity(str, enum.Enum):
    """How long tokens issued for a consented client stay effective."""

    ONE_HOUR = "ONE_HOUR"
    ONE_DAY = "ONE_DAY"
    ONE_MONTH = "ONE_MONTH"

    @property
    def expiration_in_milliseconds(self) -> int:
        return _EXPIRATION_MILLISECONDS[self]

    @property
    def duration(self) -> timedelta:
        return timedelta(milliseconds=self.expiration_in_milliseconds)

    @classmethod
    def longest(cls) -> "TokenValidity":
        return max(cls, key=lambda validity: validity.expiration_in_milliseconds)


_EXPIRATION_MILLISECONDS = {
    TokenValidity.ONE_HOUR: 3_600_000,
    TokenValidity.ONE_DAY: 86_400_000,
    TokenValidity.ONE_MONTH: 2_592_000_000,
}


class Consent(Base):
    __tablename__ = "consents"

    id = Column(String, primary_key=True, default=lambda: generate_prefixed_id("cons"))
    user_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_id = Column(String, nullable=False, index=True)
    context_id = Column(String, nullable=True)
    shared_attributes = Column(JSON, nullable=False, default=list)
    token_validity = Column(
        Enum(TokenValidity, name="token_validity"),
        nullable=False,
        default=TokenValidity.ONE_HOUR,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    # Tokens issued at or before this moment predate a revocation for the pair
    tokens_not_before = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="consents")
    accesses = relationship(
        "ConsentAccess",
        back_populates="consent",
        cascade="all, delete-orphan",
        order_by="ConsentAccess.id",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "client_id", name="uq_consent_user_client"),
    )

    @property
    def accessed_at(self):
        return [access.accessed_at for access in self.accesses]

    def __repr__(self):
        return (
            f"<Consent(id='{self.id}', client_id='{self.client_id}', "
            f"token_validity='{self.token_validity.value if self.token_validity else None}')>"
        )


class ConsentAccess(Base):
    """One row per audited access; rows are only ever appended."""

    __tablename__ = "consent_accesses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    consent_id = Column(
        String, ForeignKey("consents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    accessed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    consent = relationship("Consent", back_populates="accesses")

    def __repr__(self):
        return f"<ConsentAccess(consent_id='{self.consent_id}', accessed_at='{self.accessed_at}')>"


class ConsentRevocation(Base):
    """Tombstone left behind by a revoked consent."""

    __tablename__ = "consent_revocations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_id = Column(String, nullable=False)
    consent_id = Column(String, nullable=False)
    revoked_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "client_id", name="uq_revocation_user_client"),
    )

    def __repr__(self):
        return (
            f"<ConsentRevocation(client_id='{self.client_id}', "
            f"revoked_at='{self.revoked_at}')>"
        )
