"""SQLAlchemy ORM models for the registry store.

Contains: RegistryState, IdentityRecord, IdentityUpdateRecord, AuditLog.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    LargeBinary,
    String,
)
from sqlalchemy.orm import relationship

from idreg.core.db import Base


def _utcnow() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# RegistryState  (single row: id counter + authority gate)
# ---------------------------------------------------------------------------

class RegistryState(Base):
    __tablename__ = "registry_state"

    id = Column(Integer, primary_key=True, autoincrement=False)  # always 1
    next_id = Column(BigInteger, nullable=False, default=0)
    authority = Column(String(255), nullable=True)
    version = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}


# ---------------------------------------------------------------------------
# IdentityRecord
# ---------------------------------------------------------------------------

class IdentityRecord(Base):
    __tablename__ = "identities"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    identity_hash = Column(LargeBinary(32), nullable=False)
    public_key = Column(LargeBinary(33), nullable=False)
    name = Column(String(100), nullable=False)
    biometric_hash = Column(LargeBinary(32), nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    owner = Column(String(255), nullable=False)
    status = Column(Boolean, default=True, nullable=False)
    recovery_contacts = Column(JSON, nullable=False)
    recovery_threshold = Column(Integer, nullable=False)
    recovery_state = Column(String(20), nullable=False, default="active")  # active, recovery_pending
    approvals = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_identity_hash", "identity_hash", unique=True),
    )
    __mapper_args__ = {"version_id_col": version}

    # Relationships
    last_update = relationship(
        "IdentityUpdateRecord", back_populates="identity", uselist=False, lazy="select"
    )


# ---------------------------------------------------------------------------
# IdentityUpdateRecord  (latest update only, overwritten on every update)
# ---------------------------------------------------------------------------

class IdentityUpdateRecord(Base):
    __tablename__ = "identity_updates"

    identity_id = Column(
        BigInteger,
        ForeignKey("identities.id", ondelete="CASCADE"),
        primary_key=True,
    )
    update_name = Column(String(100), nullable=False)
    update_timestamp = Column(BigInteger, nullable=False)
    updater = Column(String(255), nullable=False)

    # Relationships
    identity = relationship("IdentityRecord", back_populates="last_update", lazy="select")


# ---------------------------------------------------------------------------
# AuditLog  (domain events)
# ---------------------------------------------------------------------------

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor = Column(String(255), nullable=False)
    action = Column(String(255), nullable=False)
    resource_type = Column(String(255), nullable=False)
    resource_id = Column(String(255), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_audit_resource", "resource_type", "resource_id"),
    )
