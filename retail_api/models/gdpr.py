"""
GDPR consent ledger and security audit log
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid

from retail_api.models.base import UTCDateTime, enum_type, utcnow


class ConsentType(str, Enum):
    """Consent categories a user can grant or withdraw"""
    MARKETING = "marketing"
    ANALYTICS = "analytics"
    COOKIES = "cookies"
    DATA_PROCESSING = "data_processing"


class ConsentRecord(SQLModel, table=True):
    """Append-only consent ledger; the latest row per type wins"""

    __tablename__ = "consent_records"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    consent_type: ConsentType = Field(sa_type=enum_type(ConsentType), index=True)
    granted: bool
    ip_address: Optional[str] = Field(default=None, max_length=64)
    user_agent: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)


class SecurityAuditLog(SQLModel, table=True):
    """Audit trail for privacy-sensitive actions"""

    __tablename__ = "security_audit_log"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    # Not a foreign key: rows must outlive deleted users
    user_id: Optional[uuid.UUID] = Field(default=None, index=True)
    action: str = Field(max_length=100, index=True)
    details: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    ip_address: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
