from __future__ import annotations
import uuid
from datetime import datetime, timezone
from enum import Enum
from sqlalchemy.orm import declarative_base, Mapped, mapped_column
from sqlalchemy import Enum as SqlEnum, Index, String, Text
from sqlalchemy.types import BigInteger, DateTime

Base = declarative_base()

def utcnow():
    return datetime.now(timezone.utc)

class RegStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class Registration(Base):
    __tablename__ = "registrations"
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    event_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[RegStatus] = mapped_column(SqlEnum(RegStatus), default=RegStatus.PENDING, nullable=False)
    # set on approval
    user_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    issued_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)  # ms since epoch
    qr_code: Mapped[str | None] = mapped_column(Text, nullable=True)  # PNG data URI
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_registrations_event_status", "event_id", "status"),
    )

class Consumption(Base):
    """One row per consumed token; the primary key is what makes a token single-use."""
    __tablename__ = "consumptions"
    registration_id: Mapped[str] = mapped_column(Text, primary_key=True)
    consumed_at: Mapped[int] = mapped_column(BigInteger, nullable=False)  # ms since epoch

class ScanAttempt(Base):
    __tablename__ = "scan_attempts"
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    outcome: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(String(255), nullable=False)
    registration_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    user_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    station: Mapped[str | None] = mapped_column(String(64), nullable=True)
    scanned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
