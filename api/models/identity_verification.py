"""IdentityVerification ORM model — KYC submissions reviewed outside onboarding."""

import uuid
from datetime import date, datetime
from sqlalchemy import String, Date, DateTime, ForeignKey, Text, Enum as PgEnum
from sqlalchemy.orm import Mapped, mapped_column
from db.database import Base


class IdentityVerification(Base):
    __tablename__ = "identity_verifications"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("profiles.id"), unique=True, nullable=False)
    document_type: Mapped[str] = mapped_column(
        PgEnum("passport", "national_id", "driver_license", name="document_type", create_type=False),
        nullable=False,
    )
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    document_front_url: Mapped[str] = mapped_column(Text, nullable=False)
    document_back_url: Mapped[str | None] = mapped_column(Text)
    selfie_url: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    nationality: Mapped[str] = mapped_column(String(100), nullable=False)
    expiry_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(
        PgEnum("pending", "approved", "rejected", name="verification_status", create_type=False),
        default="pending",
    )
    admin_note: Mapped[str | None] = mapped_column(Text)
    reviewed_by: Mapped[str | None] = mapped_column(String(100))
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
