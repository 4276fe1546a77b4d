"""Profile ORM model — the authenticated provider's account row."""

import uuid
from datetime import datetime
from sqlalchemy import String, BigInteger, Boolean, DateTime, Enum as PgEnum
from sqlalchemy.orm import Mapped, mapped_column
from db.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    telegram_id: Mapped[int | None] = mapped_column(BigInteger)
    role: Mapped[str] = mapped_column(
        PgEnum("owner", "pet_master", name="profile_role", create_type=False),
        default="pet_master",
    )
    business_type: Mapped[str | None] = mapped_column(
        PgEnum("individual", "business", name="business_type", create_type=False),
    )
    onboarding_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
