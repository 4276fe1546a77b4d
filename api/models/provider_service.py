"""ProviderService ORM model — a provider's service offering."""

import uuid
from datetime import datetime
from sqlalchemy import String, Integer, Numeric, Boolean, DateTime, ForeignKey, Enum as PgEnum
from sqlalchemy.orm import Mapped, mapped_column
from db.database import Base


class ProviderService(Base):
    __tablename__ = "provider_services"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    service_type: Mapped[str] = mapped_column(
        PgEnum("walker", "hotel", "vet", name="service_type", create_type=False),
        nullable=False,
    )
    address: Mapped[str] = mapped_column(String, nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    country: Mapped[str | None] = mapped_column(String(100))
    latitude: Mapped[float | None] = mapped_column(Numeric(10, 7))
    longitude: Mapped[float | None] = mapped_column(Numeric(10, 7))

    # Walker
    hourly_rate: Mapped[float | None] = mapped_column(Numeric(10, 2))
    service_radius: Mapped[int | None] = mapped_column(Integer)
    # Hotel
    price_per_night: Mapped[float | None] = mapped_column(Numeric(10, 2))
    capacity: Mapped[int | None] = mapped_column(Integer)

    # Activated later from offering management
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
