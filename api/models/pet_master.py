"""PetMaster ORM model — denormalized primary service of a provider.

Mirrors address, coordinates and service type of the offering chosen during
onboarding so that search can locate a provider without joining
provider_services.
"""

import uuid
from datetime import datetime
from sqlalchemy import String, Numeric, DateTime, ForeignKey, Enum as PgEnum
from sqlalchemy.orm import Mapped, mapped_column
from db.database import Base


class PetMaster(Base):
    __tablename__ = "pet_masters"

    id: Mapped[uuid.UUID] = mapped_column(ForeignKey("profiles.id"), primary_key=True)
    service_type: Mapped[str] = mapped_column(
        PgEnum("walker", "hotel", "vet", name="service_type", create_type=False),
        nullable=False,
    )
    address: Mapped[str] = mapped_column(String, nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    country: Mapped[str | None] = mapped_column(String(100))
    latitude: Mapped[float | None] = mapped_column(Numeric(10, 7))
    longitude: Mapped[float | None] = mapped_column(Numeric(10, 7))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
