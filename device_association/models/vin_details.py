"""Modele Details VIN / VIN details model."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from device_association.database import Base


class VinDetails(Base):
    __tablename__ = "vin_details"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    vin: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    region: Mapped[str | None] = mapped_column(String(10))
    reference_id: Mapped[int] = mapped_column(ForeignKey("device_association.id"), unique=True, nullable=False)
