"""Modele Items appareil / Device item model."""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from device_association.database import Base


class DeviceItem(Base):
    """Attribut libre d'un appareil (nom, couleur...) / Free-form device attribute."""
    __tablename__ = "device_items"
    __table_args__ = (UniqueConstraint("device_id", "name", name="uq_device_item_name"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    device_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    value: Mapped[str | None] = mapped_column(String(255))
    modified_on: Mapped[str | None] = mapped_column(String(32))  # ISO 8601
