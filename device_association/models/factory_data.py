"""Modele Donnees usine / Device factory data model."""

import enum

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from device_association.database import Base


class FactoryState(str, enum.Enum):
    """Etat de provisionnement / Provisioning state."""
    PROVISIONED = "PROVISIONED"
    PROVISIONED_ALIVE = "PROVISIONED_ALIVE"
    READY_TO_ACTIVATE = "READY_TO_ACTIVATE"
    ACTIVE = "ACTIVE"
    STOLEN = "STOLEN"
    FAULTY = "FAULTY"


# Etats autorisant une nouvelle association / States allowing a new association
ASSOCIABLE_STATES = (FactoryState.PROVISIONED, FactoryState.PROVISIONED_ALIVE)


class DeviceFactoryData(Base):
    """Appareil tel que livre par l'usine / Device as shipped by the factory."""
    __tablename__ = "device_factory_data"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    serial_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    imei: Mapped[str | None] = mapped_column(String(32), index=True)
    bssid: Mapped[str | None] = mapped_column(String(32))
    iccid: Mapped[str | None] = mapped_column(String(32))
    msisdn: Mapped[str | None] = mapped_column(String(32))
    imsi: Mapped[str | None] = mapped_column(String(32))
    model: Mapped[str | None] = mapped_column(String(64))
    state: Mapped[FactoryState] = mapped_column(Enum(FactoryState), default=FactoryState.PROVISIONED)
    faulty: Mapped[bool] = mapped_column(Boolean, default=False)
    stolen: Mapped[bool] = mapped_column(Boolean, default=False)

    def __repr__(self) -> str:
        return f"<DeviceFactoryData {self.serial_number} {self.state}>"
