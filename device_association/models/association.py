"""Modele Association appareil-utilisateur / Device-user association model."""

import enum

from sqlalchemy import BigInteger, Boolean, Enum, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from device_association.database import Base


class AssociationStatus(str, enum.Enum):
    """Statut de l'association / Association status."""
    ASSOCIATION_INITIATED = "ASSOCIATION_INITIATED"
    ASSOCIATED = "ASSOCIATED"
    SUSPENDED = "SUSPENDED"
    DISASSOCIATED = "DISASSOCIATED"


# Statuts non terminaux / Non-terminal statuses
ACTIVE_STATUSES = (
    AssociationStatus.ASSOCIATED,
    AssociationStatus.ASSOCIATION_INITIATED,
    AssociationStatus.SUSPENDED,
)


class DeviceAssociation(Base):
    """Lien appareil-utilisateur / Device-user link.

    Une seule association proprietaire non terminee par numero de serie ;
    les delegations (owner_slot=False) s'y ajoutent.
    One non-terminated owner association per serial number; delegations
    (owner_slot=False) stack on top of it.
    """
    __tablename__ = "device_association"
    __table_args__ = (
        Index(
            "uq_active_owner_per_device",
            "serial_number",
            unique=True,
            sqlite_where=text("owner_slot = 1 AND association_status != 'DISASSOCIATED'"),
            postgresql_where=text("owner_slot AND association_status != 'DISASSOCIATED'"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    serial_number: Mapped[str | None] = mapped_column(String(64), index=True)
    imei: Mapped[str | None] = mapped_column(String(32), index=True)
    bssid: Mapped[str | None] = mapped_column(String(32))
    device_id: Mapped[str | None] = mapped_column(String(64), index=True)  # identifiant plateforme
    iccid: Mapped[str | None] = mapped_column(String(32))
    msisdn: Mapped[str | None] = mapped_column(String(32))
    imsi: Mapped[str | None] = mapped_column(String(32))
    factory_data_id: Mapped[int | None] = mapped_column(ForeignKey("device_factory_data.id"))
    user_id: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    association_status: Mapped[AssociationStatus] = mapped_column(
        Enum(AssociationStatus, native_enum=False, length=32), nullable=False,
    )
    association_type: Mapped[str | None] = mapped_column(String(50))
    owner_slot: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    start_timestamp: Mapped[int] = mapped_column(BigInteger, default=0)  # epoch ms, 0 = ouvert
    end_timestamp: Mapped[int] = mapped_column(BigInteger, default=0)  # epoch ms, 0 = ouvert
    associated_by: Mapped[str | None] = mapped_column(String(100))
    associated_on: Mapped[str | None] = mapped_column(String(32))  # ISO 8601
    disassociated_by: Mapped[str | None] = mapped_column(String(100))
    disassociated_on: Mapped[str | None] = mapped_column(String(32))  # ISO 8601
    modified_by: Mapped[str | None] = mapped_column(String(100))
    modified_on: Mapped[str | None] = mapped_column(String(32))  # ISO 8601

    @property
    def is_active(self) -> bool:
        return self.association_status in ACTIVE_STATUSES

    def __repr__(self) -> str:
        return f"<DeviceAssociation {self.id} {self.serial_number} {self.association_status}>"
