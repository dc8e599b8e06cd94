"""Modele Transactions SIM / SIM transaction model."""

import enum

from sqlalchemy import Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from device_association.database import Base


class SimTransactionStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class SimUserAction(str, enum.Enum):
    ACTIVATE = "ACTIVATE"
    TERMINATE = "TERMINATE"


class SimDetails(Base):
    """Changement d'etat SIM demande / Requested SIM state change."""
    __tablename__ = "sim_details"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    transaction_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    reference_id: Mapped[int] = mapped_column(ForeignKey("device_association.id"), index=True, nullable=False)
    tran_status: Mapped[SimTransactionStatus] = mapped_column(
        Enum(SimTransactionStatus, native_enum=False, length=20), nullable=False,
    )
    user_action: Mapped[SimUserAction] = mapped_column(
        Enum(SimUserAction, native_enum=False, length=20), nullable=False,
    )
    created_on: Mapped[str] = mapped_column(String(32), nullable=False)  # ISO 8601
    modified_on: Mapped[str | None] = mapped_column(String(32))
