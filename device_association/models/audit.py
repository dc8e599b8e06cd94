"""Historique des associations / Association audit trail."""

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from device_association.database import Base


class AssociationAudit(Base):
    """Une ligne par mutation d'association / One row per association mutation."""
    __tablename__ = "association_audit"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    association_id: Mapped[int] = mapped_column(ForeignKey("device_association.id"), index=True, nullable=False)
    action: Mapped[str] = mapped_column(String(30), nullable=False)  # ASSOCIATE, DELEGATE, TERMINATE...
    actor: Mapped[str | None] = mapped_column(String(100))
    changes: Mapped[str | None] = mapped_column(Text)  # JSON
    created_on: Mapped[str] = mapped_column(String(32), nullable=False)  # ISO 8601

    def __repr__(self) -> str:
        return f"<AssociationAudit {self.action} association:{self.association_id}>"
