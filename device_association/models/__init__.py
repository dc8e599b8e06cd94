"""
Modèles SQLAlchemy / SQLAlchemy models.
Importer tous les modèles ici pour que create_all les détecte.
Import all models here so create_all can detect them.
"""

from device_association.models.association import AssociationStatus, ACTIVE_STATUSES, DeviceAssociation
from device_association.models.association_type import AssociationType
from device_association.models.audit import AssociationAudit
from device_association.models.device_item import DeviceItem
from device_association.models.factory_data import DeviceFactoryData, FactoryState
from device_association.models.sim_details import SimDetails, SimTransactionStatus, SimUserAction
from device_association.models.vin_details import VinDetails

__all__ = [
    "AssociationStatus",
    "ACTIVE_STATUSES",
    "DeviceAssociation",
    "AssociationType",
    "AssociationAudit",
    "DeviceItem",
    "DeviceFactoryData",
    "FactoryState",
    "SimDetails",
    "SimTransactionStatus",
    "SimUserAction",
    "VinDetails",
]
