"""
Acces aux donnees d'association / Association data access.
Toutes les requetes SQL du moteur passent par ici.
"""

import json

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from device_association.models.association import ACTIVE_STATUSES, AssociationStatus, DeviceAssociation
from device_association.models.association_type import AssociationType
from device_association.models.audit import AssociationAudit
from device_association.models.device_item import DeviceItem
from device_association.models.factory_data import DeviceFactoryData
from device_association.models.sim_details import SimDetails, SimUserAction
from device_association.models.vin_details import VinDetails
from device_association.utils.clock import now_iso


class AssociationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Associations ───

    async def get(self, association_id: int) -> DeviceAssociation | None:
        return await self.db.get(DeviceAssociation, association_id)

    async def add(self, association: DeviceAssociation) -> DeviceAssociation:
        self.db.add(association)
        await self.db.flush()
        return association

    async def find_active(
        self,
        *,
        user_id: str | None = None,
        device_id: str | None = None,
        imei: str | None = None,
        serial_number: str | None = None,
        association_id: int | None = None,
        association_type: str | None = None,
        statuses=ACTIVE_STATUSES,
    ) -> list[DeviceAssociation]:
        """Associations non terminees filtrees / Filtered non-terminated associations.

        Seuls les criteres renseignes s'appliquent / Only supplied criteria apply.
        """
        query = select(DeviceAssociation).where(DeviceAssociation.association_status.in_(statuses))
        if user_id:
            query = query.where(DeviceAssociation.user_id == user_id)
        if device_id:
            query = query.where(DeviceAssociation.device_id == device_id)
        if imei:
            query = query.where(DeviceAssociation.imei == imei)
        if serial_number:
            query = query.where(DeviceAssociation.serial_number == serial_number)
        if association_id:
            query = query.where(DeviceAssociation.id == association_id)
        if association_type:
            query = query.where(DeviceAssociation.association_type == association_type)
        result = await self.db.execute(query.order_by(DeviceAssociation.id))
        return list(result.scalars().all())

    async def find_owner(
        self,
        owner_type: str,
        *,
        user_id: str | None = None,
        serial_number: str | None = None,
        imei: str | None = None,
        bssid: str | None = None,
        iccid: str | None = None,
        msisdn: str | None = None,
        imsi: str | None = None,
    ) -> DeviceAssociation | None:
        """Association proprietaire d'un appareil / Owner association of a device."""
        query = select(DeviceAssociation).where(
            DeviceAssociation.association_status.in_(ACTIVE_STATUSES),
            DeviceAssociation.association_type == owner_type,
        )
        for column, value in (
            (DeviceAssociation.user_id, user_id),
            (DeviceAssociation.serial_number, serial_number),
            (DeviceAssociation.imei, imei),
            (DeviceAssociation.bssid, bssid),
            (DeviceAssociation.iccid, iccid),
            (DeviceAssociation.msisdn, msisdn),
            (DeviceAssociation.imsi, imsi),
        ):
            if value:
                query = query.where(column == value)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def find_for_user(self, user_id: str) -> list[DeviceAssociation]:
        """Toutes les associations d'un utilisateur / All associations of a user."""
        result = await self.db.execute(
            select(DeviceAssociation)
            .where(DeviceAssociation.user_id == user_id)
            .order_by(DeviceAssociation.id)
        )
        return list(result.scalars().all())

    async def association_id_for_user_imei(self, user_id: str, imei: str) -> int | None:
        result = await self.db.execute(
            select(DeviceAssociation.id).where(
                DeviceAssociation.user_id == user_id,
                DeviceAssociation.imei == imei,
                DeviceAssociation.association_status.in_(ACTIVE_STATUSES),
            ).order_by(DeviceAssociation.id.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def association_id_for_device(self, device_id: str) -> int | None:
        """Association active par identifiant plateforme ou numero de serie / by platform id or serial."""
        result = await self.db.execute(
            select(DeviceAssociation.id).where(
                or_(DeviceAssociation.device_id == device_id, DeviceAssociation.serial_number == device_id),
                DeviceAssociation.association_status.in_(ACTIVE_STATUSES),
            ).order_by(DeviceAssociation.owner_slot.desc(), DeviceAssociation.id).limit(1)
        )
        return result.scalar_one_or_none()

    async def was_terminated(self, factory_data_id: int) -> bool:
        count = await self.db.scalar(
            select(func.count(DeviceAssociation.id)).where(
                DeviceAssociation.factory_data_id == factory_data_id,
                DeviceAssociation.association_status == AssociationStatus.DISASSOCIATED,
            )
        )
        return (count or 0) > 0

    async def count_by_type(self, association_type: str) -> int:
        count = await self.db.scalar(
            select(func.count(DeviceAssociation.id)).where(DeviceAssociation.association_type == association_type)
        )
        return count or 0

    async def anonymise(self, association_ids: list[int], dummy_user: str) -> int:
        """Remplacer l'utilisateur des associations terminees / Replace user of terminated associations."""
        if not association_ids:
            return 0
        result = await self.db.execute(
            update(DeviceAssociation)
            .where(
                DeviceAssociation.id.in_(association_ids),
                DeviceAssociation.association_status == AssociationStatus.DISASSOCIATED,
            )
            .values(user_id=dummy_user, modified_on=now_iso())
        )
        return result.rowcount or 0

    # ─── Type registry ───

    async def association_type_exists(self, name: str) -> bool:
        count = await self.db.scalar(select(func.count(AssociationType.id)).where(AssociationType.name == name))
        return (count or 0) > 0

    # ─── Factory data ───

    async def find_factory_data(
        self, serial_number: str | None = None, imei: str | None = None, bssid: str | None = None,
    ) -> DeviceFactoryData | None:
        query = select(DeviceFactoryData)
        if serial_number:
            query = query.where(DeviceFactoryData.serial_number == serial_number)
        if imei:
            query = query.where(DeviceFactoryData.imei == imei)
        if bssid:
            query = query.where(DeviceFactoryData.bssid == bssid)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def device_model(self, imei: str) -> str | None:
        return await self.db.scalar(select(DeviceFactoryData.model).where(DeviceFactoryData.imei == imei).limit(1))

    async def imsi_for(self, imei: str) -> str | None:
        return await self.db.scalar(select(DeviceFactoryData.imsi).where(DeviceFactoryData.imei == imei).limit(1))

    # ─── VIN ───

    async def vin_for_association(self, association_id: int) -> VinDetails | None:
        result = await self.db.execute(select(VinDetails).where(VinDetails.reference_id == association_id))
        return result.scalar_one_or_none()

    async def vin_in_use(self, vin: str) -> bool:
        """VIN porte par une association non terminee / VIN held by a non-terminated association."""
        count = await self.db.scalar(
            select(func.count(VinDetails.id))
            .join(DeviceAssociation, DeviceAssociation.id == VinDetails.reference_id)
            .where(VinDetails.vin == vin, DeviceAssociation.association_status.in_(ACTIVE_STATUSES))
        )
        return (count or 0) > 0

    async def save_vin(self, vin: str, region: str | None, association_id: int) -> VinDetails:
        row = VinDetails(vin=vin, region=region, reference_id=association_id)
        self.db.add(row)
        await self.db.flush()
        return row

    async def region_for_association(self, association_id: int) -> str | None:
        return await self.db.scalar(select(VinDetails.region).where(VinDetails.reference_id == association_id))

    # ─── SIM ───

    async def save_sim_transaction(self, sim: SimDetails) -> SimDetails:
        self.db.add(sim)
        await self.db.flush()
        return sim

    async def latest_sim_transaction(self, association_id: int, action: SimUserAction) -> SimDetails | None:
        result = await self.db.execute(
            select(SimDetails)
            .where(SimDetails.reference_id == association_id, SimDetails.user_action == action)
            .order_by(SimDetails.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def sim_transaction(self, transaction_id: str) -> SimDetails | None:
        result = await self.db.execute(select(SimDetails).where(SimDetails.transaction_id == transaction_id))
        return result.scalar_one_or_none()

    # ─── Device items ───

    async def upsert_item(self, device_id: str, name: str, value: str | None) -> DeviceItem:
        result = await self.db.execute(
            select(DeviceItem).where(DeviceItem.device_id == device_id, DeviceItem.name == name)
        )
        item = result.scalar_one_or_none()
        if item is None:
            item = DeviceItem(device_id=device_id, name=name)
            self.db.add(item)
        item.value = value
        item.modified_on = now_iso()
        await self.db.flush()
        return item

    async def delete_items(self, device_id: str) -> int:
        result = await self.db.execute(delete(DeviceItem).where(DeviceItem.device_id == device_id))
        return result.rowcount or 0

    # ─── Audit ───

    def audit(self, association_id: int, action: str, actor: str | None, **changes) -> None:
        self.db.add(AssociationAudit(
            association_id=association_id,
            action=action,
            actor=actor,
            changes=json.dumps(changes, default=str) if changes else None,
            created_on=now_iso(),
        ))
