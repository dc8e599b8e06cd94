"""
Enregistrement par lot des items appareil / Batch device item save.
Chaque appareil reussit ou echoue independamment, sans rollback croise.
"""

import logging

from device_association.config import Settings, settings as default_settings
from device_association.repository import AssociationRepository
from device_association.results import ApiMessage, AssociationError, Err, ErrorKind, Ok, Result, operation
from device_association.schemas.association import DeviceItemsRequest, DeviceItemStatus
from device_association.services.identity_gate import validate_user_id

log = logging.getLogger(__name__)

STATUS_SUCCESS = "SUCCESS"
STATUS_FAILURE = "FAILURE"


def classify_batch(statuses: list[DeviceItemStatus], exception_occurred: bool) -> Result:
    """Succes total, partiel ou echec / Full success, partial success or failure.

    Seul le succes partiel porte la liste des statuts.
    Only partial success carries the status list.
    """
    total = len(statuses)
    successes = sum(1 for s in statuses if s.status == STATUS_SUCCESS)
    if total and successes == total:
        return Ok(ApiMessage.DEVICE_INFO_SAVE_SUCCESS)
    if successes:
        return Ok(ApiMessage.DEVICE_INFO_SAVE_PARTIAL_SUCCESS, [s.model_dump() for s in statuses])
    if exception_occurred:
        return Err(ErrorKind.TECHNICAL, ApiMessage.DEVICE_INFO_SAVE_FAILED)
    return Err(ErrorKind.VALIDATION, ApiMessage.DEVICE_INFO_SAVE_VALIDATION_FAILED)


class BatchItemReconciler:
    def __init__(self, repo: AssociationRepository, settings: Settings | None = None):
        self.repo = repo
        self.settings = settings or default_settings

    @operation("save_device_items", failure=ApiMessage.DEVICE_INFO_SAVE_FAILED)
    async def save_device_items(self, user_id: str | None, batch: list[DeviceItemsRequest]):
        user_id = validate_user_id(user_id)
        if len(batch) > self.settings.DEVICE_INFO_REQUEST_SIZE:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.DEVICE_INFO_SAVE_SIZE_VALIDATION_FAILED)

        statuses: list[DeviceItemStatus] = []
        exception_occurred = False
        for entry in batch:
            try:
                await self.save_one(user_id, entry)
                statuses.append(DeviceItemStatus(device_id=entry.device_id, status=STATUS_SUCCESS))
            except AssociationError as e:
                log.info("Items rejected for device %s: %s", entry.device_id, e.api_message.code)
                statuses.append(DeviceItemStatus(device_id=entry.device_id, status=STATUS_FAILURE))
            except Exception:
                log.exception("Items save failed for device %s", entry.device_id)
                statuses.append(DeviceItemStatus(device_id=entry.device_id, status=STATUS_FAILURE))
                exception_occurred = True
        return classify_batch(statuses, exception_occurred)

    async def save_one(self, user_id: str, entry: DeviceItemsRequest) -> None:
        associations = await self.repo.find_active(user_id=user_id, device_id=entry.device_id)
        if not associations:
            associations = await self.repo.find_active(user_id=user_id, serial_number=entry.device_id)
        if not associations:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.DEVICE_INFO_SAVE_VALIDATION_FAILED)

        supported = set(self.settings.SUPPORTED_DEVICE_ITEMS)
        unsupported = [item.name for item in entry.items if item.name not in supported]
        if unsupported or not entry.items:
            raise AssociationError(
                ErrorKind.VALIDATION, ApiMessage.DEVICE_INFO_SAVE_VALIDATION_FAILED, f"unsupported items {unsupported}",
            )
        for item in entry.items:
            await self.repo.upsert_item(entry.device_id, item.name, item.value)
