"""Routes items appareil et effacement / Device item and wipe routes."""

from fastapi import APIRouter, Depends

from device_association.api.deps import get_item_reconciler, get_user_id, get_wipe_coordinator, respond
from device_association.schemas.association import DeviceItemsRequest, WipeDevicesRequest
from device_association.services.device_items import BatchItemReconciler
from device_association.services.wipe import WipeCoordinator

router = APIRouter()


@router.put("/v1/user/devices/items")
async def save_device_items(
    data: list[DeviceItemsRequest],
    user_id: str | None = Depends(get_user_id),
    reconciler: BatchItemReconciler = Depends(get_item_reconciler),
):
    """Enregistrer des items pour plusieurs appareils / Save items for several devices."""
    return respond(await reconciler.save_device_items(user_id, data))


@router.post("/v1/user/associations/wipe")
async def wipe_devices(
    data: WipeDevicesRequest,
    user_id: str | None = Depends(get_user_id),
    coordinator: WipeCoordinator = Depends(get_wipe_coordinator),
):
    """Effacer les donnees des appareils de l'utilisateur / Wipe the user's device data."""
    return respond(await coordinator.wipe_devices(user_id, data.serial_numbers))
