"""Routes VIN et SIM / VIN and SIM routes."""

from fastapi import APIRouter, Depends

from device_association.api.deps import get_association_service, get_user_id, get_vin_coordinator, respond
from device_association.schemas.association import SimSuspendRequest, SimTransactionUpdate, VinAssociationRequest
from device_association.services.associations import AssociationService
from device_association.services.vin_association import VinAssociationCoordinator

router = APIRouter()


@router.post("/v1/user/vin")
async def associate_vin(
    data: VinAssociationRequest,
    user_id: str | None = Depends(get_user_id),
    coordinator: VinAssociationCoordinator = Depends(get_vin_coordinator),
):
    """Rattacher un VIN a l'appareil / Attach a VIN to the device."""
    return respond(await coordinator.associate_vin(user_id, data))


@router.put("/v1/devices/{device_id}/vin/{vin}")
async def replace_vin(
    device_id: str,
    vin: str,
    service: AssociationService = Depends(get_association_service),
):
    return respond(await service.replace_vin(device_id, vin))


@router.post("/v1/user/sim/suspend")
async def suspend_sim(
    data: SimSuspendRequest,
    user_id: str | None = Depends(get_user_id),
    coordinator: VinAssociationCoordinator = Depends(get_vin_coordinator),
):
    return respond(await coordinator.sim_suspend(user_id, data))


@router.post("/v1/sim/transactions/{transaction_id}")
async def update_sim_transaction(
    transaction_id: str,
    data: SimTransactionUpdate,
    coordinator: VinAssociationCoordinator = Depends(get_vin_coordinator),
):
    """Retour du gestionnaire SIM / SIM manager callback."""
    return respond(await coordinator.update_sim_transaction(transaction_id, data.status))
