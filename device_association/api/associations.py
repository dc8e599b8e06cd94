"""Routes association et delegation / Association and delegation routes."""

from fastapi import APIRouter, Depends, Request

from device_association.api.deps import (
    get_admin_id,
    get_association_service,
    get_user_id,
    respond,
)
from device_association.config import settings
from device_association.models.association import AssociationStatus
from device_association.rate_limit import limiter
from device_association.schemas.association import (
    AssociateDeviceRequest,
    AssociationUpdateRequest,
    DelegateAssociationRequest,
)
from device_association.services.associations import AssociationService

router = APIRouter()


@router.post("/v3/user/devices/associate")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def associate_device(
    request: Request,
    data: AssociateDeviceRequest,
    user_id: str | None = Depends(get_user_id),
    service: AssociationService = Depends(get_association_service),
):
    """Associer un appareil a l'utilisateur / Associate a device with the user."""
    return respond(await service.associate(user_id, data))


@router.get("/v3/user/associations")
async def find_associations(
    user_id: str | None = Depends(get_user_id),
    service: AssociationService = Depends(get_association_service),
):
    return respond(await service.find_associations(user_id))


@router.post("/v1/associations/delegation")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def delegate_association(
    request: Request,
    data: DelegateAssociationRequest,
    user_id: str | None = Depends(get_user_id),
    service: AssociationService = Depends(get_association_service),
):
    """Le proprietaire delegue son appareil / Owner delegates the device."""
    return respond(await service.delegate(user_id, data))


@router.post("/v1/associations/admin/delegation")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def delegate_association_by_admin(
    request: Request,
    data: DelegateAssociationRequest,
    admin_id: str | None = Depends(get_admin_id),
    service: AssociationService = Depends(get_association_service),
):
    """Delegation par un administrateur / Delegation by an administrator."""
    return respond(await service.delegate_by_admin(admin_id, data))


@router.patch("/v1/self/associations/{association_id}")
async def update_association(
    association_id: int,
    data: AssociationUpdateRequest,
    user_id: str | None = Depends(get_user_id),
    service: AssociationService = Depends(get_association_service),
):
    """Modifier type ou fenetre temporelle / Update type or time window."""
    return respond(await service.update_association(user_id, association_id, data))


@router.get("/v1/associations/types/{association_type}/count")
async def association_type_count(
    association_type: str,
    service: AssociationService = Depends(get_association_service),
):
    return respond(await service.association_type_count(association_type))


@router.post("/v1/associations/{association_id}/activate")
async def activate_association(
    association_id: int,
    device_id: str | None = None,
    user_id: str | None = Depends(get_user_id),
    service: AssociationService = Depends(get_association_service),
):
    """Provisionnement termine / Provisioning completed."""
    return respond(await service.change_state(user_id, association_id, AssociationStatus.ASSOCIATED, device_id))


@router.post("/v1/associations/{association_id}/suspend")
async def suspend_association(
    association_id: int,
    user_id: str | None = Depends(get_user_id),
    service: AssociationService = Depends(get_association_service),
):
    return respond(await service.change_state(user_id, association_id, AssociationStatus.SUSPENDED))


@router.post("/v1/associations/{association_id}/restore")
async def restore_association(
    association_id: int,
    user_id: str | None = Depends(get_user_id),
    service: AssociationService = Depends(get_association_service),
):
    return respond(await service.change_state(user_id, association_id, AssociationStatus.ASSOCIATED))
