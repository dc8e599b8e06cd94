"""Routes de terminaison / Termination routes."""

from fastapi import APIRouter, Depends, Request

from device_association.api.deps import get_admin_id, get_termination_orchestrator, get_user_id, respond
from device_association.config import settings
from device_association.rate_limit import limiter
from device_association.schemas.association import DeviceStatusRequest
from device_association.services.termination import TerminationOrchestrator

router = APIRouter()


@router.post("/v2/user/associations/terminate")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def terminate_association(
    request: Request,
    data: DeviceStatusRequest,
    user_id: str | None = Depends(get_user_id),
    orchestrator: TerminationOrchestrator = Depends(get_termination_orchestrator),
):
    """Terminaison simple par le proprietaire / Plain termination by the owner."""
    return respond(await orchestrator.terminate_association(user_id, data))


@router.post("/v1/user/associations/terminate")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def terminate_m2m_self(
    request: Request,
    data: DeviceStatusRequest,
    user_id: str | None = Depends(get_user_id),
    orchestrator: TerminationOrchestrator = Depends(get_termination_orchestrator),
):
    """Terminaison M2M par l'utilisateur / M2M termination by the user."""
    # La cible est toujours l'appelant / The target is always the caller
    data = data.model_copy(update={"user_id": user_id})
    return respond(await orchestrator.terminate_m2m(user_id, data))


@router.post("/v1/associations/terminate")
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def terminate_m2m_admin(
    request: Request,
    data: DeviceStatusRequest,
    user_id: str | None = Depends(get_user_id),
    admin_id: str | None = Depends(get_admin_id),
    orchestrator: TerminationOrchestrator = Depends(get_termination_orchestrator),
):
    """Terminaison M2M par un administrateur / M2M termination by an administrator."""
    return respond(await orchestrator.terminate_m2m(user_id, data, admin_user_id=admin_id, is_admin=True))


@router.post("/v1/associations/validate-termination")
async def validate_termination(
    data: DeviceStatusRequest,
    user_id: str | None = Depends(get_user_id),
    orchestrator: TerminationOrchestrator = Depends(get_termination_orchestrator),
):
    """Simulation : le profil vehicule serait-il supprime ? / Dry run: would the profile be deleted?"""
    return respond(await orchestrator.validate_termination(user_id, data))
