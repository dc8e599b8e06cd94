"""
Orchestration des terminaisons / Termination orchestration.

Etape 1 : mutation de l'association (autoritaire).
Etape 2 : suppression du profil vehicule (best effort, jamais annulee ni rejouee).
Un echec de l'etape 2 est rapporte avec son propre code, l'etape 1 reste commitee.
"""

import logging

from device_association.gateways.vehicle_profile import VehicleProfileService
from device_association.repository import AssociationRepository
from device_association.results import ApiMessage, AssociationError, Err, ErrorKind, Ok, operation
from device_association.schemas.association import DeviceStatusRequest
from device_association.services.identity_gate import validate_user_id
from device_association.services.preconditions import PreconditionValidator
from device_association.services.state_machine import AssociationStateMachine

log = logging.getLogger(__name__)

NOT_ADMIN = "NOT_ADMIN"


class TerminationOrchestrator:
    def __init__(
        self,
        repo: AssociationRepository,
        validator: PreconditionValidator,
        state_machine: AssociationStateMachine,
        vehicle_profile: VehicleProfileService,
    ):
        self.repo = repo
        self.validator = validator
        self.state_machine = state_machine
        self.vehicle_profile = vehicle_profile

    async def resolve_delete_url(self, request: DeviceStatusRequest) -> str:
        """URL de suppression du profil ; lecture seule / Profile delete URL; read-only."""
        device_id = request.device_id
        if not device_id:
            matches = await self.repo.find_active(
                imei=request.imei, serial_number=request.serial_number, association_id=request.association_id,
            )
            for association in matches:
                device_id = association.device_id or association.serial_number
                if device_id:
                    break
        return self.vehicle_profile.resolve_delete_url(device_id or "")

    async def _fold_profile_deletion(self, url: str, success: ApiMessage):
        """Replier le resultat de la suppression du profil / Fold the profile deletion outcome."""
        if await self.vehicle_profile.delete(url):
            return Ok(success)
        log.warning("Association terminated but vehicle profile deletion failed: %s", url)
        return Err(ErrorKind.COMPENSATION, ApiMessage.VEHICLE_PROFILE_TERMINATION_FAILED)

    @operation("terminate_association")
    async def terminate_association(self, user_id: str | None, request: DeviceStatusRequest):
        """Terminaison simple / Plain termination."""
        user_id = validate_user_id(user_id, ApiMessage.USER_ID_MANDATORY)
        url = await self.resolve_delete_url(request)
        update_count = await self.state_machine.terminate(request, user_id)
        if update_count == 0:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.NO_VALID_ASSOCIATION)
        return await self._fold_profile_deletion(url, ApiMessage.TERMINATE_ASSO_SUCCESS)

    @operation("terminate_m2m")
    async def terminate_m2m(
        self,
        user_id: str | None,
        request: DeviceStatusRequest,
        admin_user_id: str | None = None,
        is_admin: bool = False,
    ):
        """Terminaison M2M, proprietaire ou admin / M2M termination, owner or admin."""
        return await self.run_m2m_termination(user_id, request, admin_user_id, is_admin)

    async def run_m2m_termination(
        self,
        user_id: str | None,
        request: DeviceStatusRequest,
        admin_user_id: str | None,
        is_admin: bool,
        delete_profile: bool = True,
    ):
        """Corps de la terminaison M2M ; leve ``AssociationError`` / M2M termination body; raises."""
        if is_admin and not self.validator.validate_admin_request(request):
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.M2M_ADMIN_REQUEST_INTEGRITY_ERROR)
        user_id = validate_user_id(user_id)
        if is_admin:
            admin_user_id = validate_user_id(admin_user_id)
        else:
            admin_user_id = NOT_ADMIN

        decision = await self.validator.validate_perform_terminate(user_id, request, is_admin)
        url = await self.resolve_delete_url(request)
        update_count = await self.state_machine.terminate_m2m(request, user_id, admin_user_id, is_admin)
        if update_count <= 0:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.NO_VALID_ASSOCIATION)
        # Deux conditions independantes / Two independent conditions
        if decision.perform_terminate and delete_profile:
            return await self._fold_profile_deletion(url, ApiMessage.TERMINATION_SUCCESS)
        return Ok(ApiMessage.TERMINATION_SUCCESS)

    @operation("validate_perform_terminate")
    async def validate_termination(self, user_id: str | None, request: DeviceStatusRequest, is_admin: bool = False):
        """Simulation sans mutation / Dry run without mutation."""
        user_id = validate_user_id(user_id)
        decision = await self.validator.validate_perform_terminate(user_id, request, is_admin)
        return Ok(ApiMessage.VALIDATE_PERFORM_TERMINATION_SUCCESS, decision.model_dump())
