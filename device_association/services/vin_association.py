"""
Rattachement VIN et suspension SIM / VIN association and SIM suspend.

Ordre des echecs : fonction desactivee > precondition > decodage > region > technique.
Failure order: feature disabled > precondition > decode > region > technical.
"""

import logging

from device_association.config import AssociationFeatures
from device_association.gateways.sim_state import SIM_STATE_ACTIVE, SIM_STATE_SUSPEND, SimStateGateway
from device_association.gateways.user_directory import UserDirectory
from device_association.models.sim_details import SimDetails, SimTransactionStatus, SimUserAction
from device_association.repository import AssociationRepository
from device_association.results import ApiMessage, AssociationError, ErrorKind, Ok, operation
from device_association.schemas.association import SimSuspendRequest, VinAssociationRequest
from device_association.services.identity_gate import is_blank, validate_user_id
from device_association.services.preconditions import PreconditionValidator
from device_association.services.state_machine import AssociationStateMachine
from device_association.utils.clock import now_iso

log = logging.getLogger(__name__)

REGION_ATTRIBUTE = "country"


class VinAssociationCoordinator:
    def __init__(
        self,
        repo: AssociationRepository,
        validator: PreconditionValidator,
        state_machine: AssociationStateMachine,
        user_directory: UserDirectory,
        sim_state: SimStateGateway,
        features: AssociationFeatures,
    ):
        self.repo = repo
        self.validator = validator
        self.state_machine = state_machine
        self.user_directory = user_directory
        self.sim_state = sim_state
        self.features = features

    @operation("associate_vin")
    async def associate_vin(self, user_id: str | None, request: VinAssociationRequest):
        user_id = validate_user_id(user_id)
        if not self.features.vin_association_enabled:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.VIN_ASSO_NOT_ENABLED)

        association_id = await self.validator.check_vin_association_preconditions(user_id, request.vin, request.imei)

        if self.features.vin_decode_check_enabled:
            model = await self.repo.device_model(request.imei)
            if not await self.validator.check_decoding_preconditions(request.vin, model):
                log.info("Dongle %s does not match vin %s, disassociating %s", model, request.vin, association_id)
                await self.state_machine.disassociate(association_id, user_id)
                raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.DONGLE_TYPE_MISMATCHED)

        region = await self.user_directory.get_attribute(user_id, REGION_ATTRIBUTE)
        if is_blank(region):
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.USER_DETAILS_NOT_FOUND)

        if self.features.sim_activation_enabled:
            await self._activate_sim(user_id, request.imei, region, association_id)

        await self.repo.save_vin(request.vin, region, association_id)
        self.repo.audit(association_id, "VIN_ASSOCIATE", user_id, vin=request.vin, region=region)
        return Ok(ApiMessage.VIN_ASSO_SUCCESS, {"association_id": association_id, "vin": request.vin, "region": region})

    async def _activate_sim(self, user_id: str, imei: str, region: str, association_id: int) -> None:
        imsi = await self.repo.imsi_for(imei)
        transaction_id = await self.sim_state.change_state(imsi, region, SIM_STATE_ACTIVE) if imsi else None
        if not transaction_id:
            await self.state_machine.disassociate(association_id, user_id)
            raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.SIM_ACTIVATION_FAILED)
        await self.repo.save_sim_transaction(SimDetails(
            transaction_id=transaction_id,
            reference_id=association_id,
            tran_status=SimTransactionStatus.IN_PROGRESS,
            user_action=SimUserAction.ACTIVATE,
            created_on=now_iso(),
        ))

    @operation("sim_suspend")
    async def sim_suspend(self, user_id: str | None, request: SimSuspendRequest):
        user_id = validate_user_id(user_id)
        if not self.features.vin_association_enabled:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.VIN_ASSO_NOT_ENABLED)

        association_id = await self.validator.check_sim_suspend_preconditions(user_id, request.imei)
        imsi = await self.repo.imsi_for(request.imei)
        region = await self.repo.region_for_association(association_id)
        if is_blank(imsi) or is_blank(region):
            raise AssociationError(ErrorKind.TECHNICAL, ApiMessage.GENERAL_ERROR, "imsi or region missing")
        transaction_id = await self.sim_state.change_state(imsi, region, SIM_STATE_SUSPEND)
        if not transaction_id:
            raise AssociationError(ErrorKind.TECHNICAL, ApiMessage.GENERAL_ERROR, "no SIM transaction id")

        await self.repo.save_sim_transaction(SimDetails(
            transaction_id=transaction_id,
            reference_id=association_id,
            tran_status=SimTransactionStatus.IN_PROGRESS,
            user_action=SimUserAction.TERMINATE,
            created_on=now_iso(),
        ))
        return Ok(ApiMessage.SIM_SUSPEND_INITIATION_SUCCESS, {"transaction_id": transaction_id})

    @operation("update_sim_transaction")
    async def update_sim_transaction(self, transaction_id: str, status: str):
        """Retour du gestionnaire SIM / SIM manager callback."""
        sim = await self.repo.sim_transaction(transaction_id)
        if sim is None:
            raise AssociationError(ErrorKind.NOT_FOUND, ApiMessage.SIM_TRANSACTION_NOT_FOUND)
        sim.tran_status = SimTransactionStatus(status)
        sim.modified_on = now_iso()
        await self.repo.db.flush()
        return Ok(ApiMessage.SIM_TRANSACTION_UPDATED, {
            "transaction_id": transaction_id, "status": sim.tran_status.value,
        })
