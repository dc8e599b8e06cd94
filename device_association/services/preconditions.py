"""
Verifications prealables / Precondition checks.

Repond a "l'operation est-elle legale maintenant ?" sans rien modifier.
Answers "is this operation legal right now?" without mutating anything, so the same
checks back both the mutating endpoints and the validate-only endpoint.
"""

import logging

import httpx

from device_association.config import AssociationFeatures, Settings, settings as default_settings
from device_association.gateways.user_directory import UserDirectory
from device_association.gateways.vehicle_profile import VehicleProfileService
from device_association.models.association import DeviceAssociation
from device_association.models.sim_details import SimTransactionStatus, SimUserAction
from device_association.repository import AssociationRepository
from device_association.results import ApiMessage, AssociationError, ErrorKind
from device_association.schemas.association import (
    DelegateAssociationRequest,
    DeviceStatusRequest,
    M2MTerminationDecision,
)
from device_association.services.identity_gate import is_blank
from device_association.utils.clock import now_millis

log = logging.getLogger(__name__)

USER_ID_TYPE_INTERNAL = "internal"
USER_ID_TYPE_EXTERNAL = "external"

# Modele du boitier -> type de dongle attendu / Dongle model -> expected dongle type
DONGLE_TYPES = {
    "HSA-15TN-SA": "ORANGE",
    "HSA-15TN-SB": "GREEN",
}


def dongle_type_for(model: str | None) -> str | None:
    if not model:
        return None
    for marker, dongle_type in DONGLE_TYPES.items():
        if marker in model:
            return dongle_type
    return None


def validate_start_end(start: int, end: int) -> tuple[int, int]:
    """Fenetre temporelle ; debut 0 = maintenant / Time window; start 0 = now."""
    if start == 0:
        start = now_millis()
    if end != 0 and start >= end:
        raise AssociationError(ErrorKind.VALIDATION, ApiMessage.START_END_TIME_VALIDATION_FAILED)
    return start, end


class PreconditionValidator:
    def __init__(
        self,
        repo: AssociationRepository,
        user_directory: UserDirectory,
        vehicle_profile: VehicleProfileService,
        features: AssociationFeatures | None = None,
        settings: Settings | None = None,
    ):
        self.repo = repo
        self.user_directory = user_directory
        self.vehicle_profile = vehicle_profile
        self.settings = settings or default_settings
        self.features = features or AssociationFeatures.from_settings(self.settings)

    @property
    def owner_type(self) -> str:
        return self.settings.DEFAULT_ASSOCIATION_TYPE

    def is_owner_type(self, association_type: str | None) -> bool:
        return is_blank(association_type) or association_type == self.owner_type

    # ─── Existence / VIN ───

    async def check_association_exists(self, device_id: str) -> bool:
        return await self.repo.association_id_for_device(device_id) is not None

    async def check_vin_free(self, vin: str) -> bool:
        return not await self.repo.vin_in_use(vin)

    async def check_vin_association_preconditions(self, user_id: str, vin: str, imei: str) -> int:
        """Association cible d'un rattachement VIN / Target association of a VIN attach."""
        if self.features.whitelisted_model_check:
            await self.check_whitelisted_model(user_id, vin)

        association_id = await self.repo.association_id_for_user_imei(user_id, imei)
        if association_id is None:
            raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.ASSO_NOT_FOUND)
        if await self.repo.vin_for_association(association_id) is not None:
            raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.VIN_ALREADY_ASSO)
        if not await self.check_vin_free(vin):
            raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.VIN_ALREADY_ASSO_WITH_OTHER_DEVICE)
        return association_id

    async def check_whitelisted_model(self, user_id: str, vin: str) -> None:
        country = await self.user_directory.get_attribute(user_id, "country")
        whitelisted = self.settings.WHITELISTED_MODELS.get(country or "", [])
        if not whitelisted:
            raise AssociationError(ErrorKind.TECHNICAL, ApiMessage.WHITELISTED_MODELS_IS_EMPTY)
        decoded = await self._decode(vin)
        if decoded.get("model_code") not in whitelisted:
            log.info("Model %s of vin %s not whitelisted for %s", decoded.get("model_code"), vin, country)
            raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.MODEL_NOT_FOUND_IN_WHITELISTED_MODELS)

    async def check_decoding_preconditions(self, vin: str, model: str | None) -> bool:
        """Le dongle correspond-il au vehicule ? / Does the dongle match the vehicle?

        Modele inconnu ou absent = non concordant / Unknown or missing model counts as a mismatch.
        """
        expected = dongle_type_for(model)
        if expected is None:
            log.info("No dongle type known for model %s", model)
            return False
        decoded = await self._decode(vin)
        return (decoded.get("type") or "").upper() == expected

    async def _decode(self, vin: str) -> dict:
        try:
            return await self.vehicle_profile.decode_vin(vin)
        except (httpx.HTTPError, ValueError) as e:
            log.error("VIN decode failed for %s: %s", vin, e)
            raise AssociationError(ErrorKind.TECHNICAL, ApiMessage.VIN_DECODE_API_FAILURE) from e

    # ─── SIM ───

    async def check_sim_suspend_preconditions(self, user_id: str, imei: str) -> int:
        association_id = await self.repo.association_id_for_user_imei(user_id, imei)
        if association_id is None:
            raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.ASSO_NOT_FOUND)
        activation = await self.repo.latest_sim_transaction(association_id, SimUserAction.ACTIVATE)
        if activation is None or activation.tran_status != SimTransactionStatus.COMPLETED:
            raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.SIM_SUSPEND_FAILED)
        return association_id

    async def check_sim_termination(self, association_id: int) -> None:
        """Avant terminaison : activation et suspension SIM terminees / SIM activation and suspend completed."""
        activation = await self.repo.latest_sim_transaction(association_id, SimUserAction.ACTIVATE)
        if activation is None:
            return
        if activation.tran_status != SimTransactionStatus.COMPLETED:
            raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.SIM_ACTIVATION_PENDING)
        suspension = await self.repo.latest_sim_transaction(association_id, SimUserAction.TERMINATE)
        if suspension is None or suspension.tran_status != SimTransactionStatus.COMPLETED:
            raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.SIM_SUSPEND_CONDITION_FAILED)

    # ─── Delegation ───

    async def check_delegation_preconditions(self, request: DelegateAssociationRequest) -> str:
        """Retourne l'identifiant du delegue / Returns the delegate user id."""
        if (
            self.owner_type == request.association_type
            or not await self.repo.association_type_exists(request.association_type)
        ):
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.DELEGATION_ASSOCIATION_TYPE_VALIDATION_FAILED)

        user_id_type = self.settings.USER_ID_TYPE
        if user_id_type == USER_ID_TYPE_EXTERNAL:
            delegate = request.delegation_user_id
        elif user_id_type == USER_ID_TYPE_INTERNAL:
            delegate = None
            if not is_blank(request.email):
                delegate = await self.user_directory.find_user_id(request.email)
        else:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.USER_ID_TYPE_INVALID)
        if is_blank(delegate):
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.INVALID_USER_DETAILS)
        return delegate

    # ─── Termination ───

    @staticmethod
    def validate_admin_request(request: DeviceStatusRequest) -> bool:
        """Un admin agit pour le proprietaire enregistre, sans user_id dans le corps.

        An admin acts on behalf of the owner-of-record and must not assert a user_id in the body.
        """
        return is_blank(request.user_id)

    async def validate_perform_terminate(
        self, user_id: str, request: DeviceStatusRequest, is_admin: bool,
    ) -> M2MTerminationDecision:
        if not request.has_device_identifier():
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.BASIC_DATA_MANDATORY)

        target_user = user_id
        if not is_blank(request.user_id):
            target_user = request.user_id
            if not is_admin and request.user_id.lower() != user_id.lower():
                owner = await self.repo.find_owner(
                    self.owner_type,
                    user_id=user_id,
                    serial_number=request.serial_number,
                    imei=request.imei,
                )
                if owner is None:
                    raise AssociationError(ErrorKind.VALIDATION, ApiMessage.OWNER_TERMINATION_VALIDATION_FAILED)

        matches = await self.find_termination_targets(request, target_user)
        if len(matches) != 1:
            log.info("Expected one association for %s, found %d", request.model_dump(), len(matches))
            raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.M2M_ASSOC_INTEGRITY_ERROR)
        return M2MTerminationDecision(perform_terminate=self.is_owner_type(matches[0].association_type))

    async def find_termination_targets(
        self, request: DeviceStatusRequest, user_id: str | None,
    ) -> list[DeviceAssociation]:
        return await self.repo.find_active(
            user_id=user_id,
            device_id=request.device_id,
            imei=request.imei,
            serial_number=request.serial_number,
            association_id=request.association_id,
        )
