"""
Operations publiques d'association / Public association operations.
Chaque methode renvoie un ``Result`` ; IdentityGate passe toujours en premier.
"""

from device_association.models.association import AssociationStatus, DeviceAssociation
from device_association.repository import AssociationRepository
from device_association.results import ApiMessage, AssociationError, ErrorKind, Ok, operation
from device_association.schemas.association import (
    AssociateDeviceRequest,
    AssociationRead,
    AssociationUpdateRequest,
    DelegateAssociationRequest,
)
from device_association.services.identity_gate import validate_user_id
from device_association.services.state_machine import AssociationStateMachine


def association_payload(association: DeviceAssociation) -> dict:
    return AssociationRead.model_validate(association).model_dump(mode="json")


class AssociationService:
    def __init__(self, repo: AssociationRepository, state_machine: AssociationStateMachine):
        self.repo = repo
        self.state_machine = state_machine

    @operation("associate")
    async def associate(self, user_id: str | None, request: AssociateDeviceRequest, admin_user_id: str | None = None):
        user_id = validate_user_id(user_id)
        association = await self.state_machine.associate(user_id, request, admin_user_id)
        return Ok(ApiMessage.ASSOCIATION_SUCCESS, {
            "association_id": association.id,
            "association_status": association.association_status.value,
        })

    @operation("find_associations")
    async def find_associations(self, user_id: str | None):
        user_id = validate_user_id(user_id)
        associations = await self.repo.find_active(user_id=user_id)
        return Ok(ApiMessage.FIND_ASSO, [association_payload(a) for a in associations])

    @operation("delegate")
    async def delegate(self, user_id: str | None, request: DelegateAssociationRequest):
        user_id = validate_user_id(user_id)
        delegation = await self.state_machine.delegate(user_id, request, is_admin=False)
        return Ok(ApiMessage.ASSOCIATION_SUCCESS, association_payload(delegation))

    @operation("delegate_by_admin")
    async def delegate_by_admin(self, admin_user_id: str | None, request: DelegateAssociationRequest):
        """Delegation admin ; le type proprietaire devient une auto-association pour l'utilisateur.

        Admin delegation; the owner type turns into a self-association performed for the user.
        """
        admin_user_id = validate_user_id(admin_user_id)
        if not request.has_device_identifier():
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.BASIC_DATA_MANDATORY)
        owner_type = self.state_machine.owner_type
        if request.association_type == owner_type and await self.repo.association_type_exists(owner_type):
            user_id = validate_user_id(request.user_id)
            association = await self.state_machine.associate(
                user_id,
                AssociateDeviceRequest(serial_number=request.serial_number, imei=request.imei, bssid=request.bssid),
                admin_user_id=admin_user_id,
            )
            return Ok(ApiMessage.ASSOCIATION_SUCCESS, {
                "association_id": association.id,
                "association_status": association.association_status.value,
            })
        delegation = await self.state_machine.delegate(admin_user_id, request, is_admin=True)
        return Ok(ApiMessage.ASSOCIATION_SUCCESS, association_payload(delegation))

    @operation("replace_vin")
    async def replace_vin(self, device_id: str, vin: str):
        association_id = await self.state_machine.replace_vin(device_id, vin)
        return Ok(ApiMessage.VIN_REPLACE_SUCCESS, {"association_id": association_id, "vin": vin})

    @operation("update_association", failure=ApiMessage.ASSOCIATION_UPDATE_FAILED)
    async def update_association(self, user_id: str | None, association_id: int, data: AssociationUpdateRequest):
        user_id = validate_user_id(user_id)
        if not data.association_type and data.start_timestamp == 0 and data.end_timestamp == 0:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.ASSOCIATION_UPDATE_BASIC_DATA_MANDATORY)
        if data.association_type and not await self.repo.association_type_exists(data.association_type):
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.ASSOC_TYPE_VALIDATION_FAILURE)
        association = await self.state_machine.update_association(user_id, association_id, data)
        return Ok(ApiMessage.ASSOCIATION_UPDATED_SUCCESSFULLY, association_payload(association))

    @operation("association_type_count")
    async def association_type_count(self, association_type: str):
        count = await self.repo.count_by_type(association_type)
        return Ok(ApiMessage.ASSOCIATION_TYPE_COUNT, {"association_type": association_type, "count": count})

    @operation("change_state")
    async def change_state(
        self, actor: str | None, association_id: int, target: AssociationStatus, device_id: str | None = None,
    ):
        actor = validate_user_id(actor)
        association = await self.state_machine.transition(association_id, target, actor, device_id)
        return Ok(ApiMessage.ASSOCIATION_STATE_CHANGED, association_payload(association))
