"""
Machine a etats de l'association / Association state machine.

ASSOCIATION_INITIATED -> ASSOCIATED -> DISASSOCIATED (terminal), plus SUSPENDED.
Chaque mutation ne touche qu'une ligne non terminee ; les verifications d'etat
viennent de PreconditionValidator.
"""

import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from device_association.config import Settings, settings as default_settings
from device_association.gateways.events import (
    EVENT_ASSOCIATION,
    EVENT_DELEGATION,
    EVENT_DISASSOCIATION,
    EventPublisher,
)
from device_association.models.association import ACTIVE_STATUSES, AssociationStatus, DeviceAssociation
from device_association.models.factory_data import ASSOCIABLE_STATES, FactoryState
from device_association.repository import AssociationRepository
from device_association.results import ApiMessage, AssociationError, ErrorKind
from device_association.schemas.association import (
    AssociateDeviceRequest,
    AssociationUpdateRequest,
    DelegateAssociationRequest,
    DeviceStatusRequest,
)
from device_association.services.preconditions import PreconditionValidator, validate_start_end
from device_association.utils.clock import now_iso, now_millis

log = logging.getLogger(__name__)

# Transitions autorisees / Allowed transitions
LEGAL_TRANSITIONS: dict[AssociationStatus, frozenset[AssociationStatus]] = {
    AssociationStatus.ASSOCIATION_INITIATED: frozenset({
        AssociationStatus.ASSOCIATED, AssociationStatus.DISASSOCIATED,
    }),
    AssociationStatus.ASSOCIATED: frozenset({
        AssociationStatus.SUSPENDED, AssociationStatus.DISASSOCIATED,
    }),
    AssociationStatus.SUSPENDED: frozenset({
        AssociationStatus.ASSOCIATED, AssociationStatus.DISASSOCIATED,
    }),
    AssociationStatus.DISASSOCIATED: frozenset(),
}


def can_transition(current: AssociationStatus, target: AssociationStatus) -> bool:
    return target in LEGAL_TRANSITIONS[current]


class AssociationStateMachine:
    def __init__(
        self,
        repo: AssociationRepository,
        validator: PreconditionValidator,
        events: EventPublisher,
        settings: Settings | None = None,
    ):
        self.repo = repo
        self.validator = validator
        self.events = events
        self.settings = settings or default_settings

    @property
    def owner_type(self) -> str:
        return self.settings.DEFAULT_ASSOCIATION_TYPE

    # ─── Creation ───

    async def associate(
        self, user_id: str, request: AssociateDeviceRequest, admin_user_id: str | None = None,
    ) -> DeviceAssociation:
        """Association proprietaire, statut ASSOCIATION_INITIATED / Owner association, initiated."""
        if not request.has_device_identifier():
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.BASIC_DATA_MANDATORY)

        factory = await self.repo.find_factory_data(request.serial_number, request.imei, request.bssid)
        if factory is None:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.FETCHING_FACTORY_DATA_ERROR)
        if factory.faulty or factory.stolen or factory.state in (FactoryState.FAULTY, FactoryState.STOLEN):
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.STOLEN_OR_FAULTY)
        if factory.state in ASSOCIABLE_STATES and self.validator.features.forbid_assoc_after_terminate:
            if await self.repo.was_terminated(factory.id):
                raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.DEVICE_TERMINATED)
        if factory.state not in ASSOCIABLE_STATES:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.INVALID_FACTORY_STATE)
        if not await self.repo.association_type_exists(self.owner_type):
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.ASSOC_TYPE_VALIDATION_FAILURE)

        now = now_iso()
        association = DeviceAssociation(
            serial_number=factory.serial_number,
            imei=factory.imei,
            bssid=factory.bssid,
            iccid=factory.iccid,
            msisdn=factory.msisdn,
            imsi=factory.imsi,
            factory_data_id=factory.id,
            user_id=user_id,
            association_status=AssociationStatus.ASSOCIATION_INITIATED,
            association_type=self.owner_type,
            owner_slot=True,
            start_timestamp=now_millis(),
            end_timestamp=0,
            associated_by=admin_user_id or user_id,
            associated_on=now,
            modified_on=now,
        )
        try:
            await self.repo.add(association)
        except IntegrityError:
            # Course perdue contre une autre association / Lost the race against another association
            await self.repo.db.rollback()
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.INVALID_FACTORY_STATE)

        factory.state = FactoryState.READY_TO_ACTIVATE
        self.repo.audit(association.id, "ASSOCIATE", admin_user_id or user_id, serial_number=factory.serial_number)
        await self.repo.db.flush()
        await self.events.publish(EVENT_ASSOCIATION, {
            "associationId": association.id, "userId": user_id, "serialNumber": factory.serial_number,
        })
        return association

    async def delegate(self, user_id: str, request: DelegateAssociationRequest, is_admin: bool) -> DeviceAssociation:
        """Association ASSOCIATED pour un autre utilisateur / ASSOCIATED row for another user."""
        if not request.has_device_identifier():
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.BASIC_DATA_MANDATORY)
        delegate_user = await self.validator.check_delegation_preconditions(request)
        start, end = validate_start_end(request.start_timestamp, request.end_timestamp)

        owner = await self.repo.find_owner(
            self.owner_type,
            user_id=None if is_admin else user_id,
            serial_number=request.serial_number,
            imei=request.imei,
            bssid=request.bssid,
            iccid=request.iccid,
            msisdn=request.msisdn,
            imsi=request.imsi,
        )
        if owner is None:
            message = ApiMessage.OWNER_ASSO_NOT_FOUND if is_admin else ApiMessage.OWNER_VALIDATION_FAILED
            raise AssociationError(ErrorKind.VALIDATION, message)

        now = now_iso()
        delegation = DeviceAssociation(
            serial_number=owner.serial_number,
            imei=owner.imei,
            bssid=owner.bssid,
            device_id=owner.device_id,
            iccid=owner.iccid,
            msisdn=owner.msisdn,
            imsi=owner.imsi,
            factory_data_id=owner.factory_data_id,
            user_id=delegate_user,
            association_status=AssociationStatus.ASSOCIATED,
            association_type=request.association_type,
            owner_slot=False,
            start_timestamp=start,
            end_timestamp=end,
            associated_by=user_id,
            associated_on=now,
            modified_on=now,
        )
        await self.repo.add(delegation)
        self.repo.audit(delegation.id, "DELEGATE", user_id, delegate=delegate_user, owner_association=owner.id)
        await self.events.publish(EVENT_DELEGATION, {
            "associationId": delegation.id, "userId": delegate_user, "ownerAssociationId": owner.id,
        })
        return delegation

    # ─── Termination ───

    async def terminate(self, request: DeviceStatusRequest, user_id: str) -> int:
        """Terminer l'unique association active du demandeur / Terminate the caller's single active association."""
        if not request.has_device_identifier():
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.BASIC_DATA_MANDATORY)
        matches = await self.validator.find_termination_targets(request, user_id)
        if not matches:
            raise AssociationError(ErrorKind.NOT_FOUND, ApiMessage.ASSO_DATA_NOT_FOUND)
        if len(matches) > 1:
            raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.ASSO_INTEGRITY_ERROR)
        return await self._terminate_row(matches[0], user_id)

    async def terminate_m2m(
        self, request: DeviceStatusRequest, user_id: str, admin_user_id: str | None, is_admin: bool,
    ) -> int:
        """Terminaison M2M ; meme ecriture pour admin et proprietaire, attribution differente.

        Les associations proprietaires sont terminees, les delegations seulement dissociees.
        """
        actor = admin_user_id if is_admin else user_id
        target_user = request.user_id or user_id
        matches = await self.validator.find_termination_targets(request, target_user)
        updated = 0
        for association in matches:
            if self.validator.is_owner_type(association.association_type):
                updated += await self._terminate_row(association, actor)
            else:
                updated += await self._disassociate(association, actor, full=False)
        return updated

    async def _terminate_row(self, association: DeviceAssociation, actor: str) -> int:
        if self.validator.features.sim_suspend_check:
            await self.validator.check_sim_termination(association.id)
        return await self._disassociate(association, actor, full=True)

    async def _disassociate(self, association: DeviceAssociation, actor: str, full: bool) -> int:
        """UPDATE conditionnel sur statut actif ; retourne le nombre de lignes / Conditional update, row count."""
        now = now_iso()
        values = {
            "association_status": AssociationStatus.DISASSOCIATED,
            "disassociated_by": actor,
            "disassociated_on": now,
            "modified_by": actor,
            "modified_on": now,
        }
        if full:
            values["end_timestamp"] = now_millis()
        result = await self.repo.db.execute(
            update(DeviceAssociation)
            .where(
                DeviceAssociation.id == association.id,
                DeviceAssociation.association_status.in_(ACTIVE_STATUSES),
            )
            .values(**values)
        )
        count = result.rowcount or 0
        if not count:
            log.warning("Association %s was no longer active when terminating", association.id)
            return 0

        if full and association.owner_slot:
            factory = await self.repo.find_factory_data(serial_number=association.serial_number)
            if factory is not None:
                factory.state = FactoryState.PROVISIONED
        self.repo.audit(association.id, "TERMINATE" if full else "DISASSOCIATE", actor)
        await self.repo.db.flush()
        await self.events.publish(EVENT_DISASSOCIATION, {
            "associationId": association.id, "userId": association.user_id, "disassociatedBy": actor,
        })
        return count

    async def disassociate(self, association_id: int, actor: str) -> int:
        """Compensation : dissocier apres un echec en aval / Compensation after a downstream failure."""
        association = await self.repo.get(association_id)
        if association is None:
            return 0
        return await self._disassociate(association, actor, full=True)

    # ─── Side transitions ───

    async def replace_vin(self, device_id: str, vin: str) -> int:
        """Remplacer le VIN ; trois verifications dans un ordre fixe / Three checks in fixed order."""
        if not await self.validator.check_association_exists(device_id):
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.NO_VALID_ASSOCIATION)
        association_id = await self.repo.association_id_for_device(device_id)
        current = await self.repo.vin_for_association(association_id)
        if current is None:
            raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.VIN_NOT_ASSO)
        if not await self.validator.check_vin_free(vin):
            raise AssociationError(ErrorKind.PRECONDITION, ApiMessage.VIN_ALREADY_ASSO_WITH_OTHER_DEVICE)

        self.repo.audit(association_id, "REPLACE_VIN", None, old_vin=current.vin, new_vin=vin)
        current.vin = vin
        await self.repo.db.flush()
        return association_id

    async def update_association(
        self, user_id: str, association_id: int, data: AssociationUpdateRequest,
    ) -> DeviceAssociation:
        association = await self.repo.get(association_id)
        if association is None or not association.is_active:
            raise AssociationError(ErrorKind.NOT_FOUND, ApiMessage.ASSO_DETAILS_NOT_FOUND)

        self._validate_new_time_with_old(association, data.start_timestamp, data.end_timestamp)
        if data.association_type and data.association_type == self.owner_type:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.NEW_ASSOCIATION_TYPE_CANNOT_BE_UPDATED_TO_OWNER)
        owner = await self.repo.find_owner(
            self.owner_type, user_id=user_id, serial_number=association.serial_number,
        )
        if owner is None:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.USER_NOT_OWNER_OF_DEVICE)

        # 0 / vide = champ omis / 0 or empty = field omitted
        changes = {}
        if data.association_type:
            changes["association_type"] = data.association_type
        if data.start_timestamp:
            changes["start_timestamp"] = data.start_timestamp
        if data.end_timestamp:
            changes["end_timestamp"] = data.end_timestamp
        for key, value in changes.items():
            setattr(association, key, value)
        association.modified_by = user_id
        association.modified_on = now_iso()
        self.repo.audit(association.id, "UPDATE", user_id, **changes)
        await self.repo.db.flush()
        return association

    @staticmethod
    def _validate_new_time_with_old(association: DeviceAssociation, start: int, end: int) -> None:
        if start and end:
            valid = start < end
        elif start:
            valid = association.end_timestamp == 0 or start < association.end_timestamp
        elif end:
            valid = association.start_timestamp < end
        else:
            valid = True
        if not valid:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.START_END_TIME_VALIDATION_FAILED)

    async def transition(
        self, association_id: int, target: AssociationStatus, actor: str, device_id: str | None = None,
    ) -> DeviceAssociation:
        """Activation, suspension, restauration / Activation, suspension, restore."""
        association = await self.repo.get(association_id)
        if association is None:
            raise AssociationError(ErrorKind.NOT_FOUND, ApiMessage.ASSO_DETAILS_NOT_FOUND)
        if target == AssociationStatus.DISASSOCIATED or not can_transition(association.association_status, target):
            raise AssociationError(
                ErrorKind.PRECONDITION,
                ApiMessage.ILLEGAL_STATE_TRANSITION,
                f"{association.association_status.value} -> {target.value}",
            )

        previous = association.association_status
        association.association_status = target
        association.modified_by = actor
        association.modified_on = now_iso()
        if device_id:
            association.device_id = device_id
        if target == AssociationStatus.ASSOCIATED and previous == AssociationStatus.ASSOCIATION_INITIATED:
            factory = await self.repo.find_factory_data(serial_number=association.serial_number)
            if factory is not None:
                factory.state = FactoryState.ACTIVE
        self.repo.audit(association.id, target.value, actor, previous=previous.value)
        await self.repo.db.flush()
        return association
