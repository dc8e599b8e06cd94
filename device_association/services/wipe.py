"""
Effacement des donnees d'appareils / Device data wipe.

Pour chaque appareil : terminaison M2M sans suppression de profil, re-association
du proprietaire, purge des items puis anonymisation de l'historique.
"""

import logging

from device_association.models.association import AssociationStatus, DeviceAssociation
from device_association.repository import AssociationRepository
from device_association.results import ApiMessage, AssociationError, ErrorKind, Ok, operation
from device_association.schemas.association import AssociateDeviceRequest, DeviceStatusRequest
from device_association.services.identity_gate import validate_user_id
from device_association.services.state_machine import AssociationStateMachine
from device_association.services.termination import TerminationOrchestrator

log = logging.getLogger(__name__)

DUMMY_USER_ID = "wiped-user"


def pick_per_device(associations: list[DeviceAssociation]) -> dict[str, DeviceAssociation]:
    """Une association par numero de serie, proprietaire en priorite / One per serial, owner first."""
    picked: dict[str, DeviceAssociation] = {}
    for association in associations:
        current = picked.get(association.serial_number)
        if current is None or (association.owner_slot and not current.owner_slot):
            picked[association.serial_number] = association
    return picked


class WipeCoordinator:
    def __init__(
        self,
        repo: AssociationRepository,
        state_machine: AssociationStateMachine,
        terminations: TerminationOrchestrator,
    ):
        self.repo = repo
        self.state_machine = state_machine
        self.terminations = terminations

    @operation("wipe_devices")
    async def wipe_devices(self, user_id: str | None, serial_numbers: list[str] | None = None):
        user_id = validate_user_id(user_id)
        associations = await self.repo.find_for_user(user_id)
        if not associations:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.WIPE_DATA_NO_ASSOC_FOUND)
        associated = [a for a in associations if a.association_status == AssociationStatus.ASSOCIATED]
        if not associated:
            raise AssociationError(ErrorKind.VALIDATION, ApiMessage.WIPE_DATA_NO_ASSOC_STATE_FOUND)

        if serial_numbers:
            requested = {s for s in serial_numbers if s}
            associated = [a for a in associated if a.serial_number in requested]
            if {a.serial_number for a in associated} != requested:
                raise AssociationError(ErrorKind.VALIDATION, ApiMessage.WIPE_DATA_NO_ASSOC_FOUND_FOR_SOME_DEVICE)

        devices = pick_per_device(associated)
        wiped_ids: list[int] = []
        for serial_number, association in devices.items():
            await self._terminate(user_id, association)
            if association.owner_slot:
                await self._reassociate(user_id, serial_number)
            if association.device_id:
                await self.repo.delete_items(association.device_id)
            wiped_ids.append(association.id)

        try:
            anonymised = await self.repo.anonymise(wiped_ids, DUMMY_USER_ID)
        except Exception as e:
            log.exception("Anonymisation failed for associations %s", wiped_ids)
            raise AssociationError(ErrorKind.TECHNICAL, ApiMessage.UPDATE_DUMMY_VALIDATION_FAILED) from e
        if anonymised != len(wiped_ids):
            raise AssociationError(ErrorKind.TECHNICAL, ApiMessage.UPDATE_DUMMY_VALIDATION_FAILED)

        return Ok(ApiMessage.WIPE_DATA_SUCCESS, {"serial_numbers": sorted(devices)})

    async def _terminate(self, user_id: str, association: DeviceAssociation) -> None:
        request = DeviceStatusRequest(serial_number=association.serial_number, association_id=association.id)
        try:
            await self.terminations.run_m2m_termination(user_id, request, None, False, delete_profile=False)
        except Exception as e:
            log.exception("Wipe termination failed for association %s", association.id)
            raise AssociationError(ErrorKind.TECHNICAL, ApiMessage.WIPE_DATA_TERMINATION_FAILURE) from e

    async def _reassociate(self, user_id: str, serial_number: str) -> None:
        try:
            await self.state_machine.associate(user_id, AssociateDeviceRequest(serial_number=serial_number))
        except Exception as e:
            log.exception("Wipe re-association failed for device %s", serial_number)
            raise AssociationError(ErrorKind.TECHNICAL, ApiMessage.WIPE_DATA_ASSOCIATION_FAILURE) from e
