"""Tests de terminaison / Termination tests.

La mutation de l'association est autoritaire ; la suppression du profil vehicule
n'est jamais tentee sans mutation et son echec ne l'annule pas.
"""

from unittest.mock import AsyncMock

import pytest

from device_association.config import AssociationFeatures
from device_association.models.association import AssociationStatus
from device_association.models.factory_data import FactoryState
from device_association.models.sim_details import SimDetails, SimTransactionStatus, SimUserAction
from device_association.results import ApiMessage, Err, ErrorKind, Ok, to_transport_response
from device_association.schemas.association import DeviceStatusRequest
from device_association.utils.clock import now_iso
from tests.factories import OTHER, OWNER, add_association, add_factory


async def add_sim(db, association_id, action, status, transaction_id):
    db.add(SimDetails(
        transaction_id=transaction_id,
        reference_id=association_id,
        tran_status=status,
        user_action=action,
        created_on=now_iso(),
    ))
    await db.flush()


# ─── Terminaison simple / Plain termination ───

@pytest.mark.asyncio
async def test_terminate_success(eng, db):
    factory = await add_factory(db, state=FactoryState.ACTIVE)
    association = await add_association(db, factory_data_id=factory.id)
    result = await eng.terminations.terminate_association(OWNER, DeviceStatusRequest(serial_number="SN-1"))

    assert isinstance(result, Ok)
    assert result.message == ApiMessage.TERMINATE_ASSO_SUCCESS
    eng.gateways.vehicle_profile.delete.assert_awaited_once_with("http://vp/v1/vehicleProfiles?clientId=HU-1")
    await db.refresh(association)
    assert association.association_status == AssociationStatus.DISASSOCIATED
    assert association.disassociated_by == OWNER
    assert association.end_timestamp > 0
    assert factory.state == FactoryState.PROVISIONED


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id", [None, "", "  "])
async def test_terminate_requires_user(eng, db, user_id):
    await add_association(db)
    result = await eng.terminations.terminate_association(user_id, DeviceStatusRequest(serial_number="SN-1"))
    assert result.message == ApiMessage.USER_ID_MANDATORY
    eng.gateways.vehicle_profile.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_terminate_requires_device_identifier(eng):
    result = await eng.terminations.terminate_association(OWNER, DeviceStatusRequest(association_id=1))
    assert result.message == ApiMessage.BASIC_DATA_MANDATORY


@pytest.mark.asyncio
async def test_terminate_unknown_association(eng):
    result = await eng.terminations.terminate_association(OWNER, DeviceStatusRequest(serial_number="SN-404"))
    assert result.message == ApiMessage.ASSO_DATA_NOT_FOUND
    assert result.message.category == 404


@pytest.mark.asyncio
async def test_terminate_ambiguous_target(eng, db):
    await add_association(db)
    await add_association(db, association_type="driver")
    result = await eng.terminations.terminate_association(OWNER, DeviceStatusRequest(serial_number="SN-1"))
    assert result.message == ApiMessage.ASSO_INTEGRITY_ERROR
    eng.gateways.vehicle_profile.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_no_row_updated_skips_profile_deletion(eng, db):
    await add_association(db)
    eng.state_machine.terminate = AsyncMock(return_value=0)
    result = await eng.terminations.terminate_association(OWNER, DeviceStatusRequest(serial_number="SN-1"))
    assert result.message == ApiMessage.NO_VALID_ASSOCIATION
    assert eng.gateways.vehicle_profile.delete.await_count == 0


@pytest.mark.asyncio
async def test_profile_deletion_failure_keeps_termination(eng, db):
    association = await add_association(db)
    eng.gateways.vehicle_profile.delete.return_value = False
    result = await eng.terminations.terminate_association(OWNER, DeviceStatusRequest(serial_number="SN-1"))

    assert isinstance(result, Err)
    assert result.kind == ErrorKind.COMPENSATION
    assert result.message == ApiMessage.VEHICLE_PROFILE_TERMINATION_FAILED
    status_code, body = to_transport_response(result)
    assert status_code == 200
    assert body["code"] == ApiMessage.VEHICLE_PROFILE_TERMINATION_FAILED.code
    await db.refresh(association)
    assert association.association_status == AssociationStatus.DISASSOCIATED


@pytest.mark.asyncio
async def test_profile_deletion_not_retried(eng, db):
    await add_association(db)
    eng.gateways.vehicle_profile.delete.return_value = False
    await eng.terminations.terminate_association(OWNER, DeviceStatusRequest(serial_number="SN-1"))
    assert eng.gateways.vehicle_profile.delete.await_count == 1


@pytest.mark.asyncio
async def test_sim_must_be_suspended_before_termination(build_engine, db):
    eng = build_engine(AssociationFeatures(sim_suspend_check=True))
    association = await add_association(db)
    await add_sim(db, association.id, SimUserAction.ACTIVATE, SimTransactionStatus.COMPLETED, "tx-a")
    result = await eng.terminations.terminate_association(OWNER, DeviceStatusRequest(serial_number="SN-1"))
    assert result.message == ApiMessage.SIM_SUSPEND_CONDITION_FAILED
    assert result.message.category == 412

    await add_sim(db, association.id, SimUserAction.TERMINATE, SimTransactionStatus.COMPLETED, "tx-t")
    result = await eng.terminations.terminate_association(OWNER, DeviceStatusRequest(serial_number="SN-1"))
    assert result.message == ApiMessage.TERMINATE_ASSO_SUCCESS


@pytest.mark.asyncio
async def test_pending_sim_activation_blocks_termination(build_engine, db):
    eng = build_engine(AssociationFeatures(sim_suspend_check=True))
    association = await add_association(db)
    await add_sim(db, association.id, SimUserAction.ACTIVATE, SimTransactionStatus.IN_PROGRESS, "tx-a")
    result = await eng.terminations.terminate_association(OWNER, DeviceStatusRequest(serial_number="SN-1"))
    assert result.message == ApiMessage.SIM_ACTIVATION_PENDING


# ─── Terminaison M2M ───

@pytest.mark.asyncio
async def test_m2m_owner_termination_deletes_profile(eng, db):
    association = await add_association(db)
    result = await eng.terminations.terminate_m2m(OWNER, DeviceStatusRequest(serial_number="SN-1"))
    assert result.message == ApiMessage.TERMINATION_SUCCESS
    eng.gateways.vehicle_profile.delete.assert_awaited_once()
    await db.refresh(association)
    assert association.association_status == AssociationStatus.DISASSOCIATED


@pytest.mark.asyncio
async def test_m2m_delegation_termination_keeps_profile(eng, db):
    await add_association(db)
    delegation = await add_association(db, user_id="delegate-1", association_type="driver")
    request = DeviceStatusRequest(serial_number="SN-1", user_id="delegate-1")
    result = await eng.terminations.terminate_m2m(OWNER, request)

    assert result.message == ApiMessage.TERMINATION_SUCCESS
    eng.gateways.vehicle_profile.delete.assert_not_awaited()
    await db.refresh(delegation)
    assert delegation.association_status == AssociationStatus.DISASSOCIATED
    assert delegation.disassociated_by == OWNER
    assert delegation.end_timestamp == 0


@pytest.mark.asyncio
async def test_m2m_zero_rows_skips_profile_deletion(eng, db):
    await add_association(db)
    eng.state_machine.terminate_m2m = AsyncMock(return_value=0)
    result = await eng.terminations.terminate_m2m(OWNER, DeviceStatusRequest(serial_number="SN-1"))
    assert result.message == ApiMessage.NO_VALID_ASSOCIATION
    eng.gateways.vehicle_profile.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_m2m_other_user_requires_ownership(eng, db):
    await add_association(db, user_id="delegate-1", association_type="driver")
    request = DeviceStatusRequest(serial_number="SN-1", user_id="delegate-1")
    result = await eng.terminations.terminate_m2m(OTHER, request)
    assert result.message == ApiMessage.OWNER_TERMINATION_VALIDATION_FAILED


@pytest.mark.asyncio
async def test_m2m_without_single_match(eng):
    result = await eng.terminations.terminate_m2m(OWNER, DeviceStatusRequest(serial_number="SN-1"))
    assert result.message == ApiMessage.M2M_ASSOC_INTEGRITY_ERROR
    assert result.message.category == 412


@pytest.mark.asyncio
async def test_admin_request_must_not_carry_user(eng, db):
    association = await add_association(db)
    eng.state_machine.terminate_m2m = AsyncMock(return_value=1)
    request = DeviceStatusRequest(serial_number="SN-1", user_id=OWNER)
    result = await eng.terminations.terminate_m2m(OWNER, request, admin_user_id="admin-1", is_admin=True)
    assert result.message == ApiMessage.M2M_ADMIN_REQUEST_INTEGRITY_ERROR
    eng.gateways.vehicle_profile.delete.assert_not_awaited()
    assert eng.state_machine.terminate_m2m.await_count == 0
    await db.refresh(association)
    assert association.association_status == AssociationStatus.ASSOCIATED


@pytest.mark.asyncio
async def test_admin_termination_attributed_to_admin(eng, db):
    association = await add_association(db)
    request = DeviceStatusRequest(serial_number="SN-1")
    result = await eng.terminations.terminate_m2m(OWNER, request, admin_user_id="admin-1", is_admin=True)
    assert result.message == ApiMessage.TERMINATION_SUCCESS
    await db.refresh(association)
    assert association.disassociated_by == "admin-1"


@pytest.mark.asyncio
async def test_admin_termination_requires_admin_id(eng, db):
    await add_association(db)
    request = DeviceStatusRequest(serial_number="SN-1")
    result = await eng.terminations.terminate_m2m(OWNER, request, admin_user_id=" ", is_admin=True)
    assert result.message == ApiMessage.INVALID_USER_ID


@pytest.mark.asyncio
async def test_m2m_compensation_failure(eng, db):
    await add_association(db)
    eng.gateways.vehicle_profile.delete.return_value = False
    result = await eng.terminations.terminate_m2m(OWNER, DeviceStatusRequest(serial_number="SN-1"))
    assert result.kind == ErrorKind.COMPENSATION
    assert to_transport_response(result)[0] == 200


# ─── Validation seule / Validate only ───

@pytest.mark.asyncio
async def test_validate_termination_does_not_mutate(eng, db):
    association = await add_association(db)
    result = await eng.terminations.validate_termination(OWNER, DeviceStatusRequest(serial_number="SN-1"))
    assert result.message == ApiMessage.VALIDATE_PERFORM_TERMINATION_SUCCESS
    assert result.data == {"perform_terminate": True}
    await db.refresh(association)
    assert association.association_status == AssociationStatus.ASSOCIATED
    eng.gateways.vehicle_profile.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_validate_termination_of_delegation(eng, db):
    await add_association(db)
    await add_association(db, user_id="delegate-1", association_type="driver")
    request = DeviceStatusRequest(serial_number="SN-1", user_id="delegate-1")
    result = await eng.terminations.validate_termination(OWNER, request)
    assert result.data == {"perform_terminate": False}
