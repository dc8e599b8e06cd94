"""Tests rattachement VIN et SIM / VIN association and SIM tests."""

import httpx
import pytest
from sqlalchemy import select

from device_association.config import AssociationFeatures, Settings
from device_association.gateways.sim_state import SIM_STATE_ACTIVE, SIM_STATE_SUSPEND, SimStateGateway
from device_association.models.association import AssociationStatus
from device_association.models.sim_details import SimDetails, SimTransactionStatus, SimUserAction
from device_association.models.vin_details import VinDetails
from device_association.results import ApiMessage, ErrorKind, Ok
from device_association.schemas.association import SimSuspendRequest, VinAssociationRequest
from device_association.utils.clock import now_iso
from tests.factories import OWNER, add_association, add_factory


def vin_request(vin="VIN-1", imei="IMEI-1"):
    return VinAssociationRequest(vin=vin, imei=imei)


# ─── VIN ───

@pytest.mark.asyncio
async def test_associate_vin(eng, db):
    association = await add_association(db)
    result = await eng.vin.associate_vin(OWNER, vin_request())
    assert isinstance(result, Ok)
    assert result.message == ApiMessage.VIN_ASSO_SUCCESS
    assert result.data == {"association_id": association.id, "vin": "VIN-1", "region": "US"}
    row = (await db.execute(select(VinDetails).where(VinDetails.reference_id == association.id))).scalar_one()
    assert row.region == "US"


@pytest.mark.asyncio
async def test_vin_feature_disabled(build_engine, db):
    eng = build_engine(AssociationFeatures(vin_association_enabled=False))
    await add_association(db)
    result = await eng.vin.associate_vin(OWNER, vin_request())
    assert result.message == ApiMessage.VIN_ASSO_NOT_ENABLED


@pytest.mark.asyncio
async def test_vin_user_checked_first(build_engine):
    eng = build_engine(AssociationFeatures(vin_association_enabled=False))
    result = await eng.vin.associate_vin(None, vin_request())
    assert result.message == ApiMessage.INVALID_USER_ID


@pytest.mark.asyncio
async def test_vin_requires_association(eng):
    result = await eng.vin.associate_vin(OWNER, vin_request())
    assert result.message == ApiMessage.ASSO_NOT_FOUND
    assert result.message.category == 412


@pytest.mark.asyncio
async def test_vin_already_attached(eng, db):
    await add_association(db, vin="VIN-0")
    result = await eng.vin.associate_vin(OWNER, vin_request())
    assert result.message == ApiMessage.VIN_ALREADY_ASSO


@pytest.mark.asyncio
async def test_vin_held_by_other_device(eng, db):
    await add_association(db)
    await add_association(db, user_id="other", serial_number="SN-2", imei="IMEI-2", device_id="HU-2", vin="VIN-1")
    result = await eng.vin.associate_vin(OWNER, vin_request())
    assert result.message == ApiMessage.VIN_ALREADY_ASSO_WITH_OTHER_DEVICE


@pytest.mark.asyncio
async def test_missing_region(eng, db):
    await add_association(db)
    eng.gateways.user_directory.get_attribute.return_value = None
    result = await eng.vin.associate_vin(OWNER, vin_request())
    assert result.message == ApiMessage.USER_DETAILS_NOT_FOUND


@pytest.mark.asyncio
async def test_dongle_mismatch_disassociates(build_engine, db):
    eng = build_engine(AssociationFeatures(vin_decode_check_enabled=True))
    await add_factory(db, model="HSA-15TN-SB")
    association = await add_association(db)
    result = await eng.vin.associate_vin(OWNER, vin_request())

    assert result.message == ApiMessage.DONGLE_TYPE_MISMATCHED
    await db.refresh(association)
    assert association.association_status == AssociationStatus.DISASSOCIATED
    assert await eng.repo.vin_for_association(association.id) is None


@pytest.mark.asyncio
async def test_dongle_match(build_engine, db):
    eng = build_engine(AssociationFeatures(vin_decode_check_enabled=True))
    await add_factory(db, model="HSA-15TN-SA")
    await add_association(db)
    result = await eng.vin.associate_vin(OWNER, vin_request())
    assert result.message == ApiMessage.VIN_ASSO_SUCCESS


@pytest.mark.asyncio
async def test_decode_failure(build_engine, db):
    eng = build_engine(AssociationFeatures(vin_decode_check_enabled=True))
    await add_factory(db, model="HSA-15TN-SA")
    await add_association(db)
    eng.gateways.vehicle_profile.decode_vin.side_effect = httpx.ConnectError("down")
    result = await eng.vin.associate_vin(OWNER, vin_request())
    assert result.kind == ErrorKind.TECHNICAL
    assert result.message == ApiMessage.VIN_DECODE_API_FAILURE


@pytest.mark.asyncio
async def test_whitelisted_model(build_engine, db):
    settings = Settings(_env_file=None, WHITELISTED_MODELS={"US": ["M2"]})
    eng = build_engine(AssociationFeatures(whitelisted_model_check=True), settings)
    await add_association(db)
    result = await eng.vin.associate_vin(OWNER, vin_request())
    assert result.message == ApiMessage.MODEL_NOT_FOUND_IN_WHITELISTED_MODELS


@pytest.mark.asyncio
async def test_empty_whitelist(build_engine, db):
    eng = build_engine(AssociationFeatures(whitelisted_model_check=True))
    await add_association(db)
    result = await eng.vin.associate_vin(OWNER, vin_request())
    assert result.message == ApiMessage.WHITELISTED_MODELS_IS_EMPTY


@pytest.mark.asyncio
async def test_sim_activation_records_transaction(build_engine, db):
    eng = build_engine(AssociationFeatures(sim_activation_enabled=True))
    await add_factory(db, imsi="IMSI-1")
    association = await add_association(db)
    result = await eng.vin.associate_vin(OWNER, vin_request())

    assert result.message == ApiMessage.VIN_ASSO_SUCCESS
    eng.gateways.sim_state.change_state.assert_awaited_once_with("IMSI-1", "US", SIM_STATE_ACTIVE)
    sim = await eng.repo.latest_sim_transaction(association.id, SimUserAction.ACTIVATE)
    assert sim.transaction_id == "tx-1"
    assert sim.tran_status == SimTransactionStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_sim_activation_failure_disassociates(build_engine, db):
    eng = build_engine(AssociationFeatures(sim_activation_enabled=True))
    await add_factory(db, imsi="IMSI-1")
    association = await add_association(db)
    eng.gateways.sim_state.change_state.return_value = None
    result = await eng.vin.associate_vin(OWNER, vin_request())

    assert result.message == ApiMessage.SIM_ACTIVATION_FAILED
    await db.refresh(association)
    assert association.association_status == AssociationStatus.DISASSOCIATED


# ─── SIM ───

async def activated(db, association_id, status=SimTransactionStatus.COMPLETED):
    db.add(SimDetails(
        transaction_id="tx-a",
        reference_id=association_id,
        tran_status=status,
        user_action=SimUserAction.ACTIVATE,
        created_on=now_iso(),
    ))
    await db.flush()


@pytest.mark.asyncio
async def test_sim_suspend(eng, db):
    await add_factory(db, imsi="IMSI-1")
    association = await add_association(db, vin="VIN-1")
    await activated(db, association.id)
    eng.gateways.sim_state.change_state.return_value = "tx-s"
    result = await eng.vin.sim_suspend(OWNER, SimSuspendRequest(imei="IMEI-1"))

    assert result.message == ApiMessage.SIM_SUSPEND_INITIATION_SUCCESS
    assert result.message.category == 202
    assert result.data == {"transaction_id": "tx-s"}
    eng.gateways.sim_state.change_state.assert_awaited_once_with("IMSI-1", "US", SIM_STATE_SUSPEND)
    sim = await eng.repo.latest_sim_transaction(association.id, SimUserAction.TERMINATE)
    assert sim.transaction_id == "tx-s"


@pytest.mark.asyncio
async def test_sim_suspend_requires_completed_activation(eng, db):
    association = await add_association(db, vin="VIN-1")
    await activated(db, association.id, SimTransactionStatus.IN_PROGRESS)
    result = await eng.vin.sim_suspend(OWNER, SimSuspendRequest(imei="IMEI-1"))
    assert result.message == ApiMessage.SIM_SUSPEND_FAILED


@pytest.mark.asyncio
async def test_sim_suspend_without_imsi(eng, db):
    association = await add_association(db, vin="VIN-1")
    await activated(db, association.id)
    result = await eng.vin.sim_suspend(OWNER, SimSuspendRequest(imei="IMEI-1"))
    assert result.message == ApiMessage.GENERAL_ERROR
    eng.gateways.sim_state.change_state.assert_not_awaited()


@pytest.mark.asyncio
async def test_sim_transaction_callback(eng, db):
    association = await add_association(db)
    await activated(db, association.id, SimTransactionStatus.IN_PROGRESS)
    result = await eng.vin.update_sim_transaction("tx-a", "COMPLETED")
    assert result.data == {"transaction_id": "tx-a", "status": "COMPLETED"}

    result = await eng.vin.update_sim_transaction("tx-unknown", "FAILED")
    assert result.message == ApiMessage.SIM_TRANSACTION_NOT_FOUND
    assert result.message.category == 404


@pytest.mark.asyncio
async def test_unknown_dongle_model_is_a_mismatch(build_engine, db):
    eng = build_engine(AssociationFeatures(vin_decode_check_enabled=True))
    await add_factory(db, model="XYZ-UNKNOWN")
    association = await add_association(db)
    result = await eng.vin.associate_vin(OWNER, vin_request())

    assert result.message == ApiMessage.DONGLE_TYPE_MISMATCHED
    eng.gateways.vehicle_profile.decode_vin.assert_not_awaited()
    await db.refresh(association)
    assert association.association_status == AssociationStatus.DISASSOCIATED


@pytest.mark.asyncio
async def test_sim_gateway_unreachable_disassociates(build_engine, db, monkeypatch):
    def unreachable(request):
        raise httpx.ConnectError("sim manager down", request=request)

    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        httpx, "AsyncClient", lambda **kwargs: real_client(transport=httpx.MockTransport(unreachable), **kwargs),
    )
    eng = build_engine(AssociationFeatures(sim_activation_enabled=True))
    eng.vin.sim_state = SimStateGateway(url="http://sim/state")
    await add_factory(db, imsi="IMSI-1")
    association = await add_association(db)
    result = await eng.vin.associate_vin(OWNER, vin_request())

    assert result.message == ApiMessage.SIM_ACTIVATION_FAILED
    await db.refresh(association)
    assert association.association_status == AssociationStatus.DISASSOCIATED
