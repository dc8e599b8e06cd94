"""Fixtures communes / Shared fixtures."""

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DEBUG", "false")

from dataclasses import dataclass, field  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import device_association.models  # noqa: E402,F401
from device_association.config import AssociationFeatures, Settings  # noqa: E402
from device_association.database import Base, seed_association_types  # noqa: E402
from device_association.gateways import (  # noqa: E402
    EventPublisher,
    SimStateGateway,
    UserDirectory,
    VehicleProfileService,
)
from device_association.repository import AssociationRepository  # noqa: E402
from device_association.services.associations import AssociationService  # noqa: E402
from device_association.services.device_items import BatchItemReconciler  # noqa: E402
from device_association.services.preconditions import PreconditionValidator  # noqa: E402
from device_association.services.state_machine import AssociationStateMachine  # noqa: E402
from device_association.services.termination import TerminationOrchestrator  # noqa: E402
from device_association.services.vin_association import VinAssociationCoordinator  # noqa: E402
from device_association.services.wipe import WipeCoordinator  # noqa: E402


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory, test_settings):
    async with session_factory() as session:
        await seed_association_types(session, test_settings.ASSOCIATION_TYPES)
        await session.commit()
        yield session


@pytest.fixture
def test_settings():
    return Settings(_env_file=None, DEBUG=False)


@pytest.fixture
def features():
    return AssociationFeatures()


@pytest.fixture
def gateways():
    return make_gateways()


def make_gateways() -> "Gateways":
    vehicle_profile = MagicMock(spec=VehicleProfileService)
    vehicle_profile.resolve_delete_url.side_effect = lambda device_id: f"http://vp/v1/vehicleProfiles?clientId={device_id}"
    vehicle_profile.delete = AsyncMock(return_value=True)
    vehicle_profile.decode_vin = AsyncMock(return_value={"model_code": "M1", "model_name": "Model 1", "type": "ORANGE"})

    user_directory = MagicMock(spec=UserDirectory)
    user_directory.get_attribute = AsyncMock(return_value="US")
    user_directory.find_user_id = AsyncMock(return_value="delegate-1")

    sim_state = MagicMock(spec=SimStateGateway)
    sim_state.change_state = AsyncMock(return_value="tx-1")

    events = MagicMock(spec=EventPublisher)
    events.publish = AsyncMock(return_value=True)
    return Gateways(vehicle_profile, user_directory, sim_state, events)


@dataclass
class Gateways:
    vehicle_profile: MagicMock
    user_directory: MagicMock
    sim_state: MagicMock
    events: MagicMock


@dataclass
class Engine:
    """Services assembles sur une session de test / Services wired on a test session."""
    db: AsyncSession
    settings: Settings
    features: AssociationFeatures
    gateways: Gateways
    repo: AssociationRepository = field(init=False)
    validator: PreconditionValidator = field(init=False)
    state_machine: AssociationStateMachine = field(init=False)
    associations: AssociationService = field(init=False)
    terminations: TerminationOrchestrator = field(init=False)
    vin: VinAssociationCoordinator = field(init=False)
    items: BatchItemReconciler = field(init=False)
    wipe: WipeCoordinator = field(init=False)

    def __post_init__(self):
        g = self.gateways
        self.repo = AssociationRepository(self.db)
        self.validator = PreconditionValidator(
            self.repo, g.user_directory, g.vehicle_profile, self.features, self.settings,
        )
        self.state_machine = AssociationStateMachine(self.repo, self.validator, g.events, self.settings)
        self.associations = AssociationService(self.repo, self.state_machine)
        self.terminations = TerminationOrchestrator(self.repo, self.validator, self.state_machine, g.vehicle_profile)
        self.vin = VinAssociationCoordinator(
            self.repo, self.validator, self.state_machine, g.user_directory, g.sim_state, self.features,
        )
        self.items = BatchItemReconciler(self.repo, self.settings)
        self.wipe = WipeCoordinator(self.repo, self.state_machine, self.terminations)


@pytest.fixture
def build_engine(db, test_settings, gateways):
    def _build(features: AssociationFeatures | None = None, settings: Settings | None = None) -> Engine:
        return Engine(db, settings or test_settings, features or AssociationFeatures(), gateways)
    return _build


@pytest.fixture
def eng(build_engine, features):
    return build_engine(features)

