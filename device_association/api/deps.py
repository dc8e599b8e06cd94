"""
Dépendances des routes / Route dependencies.
En-têtes d'identité, passerelles externes et assemblage des services, injectés via Depends().
"""

from fastapi import Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from device_association.config import AssociationFeatures, settings
from device_association.database import get_db
from device_association.gateways import EventPublisher, SimStateGateway, UserDirectory, VehicleProfileService
from device_association.repository import AssociationRepository
from device_association.results import Result, to_transport_response
from device_association.services.associations import AssociationService
from device_association.services.device_items import BatchItemReconciler
from device_association.services.preconditions import PreconditionValidator
from device_association.services.state_machine import AssociationStateMachine
from device_association.services.termination import TerminationOrchestrator
from device_association.services.vin_association import VinAssociationCoordinator
from device_association.services.wipe import WipeCoordinator


def respond(result: Result) -> JSONResponse:
    """Resultat -> reponse HTTP / Result -> HTTP response."""
    status_code, body = to_transport_response(result)
    return JSONResponse(status_code=status_code, content=body)


# ─── En-têtes / Headers ───

async def get_user_id(user_id: str | None = Header(None, alias="user-id")) -> str | None:
    """Utilisateur authentifie par la passerelle / User authenticated by the gateway.

    Le controle de presence est fait par IdentityGate, pas ici.
    """
    return user_id


async def get_admin_id(admin_id: str | None = Header(None, alias="admin-id")) -> str | None:
    return admin_id


# ─── Passerelles / Gateways ───

def get_vehicle_profile() -> VehicleProfileService:
    return VehicleProfileService()


def get_user_directory() -> UserDirectory:
    return UserDirectory()


def get_sim_state() -> SimStateGateway:
    return SimStateGateway()


def get_event_publisher() -> EventPublisher:
    return EventPublisher()


def get_features() -> AssociationFeatures:
    return AssociationFeatures.from_settings(settings)


# ─── Services ───

async def get_repository(db: AsyncSession = Depends(get_db)) -> AssociationRepository:
    return AssociationRepository(db)


async def get_validator(
    repo: AssociationRepository = Depends(get_repository),
    user_directory: UserDirectory = Depends(get_user_directory),
    vehicle_profile: VehicleProfileService = Depends(get_vehicle_profile),
    features: AssociationFeatures = Depends(get_features),
) -> PreconditionValidator:
    return PreconditionValidator(repo, user_directory, vehicle_profile, features, settings)


async def get_state_machine(
    repo: AssociationRepository = Depends(get_repository),
    validator: PreconditionValidator = Depends(get_validator),
    events: EventPublisher = Depends(get_event_publisher),
) -> AssociationStateMachine:
    return AssociationStateMachine(repo, validator, events, settings)


async def get_association_service(
    repo: AssociationRepository = Depends(get_repository),
    state_machine: AssociationStateMachine = Depends(get_state_machine),
) -> AssociationService:
    return AssociationService(repo, state_machine)


async def get_termination_orchestrator(
    repo: AssociationRepository = Depends(get_repository),
    validator: PreconditionValidator = Depends(get_validator),
    state_machine: AssociationStateMachine = Depends(get_state_machine),
    vehicle_profile: VehicleProfileService = Depends(get_vehicle_profile),
) -> TerminationOrchestrator:
    return TerminationOrchestrator(repo, validator, state_machine, vehicle_profile)


async def get_vin_coordinator(
    repo: AssociationRepository = Depends(get_repository),
    validator: PreconditionValidator = Depends(get_validator),
    state_machine: AssociationStateMachine = Depends(get_state_machine),
    user_directory: UserDirectory = Depends(get_user_directory),
    sim_state: SimStateGateway = Depends(get_sim_state),
    features: AssociationFeatures = Depends(get_features),
) -> VinAssociationCoordinator:
    return VinAssociationCoordinator(repo, validator, state_machine, user_directory, sim_state, features)


async def get_item_reconciler(repo: AssociationRepository = Depends(get_repository)) -> BatchItemReconciler:
    return BatchItemReconciler(repo, settings)


async def get_wipe_coordinator(
    repo: AssociationRepository = Depends(get_repository),
    state_machine: AssociationStateMachine = Depends(get_state_machine),
    terminations: TerminationOrchestrator = Depends(get_termination_orchestrator),
) -> WipeCoordinator:
    return WipeCoordinator(repo, state_machine, terminations)
