"""Passerelles vers les services externes / Gateways to external services."""

from device_association.gateways.events import EventPublisher
from device_association.gateways.sim_state import SimStateGateway
from device_association.gateways.user_directory import UserDirectory
from device_association.gateways.vehicle_profile import VehicleProfileService

__all__ = ["EventPublisher", "SimStateGateway", "UserDirectory", "VehicleProfileService"]
