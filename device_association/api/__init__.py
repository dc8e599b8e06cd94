"""Routes API / API routes."""

from fastapi import APIRouter

from device_association.api import associations, devices, terminations, vehicles

api_router = APIRouter(prefix="/api")

api_router.include_router(associations.router, tags=["associations"])
api_router.include_router(terminations.router, tags=["terminations"])
api_router.include_router(vehicles.router, tags=["vehicles"])
api_router.include_router(devices.router, tags=["devices"])
