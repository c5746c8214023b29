"""
Main API Router
Aggregates all API endpoints for v1
"""

from fastapi import APIRouter
from busseats.api.v1.endpoints import (
    layouts,
    availability,
    reservations,
    health,
    monitoring
)

api_router = APIRouter()

api_router.include_router(layouts.router, prefix="/layouts", tags=["layouts"])
api_router.include_router(availability.router, prefix="/availability", tags=["availability"])
api_router.include_router(reservations.router, prefix="/reservations", tags=["reservations"])
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(monitoring.router, prefix="/monitoring", tags=["monitoring"])
