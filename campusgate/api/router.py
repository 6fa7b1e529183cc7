"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter

from campusgate.api.routes import attendance, events, participants, participations, payments, tickets

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(events.router)
api_router.include_router(participations.router)
api_router.include_router(participants.router)
api_router.include_router(payments.router)
api_router.include_router(tickets.router)
api_router.include_router(attendance.router)
