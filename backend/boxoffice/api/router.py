"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from boxoffice.api.routes import auth, venues, events, performances, payments, orders, tickets

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(venues.router)
api_router.include_router(events.router)
api_router.include_router(performances.router)
api_router.include_router(payments.router)
api_router.include_router(orders.router)
api_router.include_router(tickets.router)
