from fastapi import APIRouter

from leaddesk.api.routes import activities, analytics, assignments, calls, leads, reports, telephony

api_router = APIRouter()
api_router.include_router(assignments.router)
api_router.include_router(leads.router)
api_router.include_router(activities.router)
api_router.include_router(calls.router)
api_router.include_router(telephony.router)
api_router.include_router(reports.router)
api_router.include_router(analytics.router)
