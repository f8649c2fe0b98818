from leaddesk.api.routes import activities, analytics, assignments, calls, leads, reports, telephony

__all__ = [
    "assignments",
    "leads",
    "activities",
    "calls",
    "telephony",
    "reports",
    "analytics",
]
