from leaddesk.models.organization import Organization
from leaddesk.models.user import Profile, UserRole
from leaddesk.models.client import Client
from leaddesk.models.campaign import Campaign, CampaignStatus
from leaddesk.models.lead import Lead, LeadStatus, QUALIFIED_STATUSES, TERMINAL_STATUSES
from leaddesk.models.call import Call, CallDirection, CallOutcome
from leaddesk.models.activity import Activity, ActivityType
from leaddesk.models.report import Report

__all__ = [
    "Organization",
    "Profile",
    "UserRole",
    "Client",
    "Campaign",
    "CampaignStatus",
    "Lead",
    "LeadStatus",
    "QUALIFIED_STATUSES",
    "TERMINAL_STATUSES",
    "Call",
    "CallDirection",
    "CallOutcome",
    "Activity",
    "ActivityType",
    "Report",
]
