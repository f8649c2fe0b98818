from datetime import datetime

from pydantic import BaseModel, Field

from leaddesk.models.call import CallDirection, CallOutcome
from leaddesk.models.lead import LeadStatus


class CallOutcomeRequest(BaseModel):
    lead_id: int
    outcome: CallOutcome
    duration_seconds: int = Field(default=0, ge=0)
    notes: str | None = None
    callback_at: datetime | None = None


class CallCreateRequest(BaseModel):
    phone_number: str = Field(min_length=3, max_length=40)
    lead_id: int | None = None


class CallSidUpdate(BaseModel):
    call_sid: str = Field(min_length=1, max_length=64)


class CallResponse(BaseModel):
    id: int
    lead_id: int | None
    agent_id: int | None
    phone_number: str
    direction: CallDirection
    status: str
    outcome: CallOutcome | None
    duration_seconds: int
    notes: str | None
    provider_call_sid: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class PreparedCall(BaseModel):
    call: CallResponse
    caller_id: str


class CallOutcomeResult(BaseModel):
    success: bool = True
    call: CallResponse
    lead_status: LeadStatus
    lead_score: int
