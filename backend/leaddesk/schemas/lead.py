from datetime import datetime

from pydantic import BaseModel, Field

from leaddesk.models.lead import LeadStatus


class LeadStatusUpdate(BaseModel):
    status: LeadStatus
    notes: str | None = None


class LeadNoteCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class CallbackSchedule(BaseModel):
    callback_at: datetime
    notes: str | None = None


class LeadResponse(BaseModel):
    id: int
    campaign_id: int | None
    client_id: int | None
    assigned_agent_id: int | None
    first_name: str
    last_name: str
    phone: str
    email: str | None
    company: str | None
    job_title: str | None
    source: str | None
    tags: list[str]
    status: LeadStatus
    priority: int
    score: int
    created_at: datetime
    updated_at: datetime
    last_contacted_at: datetime | None
    next_follow_up_at: datetime | None

    class Config:
        from_attributes = True


class AgentQueue(BaseModel):
    new_today: list[LeadResponse] = Field(default_factory=list)
    callbacks: list[LeadResponse] = Field(default_factory=list)
    follow_ups: list[LeadResponse] = Field(default_factory=list)
    unresponsive: list[LeadResponse] = Field(default_factory=list)
