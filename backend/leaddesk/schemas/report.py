from datetime import date, datetime

from pydantic import BaseModel, Field


class ReportSummary(BaseModel):
    total_calls: int
    total_leads: int
    qualified_leads: int
    closed_won: int
    revenue: float
    conversion_rate: float


class CampaignRollup(BaseModel):
    id: int
    name: str
    client: str
    leads_generated: int
    qualified_leads: int
    status: str


class AgentRollup(BaseModel):
    id: int
    name: str
    calls: int
    leads_converted: int
    avg_call_duration: int


class DailyBucket(BaseModel):
    date: str
    calls: int
    leads: int
    qualified: int


class ReportData(BaseModel):
    summary: ReportSummary
    campaigns: list[CampaignRollup] = Field(default_factory=list)
    agents: list[AgentRollup] = Field(default_factory=list)
    daily_breakdown: list[DailyBucket] = Field(default_factory=list)


class ReportGenerateRequest(BaseModel):
    report_type: str = Field(min_length=1, max_length=50)
    period_start: date
    period_end: date


class ReportResponse(BaseModel):
    id: int
    organization_id: int
    created_by: int
    name: str
    report_type: str
    period_start: date
    period_end: date
    data: ReportData
    created_at: datetime

    class Config:
        from_attributes = True


class ReportListResponse(BaseModel):
    reports: list[ReportResponse]
    total: int
    limit: int
    offset: int
