from pydantic import BaseModel, Field


class BatchAssignRequest(BaseModel):
    campaign_id: int
    agent_id: int
    # None assigns every unassigned lead in the campaign.
    count: int | None = Field(default=None, ge=1)


class AutoDistributeRequest(BaseModel):
    campaign_id: int


class ReassignRequest(BaseModel):
    lead_id: int
    new_agent_id: int


class BulkReassignRequest(BaseModel):
    lead_ids: list[int]
    new_agent_id: int


class AssignmentResult(BaseModel):
    success: bool = True
    message: str
    count: int
    lead_ids: list[int] = Field(default_factory=list)
    skipped: list[int] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
