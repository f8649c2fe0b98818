from pydantic import BaseModel, Field


class LeadImportRecord(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: str | None = None
    company: str | None = None
    job_title: str | None = None
    source: str = "csv_import"
    priority: int = 0
    tags: list[str] = Field(default_factory=list)


class CsvValidateRequest(BaseModel):
    content: str


class CsvValidation(BaseModel):
    records: list[LeadImportRecord] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class ImportRequest(BaseModel):
    campaign_id: int
    client_id: int | None = None
    assign_to_agent_id: int | None = None
    records: list[LeadImportRecord] = Field(min_length=1)


class ImportResult(BaseModel):
    success: bool
    imported: int = 0
    total: int = 0
    errors: list[str] = Field(default_factory=list)
    message: str = ""
