from pydantic import BaseModel


class DashboardKpis(BaseModel):
    calls_today: int
    leads_today: int
    qualified_last_7_days: int
    month_revenue: float
    month_conversion_rate: float
