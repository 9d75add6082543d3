# support_inbox/stats/schemas.py
import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class StatsSummary(BaseModel):
    total: int
    open: int
    pending: int
    resolved: int
    high_priority: int = Field(alias="highPriority")

    model_config = ConfigDict(populate_by_name=True)


class DailyCount(BaseModel):
    date: dt.date
    count: int


class StatsOut(StatsSummary):
    last_7_days: list[DailyCount] = Field(alias="last7Days")
