from datetime import date, datetime

from pydantic import BaseModel, ConfigDict


class DateLockRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    module_key: str | None = None


class DateLockResponse(BaseModel):
    report_date: date
    locked: bool
    locked_by: str | None = None
    locked_by_module_key: str | None = None
    locked_at: datetime | None = None
