import json
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, field_validator

from apartment_admin.schemas.common import Pagination


class AuditLogOut(BaseModel):
    id: int
    entity: str
    entity_id: Optional[int] = None
    action: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("old_value", "new_value", mode="before")
    @classmethod
    def parse_json(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except ValueError:
                return v
        return v


class AuditLogListOut(BaseModel):
    audit_logs: list[AuditLogOut]
    pagination: Pagination
