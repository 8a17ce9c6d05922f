"""CRM Pydantic v2 schemas: clients."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hrdesk.common.constants import ClientStatus


class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    status: ClientStatus = ClientStatus.active
    contract_start_date: Optional[date] = None
    contract_duration_months: Optional[int] = Field(None, ge=0, le=600)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class ClientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    status: ClientStatus
    contract_start_date: Optional[date] = None
    contract_duration_months: Optional[int] = None
    contract_end_date: Optional[date] = None
    created_at: datetime
