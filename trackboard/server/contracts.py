from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DispatchRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: str = Field(min_length=1)
    data: dict[str, Any] | None = None


class TicketRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)


class CreateColumnRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1)


class ColumnRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)


class ReorderColumnsRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    newOrderIds: list[str] = Field(default_factory=list)


class UpdateSettingsRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    projectKey: str | None = None
