from __future__ import annotations

from typing import Any

from pydantic import BaseModel, field_validator


class BulkDeleteRequest(BaseModel):
    ids: list[str] | None = None


class BulkUpdateRequest(BaseModel):
    ids: list[str] | None = None
    data: dict[str, Any] | None = None


class LoadStatusUpdate(BaseModel):
    status: str | None = None

    @field_validator("status")
    @classmethod
    def strip_status(cls, value: str | None) -> str | None:
        return value.strip() if value else value
