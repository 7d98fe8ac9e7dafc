"""Data contracts for the stats endpoints."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class StatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    files_shared_today: int = Field(..., ge=0, serialization_alias="filesSharedToday")
    bytes_transferred_today: int = Field(..., ge=0, serialization_alias="bytesTransferredToday")
    display_count: int = Field(..., ge=0, serialization_alias="displayCount")


class FileSharedRequest(BaseModel):
    count: int = Field(default=1, ge=1, le=10_000, description="Files completed in this transfer")
    bytes: int = Field(default=0, ge=0, description="Bytes moved in this transfer")


class FileSharedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    files_shared_today: int = Field(..., serialization_alias="filesSharedToday")
