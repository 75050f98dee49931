"""Normalized records returned by the resource gateway."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class GatewayModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ResourceType(GatewayModel):
    """A runnable actor on the remote platform."""

    id: str
    name: str
    description: str = ""
    category: str = "general"
    input_schema: dict[str, Any] | None = Field(default=None, alias="inputSchema")


class GatheringTask(GatewayModel):
    """One run of an actor."""

    id: str
    status: TaskStatus
    created_at: str = Field(default="", alias="createdAt")
    completed_at: str | None = Field(default=None, alias="completedAt")
    dataset_id: str | None = Field(default=None, alias="datasetId")
    item_count: int | None = Field(default=None, alias="itemCount")
    error: str | None = None


class StoredResource(GatewayModel):
    """Metadata of a dataset holding run output."""

    id: str
    name: str | None = None
    item_count: int | None = Field(default=None, alias="itemCount")
    created_at: str | None = Field(default=None, alias="createdAt")
    modified_at: str | None = Field(default=None, alias="modifiedAt")
