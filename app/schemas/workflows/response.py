from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class WorkflowStepResultSchema(BaseModel):
    """Outcome of one step within a run."""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    step_key: str
    name: str
    status: str = Field(..., description="pass | fail | skip")
    issues: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)
    score: Optional[int] = None
    order_index: int = Field(..., gt=0)
    started_at: datetime
    ended_at: Optional[datetime] = None


class WorkflowRunResult(BaseModel):
    """A workflow run with its steps in execution order."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    supplier_id: UUID
    workflow_type: str
    status: str = Field(..., description="running | completed | failed | canceled")
    overall: Optional[str] = Field(
        None, description="qualified | conditionally_qualified | not_qualified"
    )
    notes: List[str] = Field(default_factory=list)
    steps: List[WorkflowStepResultSchema] = Field(default_factory=list)
    started_at: datetime
    ended_at: Optional[datetime] = None


class ResponseMeta(BaseModel):
    """Metadata attached to every API response."""

    timestamp: datetime
    request_id: str
    api_version: str = "v1"


class ApiResponse(BaseModel):
    """Standard API response envelope."""

    status: bool = True
    message: str = "Operation successful"
    data: Dict[str, Any] = Field(default_factory=dict)
    meta: ResponseMeta


class ErrorDetail(BaseModel):
    """Problem-details style error payload."""

    title: str
    status: int
    detail: str
    instance: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime
