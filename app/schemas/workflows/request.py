from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class WorkflowOptions(BaseModel):
    """Options controlling which steps a qualification run includes."""

    include_soa: bool = Field(False, description="Run the SOA verification step")
    include_white_list: bool = Field(
        False, description="Require White List documentation in the insurance step"
    )
    triggered_by: Optional[str] = Field(
        None, description="User or system that requested the run"
    )


class StartWorkflowRequest(WorkflowOptions):
    """Request model for starting a full qualification run."""

    supplier_id: UUID = Field(..., description="Supplier to qualify")


class RunSingleStepRequest(BaseModel):
    """Request model for running or retrying one step in isolation."""

    supplier_id: UUID = Field(..., description="Supplier to verify")
    step_key: str = Field(..., description="Step to run", examples=["durc"])
    include_white_list: bool = Field(
        False, description="Require White List documentation in the insurance step"
    )
    triggered_by: Optional[str] = None


class CancelWorkflowRequest(BaseModel):
    """Request model for canceling the supplier's running qualification."""

    supplier_id: UUID = Field(..., description="Supplier whose run should stop")
