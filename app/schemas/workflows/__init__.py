from app.schemas.workflows.request import (
    CancelWorkflowRequest,
    RunSingleStepRequest,
    StartWorkflowRequest,
    WorkflowOptions,
)
from app.schemas.workflows.response import (
    ApiResponse,
    ErrorDetail,
    ResponseMeta,
    WorkflowRunResult,
    WorkflowStepResultSchema,
)

__all__ = [
    "ApiResponse",
    "CancelWorkflowRequest",
    "ErrorDetail",
    "ResponseMeta",
    "RunSingleStepRequest",
    "StartWorkflowRequest",
    "WorkflowOptions",
    "WorkflowRunResult",
    "WorkflowStepResultSchema",
]
