from .verification import (
    DocumentType,
    FieldStatus,
    OverallResult,
    RuleType,
    SupplierReference,
    VerificationField,
    VerificationResult,
)
from .workflows import (
    ApiResponse,
    StartWorkflowRequest,
    RunSingleStepRequest,
    CancelWorkflowRequest,
    WorkflowRunResult,
)

__all__ = [
    "DocumentType",
    "FieldStatus",
    "OverallResult",
    "RuleType",
    "SupplierReference",
    "VerificationField",
    "VerificationResult",
    "ApiResponse",
    "StartWorkflowRequest",
    "RunSingleStepRequest",
    "CancelWorkflowRequest",
    "WorkflowRunResult",
]
