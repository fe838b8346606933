"""Repository layer modules."""

from app.repositories.supplier_repository import (
    AttachmentRepository,
    DocumentAnalysisRepository,
    SupplierRepository,
)
from app.repositories.verification_repository import DocumentVerificationRepository
from app.repositories.workflow_repository import (
    WorkflowRunRepository,
    WorkflowStepResultRepository,
)

__all__ = [
    "AttachmentRepository",
    "DocumentAnalysisRepository",
    "DocumentVerificationRepository",
    "SupplierRepository",
    "WorkflowRunRepository",
    "WorkflowStepResultRepository",
]
