"""Database module for SQLAlchemy models."""

from app.database.models import (
    Attachment,
    DocumentAnalysis,
    DocumentVerification,
    Supplier,
    SupplierAnswers,
    WorkflowRun,
    WorkflowStepResult,
)

__all__ = [
    "Attachment",
    "DocumentAnalysis",
    "DocumentVerification",
    "Supplier",
    "SupplierAnswers",
    "WorkflowRun",
    "WorkflowStepResult",
]
