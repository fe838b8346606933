"""SQLAlchemy models for all database tables."""

import uuid
from datetime import datetime

from sqlalchemy import (
    ForeignKey,
    Integer,
    String,
    Text,
    TIMESTAMP,
    Boolean,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class Supplier(Base):
    """Supplier reference record, synchronized from the supplier directory."""

    __tablename__ = "suppliers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    external_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    company_name: Mapped[str | None] = mapped_column(String, nullable=True)
    fiscal_code: Mapped[str | None] = mapped_column(String, nullable=True)
    vat_number: Mapped[str | None] = mapped_column(String, nullable=True)
    address: Mapped[str | None] = mapped_column(String, nullable=True)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    province: Mapped[str | None] = mapped_column(String, nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String, nullable=True)
    country: Mapped[str | None] = mapped_column(String, nullable=True)
    soa_categories: Mapped[list[str] | None] = mapped_column(ARRAY(Text), nullable=True)
    iso_certifications: Mapped[list[str] | None] = mapped_column(
        ARRAY(Text), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", onupdate=datetime.utcnow
    )

    # Relationships
    answers: Mapped["SupplierAnswers | None"] = relationship(
        "SupplierAnswers", back_populates="supplier", uselist=False
    )


class SupplierAnswers(Base):
    """Questionnaire answers submitted by a supplier."""

    __tablename__ = "supplier_answers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("suppliers.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    answers: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", onupdate=datetime.utcnow
    )

    supplier: Mapped["Supplier"] = relationship("Supplier", back_populates="answers")


class DocumentAnalysis(Base):
    """Fields extracted from a submitted supplier document by the OCR service."""

    __tablename__ = "document_analysis"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("suppliers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_type: Mapped[str] = mapped_column(String, nullable=False)  # DURC | VISURA | SOA | ISO | CCIAA
    extracted_fields: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )


class Attachment(Base):
    """A file a supplier uploaded, tagged by document type."""

    __tablename__ = "attachments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("suppliers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_type: Mapped[str] = mapped_column(String, nullable=False)
    file_name: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )


class WorkflowRun(Base):
    """One execution of the supplier qualification pipeline."""

    __tablename__ = "workflow_runs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )
    workflow_type: Mapped[str] = mapped_column(String, nullable=False)
    triggered_by: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="running"
    )  # running | completed | failed | canceled
    overall: Mapped[str | None] = mapped_column(
        String, nullable=True
    )  # qualified | conditionally_qualified | not_qualified
    notes: Mapped[list[str]] = mapped_column(
        ARRAY(Text), nullable=False, default=list
    )
    started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False
    )
    ended_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )

    # Relationships
    steps: Mapped[list["WorkflowStepResult"]] = relationship(
        "WorkflowStepResult",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="WorkflowStepResult.order_index",
    )


class WorkflowStepResult(Base):
    """Outcome of a single step within a workflow run."""

    __tablename__ = "workflow_step_results"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    run_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("workflow_runs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    step_key: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)  # pass | fail | skip
    issues: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False, default=list)
    details: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False
    )
    ended_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    run: Mapped["WorkflowRun"] = relationship("WorkflowRun", back_populates="steps")

    __table_args__ = (
        UniqueConstraint("run_id", "order_index", name="uq_workflow_step_order"),
    )


class DocumentVerification(Base):
    """Result of one verification of a document against the supplier record."""

    __tablename__ = "document_verification"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    analysis_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("document_analysis.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    doc_type: Mapped[str] = mapped_column(String, nullable=False)
    verification_status: Mapped[str] = mapped_column(
        String, nullable=False, default="completed"
    )
    verification_result: Mapped[str] = mapped_column(
        String, nullable=False
    )  # match | mismatch | partial_match | no_data
    confidence_score: Mapped[int] = mapped_column(Integer, nullable=False)
    field_comparisons: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    discrepancies: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    ai_analysis: Mapped[str | None] = mapped_column(Text, nullable=True)
    verification_model: Mapped[str | None] = mapped_column(String, nullable=True)
    used_fallback: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    processing_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )
