"""Qualification step catalogue and step executors."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Supplier
from app.repositories.supplier_repository import (
    AttachmentRepository,
    DocumentAnalysisRepository,
    SupplierRepository,
)
from app.schemas.verification import (
    DocumentType,
    FieldStatus,
    SupplierReference,
    VerificationResult,
)
from app.schemas.workflows.request import WorkflowOptions
from app.services.verification.verification_service import DocumentVerificationService
from app.services.workflow.cancellation import CancellationToken
from app.services.workflow.profile_validator import validate_profile
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

PASS = "pass"
FAIL = "fail"
SKIP = "skip"

# Ordered: the position here is the execution order
STEP_CATALOGUE: Mapping[str, str] = MappingProxyType({
    "registration": "Registration Check",
    "preliminary": "Preliminary Data Verification",
    "durc": "DURC Verification",
    "whitelist_insurance": "White List & Insurance",
    "visura": "Qualification Questionnaire (VISURA)",
    "certifications": "Certifications Verification",
    "soa": "SOA Verification",
    "scorecard": "Q1 Scorecard Generation",
    "finalize": "Final Outcome & Follow-up",
})

OPTIONAL_STEPS = frozenset({"soa"})

CRITICAL_STEPS = frozenset({"registration", "visura", "durc"})

WHITE_LIST = "WHITE_LIST"
INSURANCE = "INSURANCE"


@dataclass(frozen=True)
class StepDefinition:
    key: str
    name: str
    order_index: int


@dataclass
class StepOutcome:
    """What a step executor reports back to the orchestrator."""
    status: str
    issues: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)
    score: Optional[int] = None


@dataclass(frozen=True)
class CompletedStep:
    key: str
    name: str
    status: str
    issues: List[str]


@dataclass
class StepContext:
    """State shared by the steps of one run."""
    supplier_id: UUID
    options: WorkflowOptions
    run_id: Optional[UUID] = None
    cancel_token: Optional[CancellationToken] = None
    completed: List[CompletedStep] = field(default_factory=list)


StepExecutor = Callable[[StepContext], Awaitable[StepOutcome]]


def build_step_sequence(include_soa: bool = False) -> List[StepDefinition]:
    """Return the configured steps with 1-based ``order_index`` values."""
    keys = [
        key for key in STEP_CATALOGUE
        if key not in OPTIONAL_STEPS or (key == "soa" and include_soa)
    ]
    return [
        StepDefinition(key=key, name=STEP_CATALOGUE[key], order_index=index)
        for index, key in enumerate(keys, start=1)
    ]


def compute_overall(completed: List[CompletedStep]) -> str:
    """Qualification outcome for a finished run; skipped steps never count as failures."""
    failed = {step.key for step in completed if step.status == FAIL}
    if failed & CRITICAL_STEPS:
        return "not_qualified"
    if failed:
        return "conditionally_qualified"
    return "qualified"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _supplier_snapshot(supplier: Supplier) -> Dict[str, Any]:
    return {
        "id": str(supplier.id),
        "company_name": supplier.company_name,
        "fiscal_code": supplier.fiscal_code,
        "vat_number": supplier.vat_number,
        "address": supplier.address,
        "city": supplier.city,
        "province": supplier.province,
    }


def _blank(value: Optional[str]) -> bool:
    return not (value or "").strip()


def verification_issues(label: str, result: VerificationResult) -> List[str]:
    """One issue per mismatching field and per required field left unverified."""
    issues = []
    for comparison in result.field_comparisons:
        if comparison.status == FieldStatus.MISMATCH:
            issues.append(f"{label} field mismatch: {comparison.field_name}")
        elif comparison.is_required and comparison.status != FieldStatus.MATCH:
            issues.append(
                f"{label} required field {comparison.status.value}: {comparison.field_name}"
            )
    return issues


class QualificationSteps:
    """Executors for every qualification step.

    Each executor reads what it needs through the repositories and returns a
    ``StepOutcome``; errors propagate to the orchestrator's step boundary.
    """

    def __init__(
        self,
        session: AsyncSession,
        verification_service: DocumentVerificationService,
    ):
        self.session = session
        self.supplier_repo = SupplierRepository(session)
        self.analysis_repo = DocumentAnalysisRepository(session)
        self.attachment_repo = AttachmentRepository(session)
        self.verification_service = verification_service

    def executors(self) -> Dict[str, StepExecutor]:
        return {
            "registration": self.check_registration,
            "preliminary": self.check_preliminary_data,
            "durc": self.check_durc,
            "whitelist_insurance": self.check_white_list_insurance,
            "visura": self.check_visura,
            "certifications": self.check_certifications,
            "soa": self.check_soa,
            "scorecard": self.generate_scorecard,
            "finalize": self.finalize,
        }

    async def check_registration(self, ctx: StepContext) -> StepOutcome:
        supplier = await self.supplier_repo.get_by_id(ctx.supplier_id)
        if supplier is None:
            return StepOutcome(FAIL, ["Supplier not found"])

        issues = []
        if _blank(supplier.company_name):
            issues.append("Missing company name")
        if _blank(supplier.fiscal_code):
            issues.append("Missing fiscal code")
        if _blank(supplier.address):
            issues.append("Missing address")

        return StepOutcome(
            PASS if not issues else FAIL,
            issues,
            {"supplier_data": _supplier_snapshot(supplier)},
        )

    async def check_preliminary_data(self, ctx: StepContext) -> StepOutcome:
        answers = await self.supplier_repo.get_answers(ctx.supplier_id)
        if not answers:
            return StepOutcome(FAIL, ["No questionnaire answers found"])

        summary = validate_profile(answers)
        issues = [
            f"{result.field}: {result.message}"
            for result in summary.results
            if not result.is_valid
        ]
        return StepOutcome(
            PASS if summary.is_compliant else FAIL,
            issues,
            {"profile_validation": summary.to_dict()},
            score=summary.compliance_score,
        )

    async def check_durc(self, ctx: StepContext) -> StepOutcome:
        return await self._verify_latest(
            ctx,
            DocumentType.DURC,
            status_field="risultato",
            status_issue='DURC does not show "RISULTA REGOLARE" status',
        )

    async def check_visura(self, ctx: StepContext) -> StepOutcome:
        return await self._verify_latest(
            ctx,
            DocumentType.VISURA,
            status_field="stato_attivita",
            status_issue="Company activity status not confirmed as active",
        )

    async def check_soa(self, ctx: StepContext) -> StepOutcome:
        return await self._verify_latest(ctx, DocumentType.SOA, skip_when_absent=True)

    async def check_white_list_insurance(self, ctx: StepContext) -> StepOutcome:
        attachments = await self.attachment_repo.list_by_types(
            ctx.supplier_id, [WHITE_LIST, INSURANCE]
        )
        white_list = sum(1 for a in attachments if a.document_type == WHITE_LIST)
        insurance = sum(1 for a in attachments if a.document_type == INSURANCE)

        issues = []
        if ctx.options.include_white_list and white_list == 0:
            issues.append("White List documentation required but not found")
        if insurance == 0:
            issues.append("Insurance policy documentation not found")

        return StepOutcome(
            PASS if not issues else FAIL,
            issues,
            {
                "white_list_required": ctx.options.include_white_list,
                "white_list_count": white_list,
                "insurance_count": insurance,
            },
        )

    async def check_certifications(self, ctx: StepContext) -> StepOutcome:
        certificates = await self.analysis_repo.list_by_type(
            ctx.supplier_id, DocumentType.ISO.value
        )
        if not certificates:
            return StepOutcome(SKIP, ["No ISO certifications found"])

        reference = await self._reference(ctx)
        if reference is None:
            return StepOutcome(FAIL, ["Supplier not found"])

        issues = []
        valid = 0
        details: Dict[str, Any] = {"total_certifications": len(certificates)}
        for certificate in certificates:
            if ctx.cancel_token is not None and ctx.cancel_token.cancelled:
                LOGGER.info(
                    "Certification checks stopped by cancellation",
                    extra={"run_id": str(ctx.run_id), "supplier_id": str(ctx.supplier_id)},
                )
                issues.append("Certification checks interrupted: run canceled")
                details["interrupted"] = True
                break
            result = await self.verification_service.verify_document(certificate, reference)
            if any(c.status == FieldStatus.MISMATCH for c in result.field_comparisons):
                issues.append(f"ISO certification {certificate.id}: field mismatches found")
            else:
                valid += 1

        details["valid_certifications"] = valid
        return StepOutcome(
            PASS if valid > 0 else FAIL,
            issues,
            details,
            score=round(valid / len(certificates) * 100),
        )

    async def generate_scorecard(self, ctx: StepContext) -> StepOutcome:
        supplier = await self.supplier_repo.get_by_id(ctx.supplier_id)
        if supplier is None:
            return StepOutcome(FAIL, ["Cannot generate scorecard: supplier not found"])

        if supplier.company_name:
            scorecard_id = f"Q1_{re.sub(r'[^a-zA-Z0-9]', '_', supplier.company_name)}"
        else:
            scorecard_id = f"Q1_{ctx.supplier_id}"

        summary = {status: 0 for status in (PASS, FAIL, SKIP)}
        for step in ctx.completed:
            summary[step.status] = summary.get(step.status, 0) + 1

        return StepOutcome(
            PASS,
            [],
            {
                "scorecard_id": scorecard_id,
                "generated_at": _now_iso(),
                "steps_passed": summary[PASS],
                "steps_failed": summary[FAIL],
                "steps_skipped": summary[SKIP],
                "failed_steps": [s.key for s in ctx.completed if s.status == FAIL],
            },
        )

    async def finalize(self, ctx: StepContext) -> StepOutcome:
        return StepOutcome(PASS, [], {"finalized_at": _now_iso()})

    async def _reference(self, ctx: StepContext) -> Optional[SupplierReference]:
        supplier = await self.supplier_repo.get_by_id(ctx.supplier_id)
        if supplier is None:
            return None
        return SupplierReference.from_supplier(supplier)

    async def _verify_latest(
        self,
        ctx: StepContext,
        document_type: DocumentType,
        status_field: Optional[str] = None,
        status_issue: Optional[str] = None,
        skip_when_absent: bool = False,
    ) -> StepOutcome:
        label = document_type.value
        analysis = await self.analysis_repo.get_latest_by_type(ctx.supplier_id, label)
        if analysis is None:
            if skip_when_absent:
                return StepOutcome(SKIP, [f"No {label} document found"])
            return StepOutcome(FAIL, [f"No {label} document found for analysis"])

        reference = await self._reference(ctx)
        if reference is None:
            return StepOutcome(FAIL, ["Supplier not found"])

        result = await self.verification_service.verify_document(analysis, reference)
        issues = verification_issues(label, result)

        if status_field:
            status_entry = result.field(status_field)
            if status_entry is None or status_entry.status != FieldStatus.MATCH:
                issues.append(status_issue)

        LOGGER.info(
            f"{label} verification step evaluated",
            extra={
                "supplier_id": str(ctx.supplier_id),
                "overall_result": result.overall_result.value,
                "issue_count": len(issues),
            },
        )

        return StepOutcome(
            PASS if not issues else FAIL,
            issues,
            {"analysis_id": str(analysis.id), "verification_result": result.model_dump(mode="json")},
            score=result.confidence_score,
        )
