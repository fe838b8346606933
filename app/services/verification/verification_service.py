"""Document verification against a supplier's reference record."""

import time
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import DocumentAnalysis
from app.repositories.verification_repository import DocumentVerificationRepository
from app.schemas.verification import (
    DocumentType,
    FieldStatus,
    RuleType,
    SupplierReference,
    VerificationField,
    VerificationResult,
)
from app.services.verification.field_comparator import FieldComparator
from app.services.verification.reasoning_service import FieldReasoningService
from app.services.verification.result_aggregator import aggregate, fallback_analysis
from app.services.verification.strategies import (
    VerificationStrategy,
    field_text,
    get_strategy,
)
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


def resolve_reference_value(reference: SupplierReference, attribute: Optional[str]) -> Optional[str]:
    """Read the reference attribute a strategy maps a field to."""
    if not attribute:
        return None
    value = getattr(reference, attribute, None)
    return field_text(value)


class DocumentVerificationService:
    """Verifies extracted document fields and records the outcome.

    Flow per invocation: strategy lookup, one comparison per rule, structural
    checks, aggregation, narrative, and (for stored documents) persistence.
    """

    def __init__(
        self,
        session: AsyncSession,
        reasoning_service: Optional[FieldReasoningService] = None,
        today: Callable[[], date] = date.today,
    ):
        self.session = session
        self.reasoning_service = reasoning_service
        self.today = today
        self.comparator = FieldComparator(reasoning_service, today=today)
        self.verification_repo = DocumentVerificationRepository(session)

    async def verify(
        self,
        document_type: Union[DocumentType, str],
        extracted_fields: Mapping[str, Any],
        reference: SupplierReference,
    ) -> VerificationResult:
        """Verify extracted fields without persisting the outcome.

        Args:
            document_type: Type of the verified document
            extracted_fields: Field name to extracted value
            reference: Supplier reference record

        Returns:
            Aggregated VerificationResult

        Raises:
            UnsupportedDocumentTypeError: If no strategy exists for the type
        """
        strategy = get_strategy(document_type)
        comparisons = await self.build_comparisons(strategy, extracted_fields, reference)
        overall, confidence, discrepancies = aggregate(comparisons)

        analysis = None
        if comparisons and self.reasoning_service is not None:
            analysis = await self.reasoning_service.generate_analysis(
                strategy.context, extracted_fields, reference, comparisons
            )
        narrative_fallback = analysis is None
        if narrative_fallback:
            analysis = fallback_analysis(comparisons)

        LOGGER.info(
            "Document verification completed",
            extra={
                "document_type": strategy.document_type.value,
                "overall_result": overall.value,
                "confidence_score": confidence,
                "field_count": len(comparisons),
            },
        )

        return VerificationResult(
            document_type=strategy.document_type,
            overall_result=overall,
            confidence_score=confidence,
            field_comparisons=comparisons,
            discrepancies=discrepancies,
            ai_analysis=analysis,
            used_fallback=narrative_fallback or any(c.used_fallback for c in comparisons),
        )

    async def verify_document(
        self, analysis: DocumentAnalysis, reference: SupplierReference
    ) -> VerificationResult:
        """Verify a stored document extraction and persist the result.

        Args:
            analysis: Document extraction record
            reference: Supplier reference record

        Returns:
            Aggregated VerificationResult
        """
        started = time.perf_counter()
        result = await self.verify(
            analysis.document_type, analysis.extracted_fields or {}, reference
        )
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        await self.verification_repo.save_result(
            analysis_id=analysis.id,
            supplier_id=analysis.supplier_id,
            doc_type=result.document_type.value,
            result=result,
            verification_model=self._model_name(),
            processing_time_ms=elapsed_ms,
        )
        return result

    async def build_comparisons(
        self,
        strategy: VerificationStrategy,
        extracted_fields: Mapping[str, Any],
        reference: SupplierReference,
    ) -> List[VerificationField]:
        """Run every rule, then fold in the structural checks.

        A structural check on a field that already has a rule does not add a
        second entry; a failing check's note is appended to the rule's entry.
        """
        comparisons: List[VerificationField] = []
        by_field: Dict[str, int] = {}

        for rule in strategy.rules:
            ocr_value = field_text(extracted_fields.get(rule.field))
            reference_value = resolve_reference_value(
                reference, strategy.reference_attribute(rule.field)
            )
            entry = await self.comparator.compare(rule, ocr_value, reference_value)
            by_field.setdefault(rule.field, len(comparisons))
            comparisons.append(entry)

        for check in strategy.validate(extracted_fields, self.today()):
            index = by_field.get(check.field)
            if index is not None:
                if check.status != FieldStatus.MATCH:
                    entry = comparisons[index]
                    notes = f"{entry.notes}; {check.notes}" if entry.notes else check.notes
                    comparisons[index] = entry.model_copy(update={"notes": notes})
                continue

            comparisons.append(VerificationField(
                field_name=check.field,
                ocr_value=field_text(extracted_fields.get(check.field)),
                api_value=None,
                rule_type=RuleType.DOCUMENT_SPECIFIC,
                threshold=100,
                is_required=False,
                match_score=100 if check.status == FieldStatus.MATCH else 0,
                status=check.status,
                notes=check.notes,
            ))

        return comparisons

    def _model_name(self) -> Optional[str]:
        if self.reasoning_service is not None and self.reasoning_service.available:
            return self.reasoning_service.model
        return None
