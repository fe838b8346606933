from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import DocumentVerification
from app.repositories.base_repository import BaseRepository
from app.schemas.verification import VerificationResult


class DocumentVerificationRepository(BaseRepository[DocumentVerification]):
    """Repository for persisted document verification results."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, DocumentVerification)

    async def save_result(
        self,
        analysis_id: UUID,
        supplier_id: UUID,
        doc_type: str,
        result: VerificationResult,
        verification_model: Optional[str] = None,
        processing_time_ms: Optional[int] = None,
    ) -> DocumentVerification:
        """Store one verification invocation.

        Args:
            analysis_id: Document extraction that was verified
            supplier_id: Owning supplier
            doc_type: Document type
            result: Aggregated verification result
            verification_model: Reasoning model used, if any
            processing_time_ms: Wall-clock duration of the verification

        Returns:
            Created DocumentVerification instance
        """
        return await self.create(
            analysis_id=analysis_id,
            supplier_id=supplier_id,
            doc_type=doc_type,
            verification_status="completed",
            verification_result=result.overall_result.value,
            confidence_score=result.confidence_score,
            field_comparisons=[
                field.model_dump(mode="json") for field in result.field_comparisons
            ],
            discrepancies=list(result.discrepancies),
            ai_analysis=result.ai_analysis,
            verification_model=verification_model,
            used_fallback=result.used_fallback,
            processing_time_ms=processing_time_ms,
        )
