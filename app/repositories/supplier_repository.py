"""Read access to supplier reference data and submitted documents."""

from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import (
    Attachment,
    DocumentAnalysis,
    Supplier,
    SupplierAnswers,
)
from app.repositories.base_repository import BaseRepository


class SupplierRepository(BaseRepository[Supplier]):
    """Repository for supplier reference records and their questionnaire answers."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Supplier)

    async def get_answers(self, supplier_id: UUID) -> Optional[Dict[str, Any]]:
        """Get the questionnaire answers for a supplier.

        Args:
            supplier_id: Supplier ID

        Returns:
            Answers mapping, or None when the supplier has not answered
        """
        query = select(SupplierAnswers.answers).where(
            SupplierAnswers.supplier_id == supplier_id
        )
        result = await self.session.execute(query)
        return result.scalars().first()


class DocumentAnalysisRepository(BaseRepository[DocumentAnalysis]):
    """Repository for OCR extraction records of supplier documents."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, DocumentAnalysis)

    async def get_latest_by_type(
        self, supplier_id: UUID, document_type: str
    ) -> Optional[DocumentAnalysis]:
        """Get the newest extraction of a document type for a supplier."""
        query = (
            select(DocumentAnalysis)
            .where(
                DocumentAnalysis.supplier_id == supplier_id,
                DocumentAnalysis.document_type == document_type,
            )
            .order_by(DocumentAnalysis.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def list_by_type(
        self, supplier_id: UUID, document_type: str
    ) -> List[DocumentAnalysis]:
        """Get every extraction of a document type for a supplier, newest first."""
        query = (
            select(DocumentAnalysis)
            .where(
                DocumentAnalysis.supplier_id == supplier_id,
                DocumentAnalysis.document_type == document_type,
            )
            .order_by(DocumentAnalysis.created_at.desc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())


class AttachmentRepository(BaseRepository[Attachment]):
    """Repository for supplier attachments."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Attachment)

    async def list_by_types(
        self, supplier_id: UUID, document_types: Sequence[str]
    ) -> List[Attachment]:
        """Get the supplier's attachments whose type is in ``document_types``."""
        query = select(Attachment).where(
            Attachment.supplier_id == supplier_id,
            Attachment.document_type.in_(list(document_types)),
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
