"""Pydantic schemas for document verification.

These schemas define the data contracts shared by the strategy registry,
the field comparison engine and the result aggregator.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DocumentType(str, Enum):
    """Supplier document categories with a verification strategy."""
    DURC = "DURC"
    VISURA = "VISURA"
    SOA = "SOA"
    ISO = "ISO"
    CCIAA = "CCIAA"


class RuleType(str, Enum):
    """How an extracted field is compared."""
    EXACT_MATCH = "exact_match"
    FUZZY_MATCH = "fuzzy_match"
    DATE_VALIDATION = "date_validation"
    STATUS_CHECK = "status_check"
    DOCUMENT_SPECIFIC = "document_specific"


class FieldStatus(str, Enum):
    """Outcome of a single field comparison."""
    MATCH = "match"
    MISMATCH = "mismatch"
    MISSING = "missing"
    INVALID = "invalid"


class OverallResult(str, Enum):
    """Verdict of a whole verification."""
    MATCH = "match"
    MISMATCH = "mismatch"
    PARTIAL_MATCH = "partial_match"
    NO_DATA = "no_data"


class SupplierReference(BaseModel):
    """Reference record the extracted fields are checked against."""
    model_config = ConfigDict(from_attributes=True)

    company_name: Optional[str] = None
    fiscal_code: Optional[str] = None
    vat_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    soa_categories: Optional[str] = Field(
        None, description="Comma-separated SOA categories declared by the supplier"
    )
    iso_certifications: Optional[str] = Field(
        None, description="Comma-separated ISO certifications declared by the supplier"
    )

    @classmethod
    def from_supplier(cls, supplier: Any) -> "SupplierReference":
        """Build a reference from a supplier record, joining list attributes."""
        def joined(values: Any) -> Optional[str]:
            if isinstance(values, (list, tuple)):
                return ", ".join(str(v) for v in values if v) or None
            return values or None

        return cls(
            company_name=supplier.company_name,
            fiscal_code=supplier.fiscal_code,
            vat_number=supplier.vat_number,
            address=supplier.address,
            city=supplier.city,
            province=supplier.province,
            soa_categories=joined(getattr(supplier, "soa_categories", None)),
            iso_certifications=joined(getattr(supplier, "iso_certifications", None)),
        )

    @property
    def address_combined(self) -> Optional[str]:
        parts = [part for part in (self.address, self.city, self.province) if part]
        return ", ".join(parts) if parts else None


class VerificationField(BaseModel):
    """Comparison of one attribute between the document and the reference record."""
    model_config = ConfigDict(from_attributes=True)

    field_name: str = Field(..., description="Extracted field name")
    ocr_value: Optional[str] = Field(None, description="Value extracted from the document")
    api_value: Optional[str] = Field(None, description="Value from the supplier record")
    rule_type: RuleType
    threshold: int = Field(..., ge=0, le=100)
    is_required: bool
    expected_values: Optional[List[str]] = None
    match_score: int = Field(..., ge=0, le=100)
    status: FieldStatus
    notes: Optional[str] = None
    used_fallback: bool = Field(
        False, description="True when a fuzzy comparison fell back to exact match"
    )


class VerificationResult(BaseModel):
    """Aggregated outcome of one verification invocation."""
    model_config = ConfigDict(from_attributes=True)

    document_type: Optional[DocumentType] = None
    overall_result: OverallResult
    confidence_score: int = Field(..., ge=0, le=100)
    field_comparisons: List[VerificationField] = Field(default_factory=list)
    discrepancies: List[str] = Field(default_factory=list)
    ai_analysis: str = ""
    used_fallback: bool = False

    def field(self, name: str) -> Optional[VerificationField]:
        """Return the first comparison for ``name``, if any."""
        for comparison in self.field_comparisons:
            if comparison.field_name == name:
                return comparison
        return None
