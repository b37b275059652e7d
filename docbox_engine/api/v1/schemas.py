"""Pydantic schemas for API request/response validation"""

from datetime import date
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from docbox_engine.domain.models import (
    AggregatedField,
    AttachedDocument,
    BoxSnapshot,
    BoxType,
    DocStatus,
    DocType,
    ExpenseType,
    ExtractedDocumentData,
    ExtractionRecord,
    ExtractionStatus,
    PaymentStatus,
)

Amount = Union[float, str, None]


class BoxSchema(BaseModel):
    """Box snapshot plus its attached document types"""

    box_id: str = Field(..., min_length=1)
    box_type: BoxType
    expense_type: Optional[ExpenseType] = None
    has_vat: bool = False
    has_wht: bool = False
    wht_rate: Optional[float] = None
    total_amount: Optional[float] = None
    vat_amount: Optional[float] = None
    wht_amount: Optional[float] = None
    paid_amount: Optional[float] = None
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    no_receipt_reason: Optional[str] = None
    is_paid: bool = False
    wht_sent: bool = False
    contact_id: Optional[str] = None
    contact_name: Optional[str] = None
    contact_tax_id: Optional[str] = None
    box_date: Optional[date] = None
    doc_types: List[DocType] = []

    def to_domain(self) -> BoxSnapshot:
        data = self.model_dump()
        data["doc_types"] = frozenset(self.doc_types)
        return BoxSnapshot(**data)


class ExtractedSchema(BaseModel):
    """Extractor output for one file; amounts may arrive as formatted strings"""

    type: Optional[str] = None
    confidence: Amount = 0.0
    amount: Amount = None
    vat_amount: Amount = None
    contact_name: Optional[str] = None
    document_date: Optional[str] = None
    document_number: Optional[str] = None
    tax_id: Optional[str] = None
    description: Optional[str] = None

    def to_domain(self) -> ExtractedDocumentData:
        return ExtractedDocumentData.from_payload(self.model_dump())


class ChecklistItemSchema(BaseModel):
    id: str
    label: str
    description: str
    required: bool
    completed: bool
    can_toggle: bool
    related_doc_type: Optional[DocType] = None


class ChecklistResponse(BaseModel):
    """Response for POST /v1/checklist"""

    box_id: str
    doc_status: DocStatus
    completion_percent: int
    items: List[ChecklistItemSchema]
    flags: Dict[str, bool]


class MatchRequest(BaseModel):
    """Request body for POST /v1/match"""

    extracted: ExtractedSchema
    candidates: List[BoxSchema] = []


class BoxMatchSchema(BaseModel):
    box_id: str
    score: int
    reasons: List[str]


class MatchResponse(BaseModel):
    has_match: bool
    matches: List[BoxMatchSchema]
    suggested_action: str
    reason: str


class DuplicateRequest(BaseModel):
    """Request body for POST /v1/duplicates"""

    amount: Amount = None
    box_date: Optional[date] = None
    contact_id: Optional[str] = None
    exclude_box_id: Optional[str] = None
    boxes: List[BoxSchema] = []


class DuplicateSchema(BaseModel):
    box_id: str
    similarity: int


class DuplicateResponse(BaseModel):
    is_duplicate: bool
    duplicates: List[DuplicateSchema]


class ExtractionRecordSchema(BaseModel):
    file_id: str
    file_name: str
    status: ExtractionStatus = ExtractionStatus.DONE
    data: Optional[ExtractedSchema] = None
    error: Optional[str] = None

    def to_domain(self) -> ExtractionRecord:
        return ExtractionRecord(
            file_id=self.file_id,
            file_name=self.file_name,
            status=self.status,
            data=self.data.to_domain() if self.data else None,
            error=self.error,
        )


class FieldSourceSchema(BaseModel):
    file_id: str
    file_name: str
    confidence: float


class ValueClusterSchema(BaseModel):
    value: Any
    sources: List[FieldSourceSchema]


class AggregatedFieldSchema(BaseModel):
    value: Any = None
    has_conflict: bool = False
    all_values: List[ValueClusterSchema] = []
    user_override: bool = False

    def to_domain(self) -> AggregatedField:
        # Only the resolved value and override flag carry over between runs
        return AggregatedField(
            value=self.value,
            has_conflict=self.has_conflict,
            all_values=[],
            user_override=self.user_override,
        )


class AggregateRequest(BaseModel):
    """Request body for POST /v1/aggregate"""

    records: List[ExtractionRecordSchema] = []
    previous: Dict[str, AggregatedFieldSchema] = {}
    overrides: Dict[str, Any] = {}


class AggregateResponse(BaseModel):
    fields: Dict[str, AggregatedFieldSchema]
    conflicting_fields: List[str]
    has_vat: bool


class AttachedDocumentSchema(BaseModel):
    doc_type: DocType
    amount: Optional[float] = None
    vat_amount: Optional[float] = None
    doc_number: Optional[str] = None
    extracted: Optional[ExtractedSchema] = None

    def to_domain(self) -> AttachedDocument:
        return AttachedDocument(
            doc_type=self.doc_type,
            amount=self.amount,
            vat_amount=self.vat_amount,
            doc_number=self.doc_number,
            extracted=self.extracted.to_domain() if self.extracted else None,
        )


class ValidateRequest(BaseModel):
    """Request body for POST /v1/validate"""

    box: BoxSchema
    documents: List[AttachedDocumentSchema] = []


class ValidationIssueSchema(BaseModel):
    id: str
    severity: str
    code: str
    message: str
    suggestion: Optional[str] = None
    field: Optional[str] = None
    can_dismiss: bool = False


class ValidateResponse(BaseModel):
    is_valid: bool
    has_warnings: bool
    issues: List[ValidationIssueSchema]
    summary: Dict[str, int]
