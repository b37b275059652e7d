"""Domain models - pure Python dataclasses representing boxes, documents and engine outputs"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional

from docbox_engine.utils.normalize import parse_amount, parse_date


class BoxType(str, Enum):
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    ADJUSTMENT = "ADJUSTMENT"


class ExpenseType(str, Enum):
    STANDARD = "STANDARD"
    NO_VAT = "NO_VAT"
    PETTY_CASH = "PETTY_CASH"
    FOREIGN = "FOREIGN"


class DocType(str, Enum):
    """Tag of a file attached to a box"""

    # Payment evidence
    SLIP_TRANSFER = "SLIP_TRANSFER"
    SLIP_CHEQUE = "SLIP_CHEQUE"
    BANK_STATEMENT = "BANK_STATEMENT"
    CREDIT_CARD_STATEMENT = "CREDIT_CARD_STATEMENT"
    ONLINE_RECEIPT = "ONLINE_RECEIPT"
    PETTY_CASH_VOUCHER = "PETTY_CASH_VOUCHER"
    # Tax / commercial documents
    TAX_INVOICE = "TAX_INVOICE"
    TAX_INVOICE_ABB = "TAX_INVOICE_ABB"
    RECEIPT = "RECEIPT"
    CASH_RECEIPT = "CASH_RECEIPT"
    INVOICE = "INVOICE"
    FOREIGN_INVOICE = "FOREIGN_INVOICE"
    CUSTOMS_FORM = "CUSTOMS_FORM"
    DELIVERY_NOTE = "DELIVERY_NOTE"
    # Adjustments
    CREDIT_NOTE = "CREDIT_NOTE"
    DEBIT_NOTE = "DEBIT_NOTE"
    REFUND_RECEIPT = "REFUND_RECEIPT"
    # Withholding tax
    WHT_SENT = "WHT_SENT"
    WHT_RECEIVED = "WHT_RECEIVED"
    WHT_INCOMING = "WHT_INCOMING"
    # Government
    TAX_PAYMENT_SLIP = "TAX_PAYMENT_SLIP"
    TAX_RECEIPT_GOVT = "TAX_RECEIPT_GOVT"
    SSO_PAYMENT = "SSO_PAYMENT"
    GOVT_RECEIPT = "GOVT_RECEIPT"
    # Other
    CONTRACT = "CONTRACT"
    QUOTATION = "QUOTATION"
    PURCHASE_ORDER = "PURCHASE_ORDER"
    CLAIM_FORM = "CLAIM_FORM"
    OTHER = "OTHER"

    @classmethod
    def coerce(cls, value: Any) -> Optional["DocType"]:
        """Map an extractor tag to a DocType; unknown tags come back as None"""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class DocStatus(str, Enum):
    INCOMPLETE = "INCOMPLETE"
    COMPLETE = "COMPLETE"
    NA = "NA"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERPAID = "OVERPAID"


class SuggestedAction(str, Enum):
    ATTACH_TO_EXISTING = "attach-to-existing"
    CREATE_NEW = "create-new"


class ExtractionStatus(str, Enum):
    PENDING = "PENDING"
    DONE = "DONE"
    FAILED = "FAILED"


def coerce_doc_types(values: Optional[Iterable[Any]]) -> frozenset:
    """Build a DocType set, silently dropping tags outside the enumeration"""
    if not values:
        return frozenset()
    coerced = (DocType.coerce(v) for v in values)
    return frozenset(d for d in coerced if d is not None)


@dataclass(frozen=True)
class BoxSnapshot:
    """Current state of a box as read from the application layer"""

    box_id: str
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
    # Human attestations, never derived from uploads
    is_paid: bool = False
    wht_sent: bool = False
    contact_id: Optional[str] = None
    contact_name: Optional[str] = None
    contact_tax_id: Optional[str] = None
    box_date: Optional[date] = None
    doc_types: frozenset = field(default_factory=frozenset)


@dataclass(frozen=True)
class ChecklistFlags:
    """Checklist state: presence-derived flags plus human-confirmed ones"""

    is_paid: bool = False
    has_payment_proof: bool = False
    has_tax_invoice: bool = False
    has_invoice: bool = False
    wht_issued: bool = False
    wht_sent: bool = False
    wht_received: bool = False


@dataclass(frozen=True)
class ChecklistItem:
    id: str
    label: str
    required: bool
    completed: bool
    can_toggle: bool
    description: str = ""
    related_doc_type: Optional[DocType] = None


@dataclass(frozen=True)
class BoxEvaluation:
    """Output of one checklist recompute"""

    items: List[ChecklistItem]
    status: DocStatus
    completion_percent: int
    flags: ChecklistFlags


@dataclass(frozen=True)
class ExtractedDocumentData:
    """Per-file OCR output. Immutable: a re-read produces a new record."""

    type: Optional[str]
    confidence: float = 0.0
    amount: Any = None
    vat_amount: Any = None
    contact_name: Optional[str] = None
    document_date: Any = None
    document_number: Optional[str] = None
    tax_id: Optional[str] = None
    description: Optional[str] = None

    @property
    def doc_type(self) -> Optional[DocType]:
        return DocType.coerce(self.type)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ExtractedDocumentData":
        """
        Build a record from the extractor's JSON.

        Accepts camelCase (as the extractor emits it) or snake_case keys.
        Amounts are sanitized, dates parsed, confidence clamped to 0..1.
        Values that cannot be parsed become None.
        """

        def pick(*keys: str) -> Any:
            for key in keys:
                if payload.get(key) is not None:
                    return payload[key]
            return None

        confidence = parse_amount(pick("confidence"))
        if confidence is None:
            confidence = 0.0

        return cls(
            type=pick("type", "docType", "doc_type"),
            confidence=min(max(confidence, 0.0), 1.0),
            amount=parse_amount(pick("amount", "totalAmount", "total_amount")),
            vat_amount=parse_amount(pick("vatAmount", "vat_amount")),
            contact_name=_clean_text(pick("contactName", "contact_name", "vendorName")),
            document_date=parse_date(pick("documentDate", "document_date")),
            document_number=_clean_text(pick("documentNumber", "document_number")),
            tax_id=_clean_text(pick("taxId", "tax_id")),
            description=_clean_text(pick("description")),
        )


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class ExtractionRecord:
    """Per-file envelope around an extraction attempt"""

    file_id: str
    file_name: str
    status: ExtractionStatus = ExtractionStatus.DONE
    data: Optional[ExtractedDocumentData] = None
    error: Optional[str] = None

    @property
    def usable(self) -> bool:
        return self.status == ExtractionStatus.DONE and self.data is not None

    @classmethod
    def failed(cls, file_id: str, file_name: str, error: str) -> "ExtractionRecord":
        return cls(file_id=file_id, file_name=file_name, status=ExtractionStatus.FAILED, error=error)


@dataclass(frozen=True)
class FieldSource:
    file_id: str
    file_name: str
    confidence: float


@dataclass(frozen=True)
class ValueCluster:
    """Equivalent values for one field and the files that produced them"""

    value: Any
    sources: List[FieldSource]

    @property
    def count(self) -> int:
        return len(self.sources)


@dataclass(frozen=True)
class AggregatedField:
    value: Any
    has_conflict: bool
    all_values: List[ValueCluster]
    user_override: bool = False

    @property
    def sources(self) -> List[FieldSource]:
        return [s for cluster in self.all_values for s in cluster.sources]


@dataclass(frozen=True)
class BoxMatch:
    box_id: str
    score: int
    reasons: List[str]


@dataclass(frozen=True)
class MatchResult:
    has_match: bool
    matches: List[BoxMatch]
    suggested_action: SuggestedAction
    reason: str


@dataclass(frozen=True)
class DuplicateMatch:
    box_id: str
    similarity: int


@dataclass(frozen=True)
class AttachedDocument:
    """A file attached to a box, with whatever the extractor read from it"""

    doc_type: DocType
    amount: Optional[float] = None
    vat_amount: Optional[float] = None
    doc_number: Optional[str] = None
    extracted: Optional[ExtractedDocumentData] = None


@dataclass(frozen=True)
class ValidationIssue:
    id: str
    severity: str  # "error" | "warning" | "info"
    code: str
    message: str
    suggestion: Optional[str] = None
    field: Optional[str] = None
    can_dismiss: bool = False


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    has_warnings: bool
    issues: List[ValidationIssue]
    summary: dict
