"""Box validation - consistency warnings between a box and its documents"""

from typing import List, Sequence

from docbox_engine.domain.checklist import TAX_INVOICE_TYPES
from docbox_engine.domain.models import (
    AttachedDocument,
    BoxSnapshot,
    DocType,
    ExpenseType,
    ValidationIssue,
    ValidationResult,
)
from docbox_engine.utils.normalize import digits_only, parse_amount

STANDARD_VAT_RATE = 7.0
VAT_RATE_TOLERANCE = 0.5  # percentage points
AMOUNT_MISMATCH_TOLERANCE = 1.0  # currency units

PRIMARY_DOC_TYPES = TAX_INVOICE_TYPES | frozenset({DocType.INVOICE, DocType.FOREIGN_INVOICE})
SLIP_DOC_TYPES = frozenset({DocType.SLIP_TRANSFER, DocType.SLIP_CHEQUE})
CASH_RECEIPT_DOC_TYPES = frozenset({DocType.CASH_RECEIPT, DocType.RECEIPT, DocType.OTHER})


def _money(value) -> float:
    return parse_amount(value) or 0.0


def validate_document_completeness(box: BoxSnapshot, documents: Sequence[AttachedDocument]) -> List[ValidationIssue]:
    issues = []
    doc_types = {d.doc_type for d in documents}

    if box.expense_type == ExpenseType.STANDARD and not doc_types & TAX_INVOICE_TYPES:
        issues.append(
            ValidationIssue(
                id="missing-tax-invoice",
                severity="error",
                code="MISSING_TAX_INVOICE",
                message="No tax invoice attached yet",
                suggestion="Upload the tax invoice to confirm the amount and claim input VAT",
            )
        )

    if (
        box.expense_type == ExpenseType.NO_VAT
        and not doc_types & CASH_RECEIPT_DOC_TYPES
        and not box.no_receipt_reason
    ):
        issues.append(
            ValidationIssue(
                id="missing-receipt",
                severity="warning",
                code="MISSING_RECEIPT",
                message="No cash bill or receipt attached yet",
                suggestion="Upload the cash bill, or confirm that none was issued",
            )
        )

    if _money(box.paid_amount) > 0 and not doc_types & SLIP_DOC_TYPES:
        issues.append(
            ValidationIssue(
                id="missing-slip",
                severity="info",
                code="MISSING_SLIP",
                message="Paid, but no transfer slip attached",
                suggestion="Upload the transfer slip or a copy of the cheque",
                can_dismiss=True,
            )
        )

    return issues


def validate_amount_consistency(box: BoxSnapshot, documents: Sequence[AttachedDocument]) -> List[ValidationIssue]:
    """The slip should equal the invoiced total minus withholding tax"""
    primary = next((d for d in documents if d.doc_type in PRIMARY_DOC_TYPES), None)
    slip = next((d for d in documents if d.doc_type in SLIP_DOC_TYPES), None)
    if primary is None or not _money(primary.amount) or slip is None or slip.extracted is None:
        return []

    slip_amount = parse_amount(slip.extracted.amount)
    if not slip_amount:
        return []

    total = _money(box.total_amount)
    wht_amount = _money(box.wht_amount)
    if abs(slip_amount - (total - wht_amount)) <= AMOUNT_MISMATCH_TOLERANCE:
        return []

    if box.has_wht and wht_amount == 0:
        return [
            ValidationIssue(
                id="amount-wht-mismatch",
                severity="warning",
                code="AMOUNT_WHT_MISMATCH",
                message=f"Slip amount ({slip_amount:,.2f}) differs from invoice total ({total:,.2f})",
                suggestion="The difference may be withholding tax; check and set the WHT rate",
                can_dismiss=True,
            )
        ]
    if not box.has_wht:
        return [
            ValidationIssue(
                id="amount-general-mismatch",
                severity="warning",
                code="AMOUNT_MISMATCH",
                message=f"Slip amount ({slip_amount:,.2f}) differs from box total ({total:,.2f})",
                suggestion="May be a partial payment or a discount; please check",
                can_dismiss=True,
            )
        ]
    return []


def validate_vat(box: BoxSnapshot) -> List[ValidationIssue]:
    if box.expense_type != ExpenseType.STANDARD:
        return []

    total = _money(box.total_amount)
    vat = _money(box.vat_amount)

    if total > 0 and vat > 0:
        base = total - vat
        if base <= 0:
            return []
        rate = vat / base * 100
        if abs(rate - STANDARD_VAT_RATE) > VAT_RATE_TOLERANCE:
            return [
                ValidationIssue(
                    id="vat-rate-unusual",
                    severity="warning",
                    code="VAT_RATE_UNUSUAL",
                    message=f"Implied VAT rate is {rate:.2f}% (expected {STANDARD_VAT_RATE:g}%)",
                    suggestion="Check the pre-VAT amount and the VAT amount",
                    field="vat_amount",
                    can_dismiss=True,
                )
            ]
    elif total > 0 and vat == 0:
        return [
            ValidationIssue(
                id="vat-missing",
                severity="info",
                code="VAT_MISSING",
                message="VAT amount not entered",
                suggestion="Enter the VAT amount from the tax invoice",
                field="vat_amount",
            )
        ]
    return []


def validate_wht(box: BoxSnapshot) -> List[ValidationIssue]:
    if not box.has_wht:
        return []

    issues = []
    rate = _money(box.wht_rate)
    wht_amount = _money(box.wht_amount)
    base = _money(box.total_amount) - _money(box.vat_amount)

    if rate == 0 and wht_amount == 0:
        issues.append(
            ValidationIssue(
                id="wht-rate-missing",
                severity="warning",
                code="WHT_RATE_MISSING",
                message="Withholding tax is enabled but no rate is set",
                suggestion="Set the withholding tax rate (1%, 2%, 3% or 5%)",
                field="wht_rate",
            )
        )

    if rate > 0 and wht_amount > 0:
        expected = base * rate / 100
        if abs(expected - wht_amount) > AMOUNT_MISMATCH_TOLERANCE:
            issues.append(
                ValidationIssue(
                    id="wht-amount-mismatch",
                    severity="warning",
                    code="WHT_AMOUNT_MISMATCH",
                    message=f"WHT at {rate:g}% should be {expected:,.2f} but {wht_amount:,.2f} was entered",
                    suggestion="Check the withholding tax amount",
                    field="wht_amount",
                    can_dismiss=True,
                )
            )
    return issues


def validate_contact(box: BoxSnapshot, documents: Sequence[AttachedDocument]) -> List[ValidationIssue]:
    issues = []
    extracted_tax_id = next(
        (digits_only(d.extracted.tax_id) for d in documents if d.extracted and digits_only(d.extracted.tax_id)),
        "",
    )
    box_tax_id = digits_only(box.contact_tax_id)

    if extracted_tax_id and box_tax_id and extracted_tax_id != box_tax_id:
        issues.append(
            ValidationIssue(
                id="taxid-mismatch",
                severity="warning",
                code="TAXID_MISMATCH",
                message=f"Tax ID on the document ({extracted_tax_id}) differs from the contact ({box_tax_id})",
                suggestion="Check that the right contact is selected",
                can_dismiss=True,
            )
        )

    if box.expense_type == ExpenseType.STANDARD and _money(box.vat_amount) > 0 and not box_tax_id:
        issues.append(
            ValidationIssue(
                id="contact-taxid-required",
                severity="info",
                code="CONTACT_TAXID_MISSING",
                message="Contact has no tax ID (needed to claim input VAT)",
                suggestion="Add a tax ID to the contact or pick one that has it",
                can_dismiss=True,
            )
        )
    return issues


def validate_box(box: BoxSnapshot, documents: Sequence[AttachedDocument]) -> ValidationResult:
    """Run every check and summarize by severity"""
    issues = [
        *validate_document_completeness(box, documents),
        *validate_amount_consistency(box, documents),
        *validate_vat(box),
        *validate_wht(box),
        *validate_contact(box, documents),
    ]

    summary = {
        "errors": sum(1 for i in issues if i.severity == "error"),
        "warnings": sum(1 for i in issues if i.severity == "warning"),
        "info": sum(1 for i in issues if i.severity == "info"),
    }
    return ValidationResult(
        is_valid=summary["errors"] == 0,
        has_warnings=summary["warnings"] > 0,
        issues=issues,
        summary=summary,
    )
