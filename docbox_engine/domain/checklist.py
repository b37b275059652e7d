"""Checklist engine - evidence flags, required items and document completeness of a box"""

import math
from dataclasses import dataclass, replace
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from docbox_engine.domain.models import (
    BoxEvaluation,
    BoxSnapshot,
    BoxType,
    ChecklistFlags,
    ChecklistItem,
    DocStatus,
    DocType,
    ExpenseType,
    PaymentStatus,
    coerce_doc_types,
)

# Reasons that take a box out of checklist evaluation entirely.
# NO_CASH_RECEIPT is NOT in this set: it only satisfies the cash-receipt item.
EXEMPT_NO_RECEIPT_REASONS = frozenset({"NOT_APPLICABLE"})
NO_CASH_RECEIPT = "NO_CASH_RECEIPT"

TAX_INVOICE_TYPES = frozenset({DocType.TAX_INVOICE, DocType.TAX_INVOICE_ABB})
PAYMENT_PROOF_TYPES = frozenset({DocType.SLIP_TRANSFER, DocType.BANK_STATEMENT, DocType.RECEIPT})
# Everything that proves money moved; broader than the auto-flag set above
PAYMENT_EVIDENCE_TYPES = PAYMENT_PROOF_TYPES | frozenset(
    {
        DocType.SLIP_CHEQUE,
        DocType.CREDIT_CARD_STATEMENT,
        DocType.ONLINE_RECEIPT,
        DocType.PETTY_CASH_VOUCHER,
    }
)
CASH_RECEIPT_TYPES = frozenset({DocType.CASH_RECEIPT, DocType.RECEIPT, DocType.OTHER})
PETTY_CASH_PROOF_TYPES = frozenset({DocType.PETTY_CASH_VOUCHER, DocType.CASH_RECEIPT})
WHT_RECEIVED_TYPES = frozenset({DocType.WHT_INCOMING, DocType.WHT_RECEIVED})

Satisfied = Callable[[ChecklistFlags, FrozenSet[DocType], Optional[str]], bool]


@dataclass(frozen=True)
class Requirement:
    """One row of the checklist rule table"""

    id: str
    label: str
    description: str
    satisfied: Satisfied
    required: bool = True
    can_toggle: bool = False
    related_doc_type: Optional[DocType] = None

    def optional(self) -> "Requirement":
        return replace(self, required=False)

    def evaluate(
        self, flags: ChecklistFlags, doc_types: FrozenSet[DocType], no_receipt_reason: Optional[str]
    ) -> ChecklistItem:
        return ChecklistItem(
            id=self.id,
            label=self.label,
            description=self.description,
            required=self.required,
            completed=self.satisfied(flags, doc_types, no_receipt_reason),
            can_toggle=self.can_toggle,
            related_doc_type=self.related_doc_type,
        )


PAYMENT = Requirement(
    id="isPaid",
    label="Payment confirmed",
    description="Confirm the payment was made or received",
    satisfied=lambda flags, docs, reason: flags.is_paid,
    can_toggle=True,
    related_doc_type=DocType.SLIP_TRANSFER,
)
TAX_INVOICE = Requirement(
    id="hasTaxInvoice",
    label="Tax invoice",
    description="Upload the full or abbreviated tax invoice",
    satisfied=lambda flags, docs, reason: flags.has_tax_invoice or bool(docs & TAX_INVOICE_TYPES),
    related_doc_type=DocType.TAX_INVOICE,
)
PAYMENT_PROOF = Requirement(
    id="hasPaymentProof",
    label="Payment proof",
    description="Upload a transfer or cheque slip, statement or receipt",
    satisfied=lambda flags, docs, reason: flags.has_payment_proof or bool(docs & PAYMENT_EVIDENCE_TYPES),
    related_doc_type=DocType.SLIP_TRANSFER,
)
PETTY_CASH_PROOF = Requirement(
    id="hasPaymentProof",
    label="Petty cash voucher or bill",
    description="Upload the petty cash voucher or cash bill",
    satisfied=lambda flags, docs, reason: (
        flags.has_payment_proof or bool(docs & (PAYMENT_EVIDENCE_TYPES | PETTY_CASH_PROOF_TYPES))
    ),
    required=False,
    related_doc_type=DocType.PETTY_CASH_VOUCHER,
)
CASH_RECEIPT = Requirement(
    id="hasCashReceipt",
    label="Cash receipt",
    description="Upload the cash bill, or confirm that none was issued",
    satisfied=lambda flags, docs, reason: bool(docs & CASH_RECEIPT_TYPES) or reason == NO_CASH_RECEIPT,
    can_toggle=True,
    related_doc_type=DocType.CASH_RECEIPT,
)
FOREIGN_INVOICE = Requirement(
    id="hasForeignInvoice",
    label="Foreign invoice",
    description="Upload the invoice from the foreign supplier",
    satisfied=lambda flags, docs, reason: DocType.FOREIGN_INVOICE in docs,
    related_doc_type=DocType.FOREIGN_INVOICE,
)
INVOICE = Requirement(
    id="hasInvoice",
    label="Invoice issued",
    description="Upload the invoice issued to the customer",
    satisfied=lambda flags, docs, reason: flags.has_invoice or DocType.INVOICE in docs,
    related_doc_type=DocType.INVOICE,
)
INCOME_PAYMENT_PROOF = Requirement(
    id="hasPaymentProof",
    label="Proof of receipt",
    description="Upload evidence that the money was received",
    satisfied=lambda flags, docs, reason: flags.has_payment_proof or bool(docs & PAYMENT_EVIDENCE_TYPES),
    required=False,
    related_doc_type=DocType.RECEIPT,
)
WHT_ISSUED = Requirement(
    id="whtIssued",
    label="Withholding tax certificate issued",
    description="Upload the withholding tax certificate",
    satisfied=lambda flags, docs, reason: flags.wht_issued or DocType.WHT_SENT in docs,
    required=False,
    related_doc_type=DocType.WHT_SENT,
)
WHT_SENT = Requirement(
    id="whtSent",
    label="Withholding tax certificate sent",
    description="Confirm the certificate was sent to the counterparty",
    satisfied=lambda flags, docs, reason: flags.wht_sent,
    can_toggle=True,
)
WHT_RECEIVED = Requirement(
    id="whtReceived",
    label="Withholding tax certificate received",
    description="Upload the certificate received from the customer",
    satisfied=lambda flags, docs, reason: flags.wht_received or bool(docs & WHT_RECEIVED_TYPES),
    related_doc_type=DocType.WHT_INCOMING,
)
HAS_DOCUMENT = Requirement(
    id="hasDocument",
    label="Supporting document",
    description="Credit/debit note or refund evidence",
    satisfied=lambda flags, docs, reason: len(docs) > 0,
)

# Base requirements per (box type, expense type). Income and adjustment boxes
# carry no expense type, so they are keyed with None.
REQUIREMENT_RULES: Dict[Tuple[BoxType, Optional[ExpenseType]], Tuple[Requirement, ...]] = {
    (BoxType.EXPENSE, ExpenseType.STANDARD): (PAYMENT, TAX_INVOICE, PAYMENT_PROOF),
    (BoxType.EXPENSE, ExpenseType.NO_VAT): (PAYMENT, CASH_RECEIPT, PAYMENT_PROOF),
    (BoxType.EXPENSE, ExpenseType.PETTY_CASH): (PAYMENT, PETTY_CASH_PROOF),
    (BoxType.EXPENSE, ExpenseType.FOREIGN): (PAYMENT.optional(), FOREIGN_INVOICE, PAYMENT_PROOF),
    (BoxType.EXPENSE, None): (PAYMENT,),
    (BoxType.INCOME, None): (INVOICE, PAYMENT, INCOME_PAYMENT_PROOF),
    (BoxType.ADJUSTMENT, None): (HAS_DOCUMENT,),
}

# Add-ons applied when the box carries VAT / WHT
VAT_RULES: Dict[BoxType, Tuple[Requirement, ...]] = {
    BoxType.EXPENSE: (TAX_INVOICE,),
    BoxType.INCOME: (TAX_INVOICE,),
}
WHT_RULES: Dict[BoxType, Tuple[Requirement, ...]] = {
    BoxType.EXPENSE: (WHT_ISSUED, WHT_SENT),
    BoxType.INCOME: (WHT_RECEIVED,),
}

# Petty cash is settled on the spot: no tax invoice or WHT paperwork
NO_ADDON_EXPENSE_TYPES = frozenset({ExpenseType.PETTY_CASH})


def required_items_for(
    box_type: BoxType,
    expense_type: Optional[ExpenseType],
    has_vat: bool,
    has_wht: bool,
) -> Tuple[Requirement, ...]:
    """Resolve the rule table for one box configuration"""
    box_type = BoxType(box_type)
    expense_type = ExpenseType(expense_type) if expense_type and box_type == BoxType.EXPENSE else None

    rules = list(REQUIREMENT_RULES[(box_type, expense_type)])
    if expense_type in NO_ADDON_EXPENSE_TYPES:
        return tuple(rules)

    present = {r.id for r in rules}
    addons: List[Requirement] = []
    if has_vat:
        addons.extend(VAT_RULES.get(box_type, ()))
    if has_wht:
        addons.extend(WHT_RULES.get(box_type, ()))

    for rule in addons:
        if rule.id not in present:
            rules.append(rule)
            present.add(rule.id)
    return tuple(rules)


def derive_auto_flags(doc_types: Iterable) -> Dict[str, bool]:
    """
    Flags implied by the attached document types.

    Purely additive: only True entries are returned, so merging the result
    into an existing flag set can never clear a flag. Human attestations
    (is_paid, wht_sent) are never produced here.
    """
    docs = coerce_doc_types(doc_types)
    updates: Dict[str, bool] = {}

    if docs & TAX_INVOICE_TYPES:
        updates["has_tax_invoice"] = True
    if docs & PAYMENT_PROOF_TYPES:
        updates["has_payment_proof"] = True
    if DocType.INVOICE in docs:
        updates["has_invoice"] = True
    if DocType.WHT_SENT in docs:
        updates["wht_issued"] = True
    if DocType.WHT_INCOMING in docs:
        updates["wht_received"] = True

    return updates


def checklist_flags_for(box: BoxSnapshot) -> ChecklistFlags:
    """Combine the box's human-confirmed flags with presence-derived ones"""
    flags = ChecklistFlags(
        is_paid=box.is_paid or box.payment_status in (PaymentStatus.PAID, PaymentStatus.OVERPAID),
        wht_sent=box.wht_sent,
    )
    return replace(flags, **derive_auto_flags(box.doc_types))


def build_checklist(
    box_type: BoxType,
    expense_type: Optional[ExpenseType],
    has_vat: bool,
    has_wht: bool,
    checklist_flags: ChecklistFlags,
    doc_types: Iterable,
    no_receipt_reason: Optional[str] = None,
) -> List[ChecklistItem]:
    docs = coerce_doc_types(doc_types)
    return [
        rule.evaluate(checklist_flags, docs, no_receipt_reason)
        for rule in required_items_for(box_type, expense_type, has_vat, has_wht)
    ]


def calculate_completion_percent(items: List[ChecklistItem]) -> int:
    """Share of required items completed, 0-100. No required items means 100."""
    required = [item for item in items if item.required]
    if not required:
        return 100
    completed = sum(1 for item in required if item.completed)
    # Half-up rounding, so 12.5 reports as 13
    return int(math.floor(100 * completed / len(required) + 0.5))


def is_all_required_complete(items: List[ChecklistItem]) -> bool:
    return all(item.completed for item in items if item.required)


def determine_status(
    box_type: BoxType,
    expense_type: Optional[ExpenseType],
    has_vat: bool,
    has_wht: bool,
    checklist_flags: ChecklistFlags,
    doc_types: Iterable,
    no_receipt_reason: Optional[str] = None,
) -> DocStatus:
    """
    Document completeness of a box.

    NA when the no-receipt reason is in the exempt set, regardless of
    everything else. Otherwise COMPLETE iff every required item is done.
    """
    if no_receipt_reason in EXEMPT_NO_RECEIPT_REASONS:
        return DocStatus.NA

    items = build_checklist(
        box_type, expense_type, has_vat, has_wht, checklist_flags, doc_types, no_receipt_reason
    )
    return DocStatus.COMPLETE if is_all_required_complete(items) else DocStatus.INCOMPLETE


def evaluate_box(box: BoxSnapshot) -> BoxEvaluation:
    """Recompute checklist, status and completion for a box snapshot in one pass"""
    flags = checklist_flags_for(box)
    items = build_checklist(
        box.box_type,
        box.expense_type,
        box.has_vat,
        box.has_wht,
        flags,
        box.doc_types,
        box.no_receipt_reason,
    )
    status = determine_status(
        box.box_type,
        box.expense_type,
        box.has_vat,
        box.has_wht,
        flags,
        box.doc_types,
        box.no_receipt_reason,
    )
    return BoxEvaluation(
        items=items,
        status=status,
        completion_percent=calculate_completion_percent(items),
        flags=flags,
    )
