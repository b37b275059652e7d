"""Unit tests for checklist flags, required items and document status"""

import itertools
import pytest
from docbox_engine.domain.checklist import (
    EXEMPT_NO_RECEIPT_REASONS,
    build_checklist,
    calculate_completion_percent,
    derive_auto_flags,
    determine_status,
    evaluate_box,
    is_all_required_complete,
)
from docbox_engine.domain.models import (
    BoxType,
    ChecklistFlags,
    ChecklistItem,
    DocStatus,
    DocType,
    ExpenseType,
    PaymentStatus,
)


def item(required: bool, completed: bool) -> ChecklistItem:
    return ChecklistItem(id="x", label="X", required=required, completed=completed, can_toggle=False)


# ==================== derive_auto_flags ====================


def test_auto_flags_tax_invoice_variants():
    """Full and abbreviated tax invoices both count"""
    assert derive_auto_flags({DocType.TAX_INVOICE, DocType.SLIP_TRANSFER})["has_tax_invoice"] is True
    assert derive_auto_flags({DocType.TAX_INVOICE_ABB})["has_tax_invoice"] is True


def test_auto_flags_no_tax_invoice_without_vat_document():
    """Slips and receipts do not imply a tax invoice"""
    assert "has_tax_invoice" not in derive_auto_flags({DocType.SLIP_TRANSFER, DocType.RECEIPT})


@pytest.mark.parametrize("doc_type", [DocType.SLIP_TRANSFER, DocType.BANK_STATEMENT, DocType.RECEIPT])
def test_auto_flags_payment_proof(doc_type):
    """Each payment proof type sets the payment proof flag"""
    assert derive_auto_flags({doc_type}) == {"has_payment_proof": True}


def test_auto_flags_invoice_and_wht():
    """Invoice and WHT certificates set their own flags"""
    assert derive_auto_flags({DocType.INVOICE}) == {"has_invoice": True}
    assert derive_auto_flags({DocType.WHT_SENT}) == {"wht_issued": True}
    assert derive_auto_flags({DocType.WHT_INCOMING}) == {"wht_received": True}


def test_auto_flags_multiple_types():
    """Several document types set several flags"""
    flags = derive_auto_flags({DocType.TAX_INVOICE, DocType.SLIP_TRANSFER, DocType.WHT_SENT, DocType.RECEIPT})
    assert flags == {"has_tax_invoice": True, "has_payment_proof": True, "wht_issued": True}


def test_auto_flags_empty_set():
    """No documents means no flags"""
    assert derive_auto_flags(set()) == {}
    assert derive_auto_flags(None) == {}


def test_auto_flags_never_touch_human_attestations():
    """Uploading a WHT certificate or slip does not confirm payment or sending"""
    flags = derive_auto_flags(set(DocType))
    assert "is_paid" not in flags
    assert "wht_sent" not in flags


def test_auto_flags_monotonic_under_union():
    """Adding documents never clears a flag"""
    sample = [
        DocType.TAX_INVOICE,
        DocType.TAX_INVOICE_ABB,
        DocType.SLIP_TRANSFER,
        DocType.INVOICE,
        DocType.WHT_SENT,
        DocType.WHT_INCOMING,
        DocType.OTHER,
    ]
    subsets = [set(c) for n in range(3) for c in itertools.combinations(sample, n)]
    for a, b in itertools.product(subsets, repeat=2):
        before = derive_auto_flags(a)
        after = derive_auto_flags(a | b)
        assert all(after.get(name) for name in before)


def test_auto_flags_accept_strings_and_ignore_unknown_tags():
    """Plain strings work, unknown tags are dropped"""
    assert derive_auto_flags(["TAX_INVOICE", "MYSTERY_SCAN"]) == {"has_tax_invoice": True}


# ==================== determine_status ====================


def test_standard_expense_complete():
    """Paid standard expense with tax invoice and slip is complete"""
    flags = ChecklistFlags(is_paid=True, has_tax_invoice=True, has_payment_proof=True)
    status = determine_status(
        BoxType.EXPENSE, ExpenseType.STANDARD, True, False, flags, {DocType.TAX_INVOICE, DocType.SLIP_TRANSFER}
    )
    assert status == DocStatus.COMPLETE


def test_standard_expense_incomplete_when_not_paid():
    """Unpaid standard expense stays incomplete"""
    flags = ChecklistFlags(is_paid=False, has_tax_invoice=True)
    status = determine_status(BoxType.EXPENSE, ExpenseType.STANDARD, True, False, flags, {DocType.TAX_INVOICE})
    assert status == DocStatus.INCOMPLETE


def test_standard_expense_missing_tax_invoice_then_abbreviated_invoice_arrives():
    """Abbreviated tax invoice completes the box"""
    flags = ChecklistFlags(is_paid=True)
    docs = {DocType.SLIP_TRANSFER}
    assert determine_status(BoxType.EXPENSE, ExpenseType.STANDARD, True, False, flags, docs) == DocStatus.INCOMPLETE

    docs = docs | {DocType.TAX_INVOICE_ABB}
    assert determine_status(BoxType.EXPENSE, ExpenseType.STANDARD, True, False, flags, docs) == DocStatus.COMPLETE


def test_standard_expense_with_wht_requires_wht_sent():
    """WHT expense needs the certificate sent"""
    docs = {DocType.TAX_INVOICE, DocType.WHT_SENT, DocType.SLIP_TRANSFER}
    flags = ChecklistFlags(is_paid=True, has_tax_invoice=True, wht_issued=True, wht_sent=False)
    assert determine_status(BoxType.EXPENSE, ExpenseType.STANDARD, True, True, flags, docs) == DocStatus.INCOMPLETE

    flags = ChecklistFlags(is_paid=True, has_tax_invoice=True, wht_issued=True, wht_sent=True)
    assert determine_status(BoxType.EXPENSE, ExpenseType.STANDARD, True, True, flags, docs) == DocStatus.COMPLETE


def test_income_complete():
    """Paid income with invoice is complete"""
    flags = ChecklistFlags(is_paid=True, has_invoice=True)
    assert determine_status(BoxType.INCOME, None, False, False, flags, {DocType.INVOICE}) == DocStatus.COMPLETE


def test_income_incomplete_when_not_paid():
    """Unpaid income stays incomplete"""
    flags = ChecklistFlags(is_paid=False, has_invoice=True)
    assert determine_status(BoxType.INCOME, None, False, False, flags, {DocType.INVOICE}) == DocStatus.INCOMPLETE


def test_income_with_wht_requires_wht_received():
    """WHT income needs the certificate received"""
    flags = ChecklistFlags(is_paid=True, has_invoice=True, wht_received=False)
    assert determine_status(BoxType.INCOME, None, False, True, flags, {DocType.INVOICE}) == DocStatus.INCOMPLETE

    flags = ChecklistFlags(is_paid=True, has_invoice=True, wht_received=True)
    docs = {DocType.INVOICE, DocType.WHT_INCOMING}
    assert determine_status(BoxType.INCOME, None, False, True, flags, docs) == DocStatus.COMPLETE


def test_income_with_vat_requires_tax_invoice():
    """VAT income needs a tax invoice"""
    flags = ChecklistFlags(is_paid=True, has_invoice=True)
    assert determine_status(BoxType.INCOME, None, True, False, flags, {DocType.INVOICE}) == DocStatus.INCOMPLETE
    docs = {DocType.INVOICE, DocType.TAX_INVOICE}
    assert determine_status(BoxType.INCOME, None, True, False, flags, docs) == DocStatus.COMPLETE


@pytest.mark.parametrize(
    "box_type,expense_type",
    [
        (BoxType.EXPENSE, ExpenseType.STANDARD),
        (BoxType.EXPENSE, ExpenseType.NO_VAT),
        (BoxType.EXPENSE, ExpenseType.FOREIGN),
        (BoxType.INCOME, None),
        (BoxType.ADJUSTMENT, None),
    ],
)
def test_exempt_reason_is_na_regardless_of_inputs(box_type, expense_type):
    """Exempt reason gives NA for every box configuration"""
    for reason in EXEMPT_NO_RECEIPT_REASONS:
        for has_vat, has_wht in itertools.product([False, True], repeat=2):
            status = determine_status(box_type, expense_type, has_vat, has_wht, ChecklistFlags(), set(), reason)
            assert status == DocStatus.NA


def test_no_cash_receipt_is_not_exempt():
    """NO_CASH_RECEIPT only stands in for the cash bill"""
    flags = ChecklistFlags(is_paid=True)
    status = determine_status(
        BoxType.EXPENSE, ExpenseType.NO_VAT, False, False, flags, {DocType.SLIP_TRANSFER}, "NO_CASH_RECEIPT"
    )
    # Evaluated normally: confirmation stands in for the missing cash bill
    assert status == DocStatus.COMPLETE


def test_unlisted_reason_falls_through_to_normal_evaluation():
    """Other reasons do not change evaluation"""
    status = determine_status(
        BoxType.EXPENSE, ExpenseType.STANDARD, True, False, ChecklistFlags(), set(), "LOST_RECEIPT"
    )
    assert status == DocStatus.INCOMPLETE


def test_no_vat_requires_cash_receipt_and_payment_proof():
    """NO_VAT expense needs a cash bill and payment proof"""
    flags = ChecklistFlags(is_paid=True)
    assert (
        determine_status(BoxType.EXPENSE, ExpenseType.NO_VAT, False, False, flags, {DocType.SLIP_TRANSFER})
        == DocStatus.INCOMPLETE
    )
    docs = {DocType.SLIP_TRANSFER, DocType.CASH_RECEIPT}
    assert determine_status(BoxType.EXPENSE, ExpenseType.NO_VAT, False, False, flags, docs) == DocStatus.COMPLETE


def test_petty_cash_needs_no_receipt():
    """Paid petty cash is complete without documents"""
    flags = ChecklistFlags(is_paid=True)
    assert determine_status(BoxType.EXPENSE, ExpenseType.PETTY_CASH, False, False, flags, set()) == DocStatus.COMPLETE


def test_foreign_requires_foreign_invoice_and_payment_proof():
    """Foreign expense needs foreign invoice and payment proof"""
    flags = ChecklistFlags()
    assert (
        determine_status(BoxType.EXPENSE, ExpenseType.FOREIGN, False, False, flags, {DocType.SLIP_TRANSFER})
        == DocStatus.INCOMPLETE
    )
    docs = {DocType.SLIP_TRANSFER, DocType.FOREIGN_INVOICE}
    assert determine_status(BoxType.EXPENSE, ExpenseType.FOREIGN, False, False, flags, docs) == DocStatus.COMPLETE


def test_adjustment_requires_any_document():
    """Adjustment needs at least one document"""
    flags = ChecklistFlags()
    assert determine_status(BoxType.ADJUSTMENT, None, False, False, flags, set()) == DocStatus.INCOMPLETE
    assert determine_status(BoxType.ADJUSTMENT, None, False, False, flags, {DocType.CREDIT_NOTE}) == DocStatus.COMPLETE


def test_string_inputs_are_accepted():
    """Box and expense types may be plain strings"""
    flags = ChecklistFlags(is_paid=True)
    status = determine_status("EXPENSE", "STANDARD", True, False, flags, ["SLIP_TRANSFER", "TAX_INVOICE"])
    assert status == DocStatus.COMPLETE


# ==================== build_checklist ====================


def test_checklist_items_for_standard_expense_with_wht():
    """Standard expense with WHT lists five items"""
    items = build_checklist(BoxType.EXPENSE, ExpenseType.STANDARD, True, True, ChecklistFlags(), set())
    assert [i.id for i in items] == ["isPaid", "hasTaxInvoice", "hasPaymentProof", "whtIssued", "whtSent"]
    toggles = {i.id for i in items if i.can_toggle}
    assert toggles == {"isPaid", "whtSent"}
    assert {i.id for i in items if not i.required} == {"whtIssued"}


def test_checklist_items_complete_from_document_presence():
    """Uploaded documents complete their items"""
    items = build_checklist(
        BoxType.EXPENSE, ExpenseType.STANDARD, True, False, ChecklistFlags(), {DocType.TAX_INVOICE_ABB}
    )
    completed = {i.id: i.completed for i in items}
    assert completed == {"isPaid": False, "hasTaxInvoice": True, "hasPaymentProof": False}


def test_expense_type_ignored_for_income():
    """Income boxes ignore a stray expense type"""
    items = build_checklist(BoxType.INCOME, ExpenseType.STANDARD, False, False, ChecklistFlags(), set())
    assert [i.id for i in items] == ["hasInvoice", "isPaid", "hasPaymentProof"]


# ==================== completion ====================


def test_completion_percent_all_complete():
    """All required items done is 100"""
    assert calculate_completion_percent([item(True, True), item(True, True)]) == 100


def test_completion_percent_half():
    """Half the required items done is 50"""
    assert calculate_completion_percent([item(True, True), item(True, False)]) == 50


def test_completion_percent_none_complete():
    """No required items done is 0"""
    assert calculate_completion_percent([item(True, False), item(True, False)]) == 0


def test_completion_percent_ignores_optional_items():
    """Optional items do not lower completion"""
    assert calculate_completion_percent([item(True, True), item(False, False)]) == 100


def test_completion_percent_no_required_items():
    """Nothing required counts as complete"""
    assert calculate_completion_percent([item(False, False)]) == 100
    assert calculate_completion_percent([]) == 100


@pytest.mark.parametrize("done,total,expected", [(1, 3, 33), (2, 3, 67), (1, 8, 13), (3, 8, 38)])
def test_completion_percent_rounding(done, total, expected):
    """Completion rounds half up"""
    items = [item(True, i < done) for i in range(total)]
    assert calculate_completion_percent(items) == expected


def test_all_required_complete():
    """Only required items decide completeness"""
    assert is_all_required_complete([item(True, True), item(True, True)]) is True
    assert is_all_required_complete([item(True, True), item(True, False)]) is False
    assert is_all_required_complete([item(True, True), item(False, False)]) is True


# ==================== evaluate_box ====================


def test_evaluate_box_payment_status_counts_as_paid(make_box):
    """PAID payment status confirms payment"""
    box = make_box(doc_types=["TAX_INVOICE", "SLIP_TRANSFER"], payment_status=PaymentStatus.PAID)
    evaluation = evaluate_box(box)
    assert evaluation.status == DocStatus.COMPLETE
    assert evaluation.completion_percent == 100
    assert evaluation.flags.is_paid is True


def test_evaluate_box_wht_certificate_upload_does_not_confirm_sending(make_box):
    """Uploading a WHT certificate does not mark it sent"""
    box = make_box(doc_types=["TAX_INVOICE", "SLIP_TRANSFER", "WHT_SENT"], has_wht=True, is_paid=True)
    evaluation = evaluate_box(box)
    assert evaluation.flags.wht_issued is True
    assert evaluation.flags.wht_sent is False
    assert evaluation.status == DocStatus.INCOMPLETE
    assert evaluation.completion_percent == 75


def test_evaluate_box_exempt_reason(make_box):
    """Exempt box evaluates to NA"""
    evaluation = evaluate_box(make_box(no_receipt_reason="NOT_APPLICABLE"))
    assert evaluation.status == DocStatus.NA
    assert evaluation.completion_percent == 0


# ==================== payment evidence ====================


@pytest.mark.parametrize(
    "evidence",
    [DocType.SLIP_CHEQUE, DocType.CREDIT_CARD_STATEMENT, DocType.ONLINE_RECEIPT, DocType.PETTY_CASH_VOUCHER],
)
def test_standard_expense_paid_by_other_means_is_complete(make_box, evidence):
    """Cheques, card statements and online receipts prove payment too"""
    box = make_box(doc_types=[evidence, DocType.TAX_INVOICE], is_paid=True)

    evaluation = evaluate_box(box)

    assert evaluation.status == DocStatus.COMPLETE
    assert {i.id: i.completed for i in evaluation.items}["hasPaymentProof"] is True


def test_no_vat_expense_paid_by_credit_card_is_complete(make_box):
    """Card statement plus cash bill completes a NO_VAT box"""
    box = make_box(
        expense_type=ExpenseType.NO_VAT,
        has_vat=False,
        is_paid=True,
        doc_types=["CREDIT_CARD_STATEMENT", "CASH_RECEIPT"],
    )
    assert evaluate_box(box).status == DocStatus.COMPLETE


def test_auto_flags_stay_limited_to_transfer_statement_and_receipt():
    """Broader payment evidence completes the item but sets no auto flag"""
    assert derive_auto_flags({DocType.SLIP_CHEQUE, DocType.CREDIT_CARD_STATEMENT}) == {}
