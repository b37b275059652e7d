"""Record linker - ranks open boxes against a freshly extracted document"""

import logging
from datetime import date
from typing import List, Optional, Sequence

from docbox_engine.domain.checklist import PAYMENT_EVIDENCE_TYPES, TAX_INVOICE_TYPES, derive_auto_flags
from docbox_engine.domain.models import (
    BoxMatch,
    BoxSnapshot,
    DocType,
    DuplicateMatch,
    ExtractedDocumentData,
    MatchResult,
    SuggestedAction,
)
from docbox_engine.utils.date_utils import days_apart, same_day
from docbox_engine.utils.normalize import digits_only, name_similarity, parse_amount, parse_date

logger = logging.getLogger(__name__)

SLIP_TYPES = frozenset({DocType.SLIP_TRANSFER, DocType.SLIP_CHEQUE})

# Scoring weights
TAX_ID_POINTS = 50
NAME_POINTS = 30
AMOUNT_EXACT_POINTS = 25
AMOUNT_CLOSE_POINTS = 15
AWAITING_AMOUNT_POINTS = 20
DATE_NEAR_POINTS = 15
DATE_WEEK_POINTS = 10
FILLS_TAX_INVOICE_POINTS = 20
FILLS_PAYMENT_PROOF_POINTS = 15
DUPLICATE_TAX_INVOICE_PENALTY = 30

NAME_SIMILARITY_THRESHOLD = 0.70
AMOUNT_EXACT_TOLERANCE = 0.01  # 1% relative
AMOUNT_CLOSE_TOLERANCE = 0.05  # 5% relative
MAX_SCORE = 100

# Below this a candidate is noise; at or above ATTACH it is recommended
MIN_SURFACED_SCORE = 30
ATTACH_THRESHOLD = 60

DUPLICATE_AMOUNT_TOLERANCE = 0.01  # 1% relative
DUPLICATE_MIN_SIMILARITY = 50


def score_candidate(extracted: ExtractedDocumentData, candidate: BoxSnapshot) -> BoxMatch:
    """
    Score one open box against an extracted document.

    Each signal is evaluated independently and added up:
    - Tax ID (digits only) equal: +50
    - Contact name token similarity >= 0.70: +30
    - Amount within 1%: +25, else within 5%: +15 (box must have an amount)
    - Box has no amount yet and the document has one: +20
      (box opened from a payment slip before its tax invoice arrived)
    - Document date within 1 day of box date: +15, else within 7 days: +10
    - Document fills a gap: tax invoice +20, slip +15
    - Tax invoice for a box that already has one: -30

    Score is clamped to 0..100.
    """
    score = 0
    reasons: List[str] = []
    doc_type = extracted.doc_type
    box_flags = derive_auto_flags(candidate.doc_types)

    extracted_tax_id = digits_only(extracted.tax_id)
    if extracted_tax_id and extracted_tax_id == digits_only(candidate.contact_tax_id):
        score += TAX_ID_POINTS
        reasons.append("Tax ID matches")

    similarity = name_similarity(extracted.contact_name, candidate.contact_name)
    if similarity >= NAME_SIMILARITY_THRESHOLD:
        score += NAME_POINTS
        reasons.append(f"Contact name similar ({round(similarity * 100)}%)")

    amount = parse_amount(extracted.amount)
    box_amount = parse_amount(candidate.total_amount) or 0.0
    if amount is not None:
        if box_amount != 0:
            diff = abs(amount - box_amount) / abs(box_amount)
            if diff <= AMOUNT_EXACT_TOLERANCE:
                score += AMOUNT_EXACT_POINTS
                reasons.append("Amount matches")
            elif diff <= AMOUNT_CLOSE_TOLERANCE:
                score += AMOUNT_CLOSE_POINTS
                reasons.append("Amount close (within 5%)")
        else:
            score += AWAITING_AMOUNT_POINTS
            reasons.append("Box is still waiting for an amount")

    document_date = parse_date(extracted.document_date)
    if document_date is not None and candidate.box_date is not None:
        gap = days_apart(document_date, candidate.box_date)
        if gap <= 1:
            score += DATE_NEAR_POINTS
            reasons.append("Date within 1 day")
        elif gap <= 7:
            score += DATE_WEEK_POINTS
            reasons.append("Date within 7 days")

    if doc_type in TAX_INVOICE_TYPES:
        if box_flags.get("has_tax_invoice"):
            score -= DUPLICATE_TAX_INVOICE_PENALTY
        else:
            score += FILLS_TAX_INVOICE_POINTS
            reasons.append("Box is missing a tax invoice")
    elif doc_type in SLIP_TYPES and not candidate.doc_types & PAYMENT_EVIDENCE_TYPES:
        score += FILLS_PAYMENT_PROOF_POINTS
        reasons.append("Box is missing payment proof")

    return BoxMatch(
        box_id=candidate.box_id,
        score=max(0, min(score, MAX_SCORE)),
        reasons=reasons,
    )


def find_match(extracted: ExtractedDocumentData, candidates: Sequence[BoxSnapshot]) -> MatchResult:
    """
    Rank open boxes for a new document and recommend attach vs create.

    Candidates under 30 points (or without any reason) are dropped. Ties keep
    candidate order. Attach is only suggested when the best score reaches 60;
    weaker candidates are still returned for a human to review.
    """
    scored = [score_candidate(extracted, candidate) for candidate in candidates]
    matches = [m for m in scored if m.score >= MIN_SURFACED_SCORE and any(r for r in m.reasons)]
    matches = sorted(matches, key=lambda m: -m.score)

    if not matches:
        logger.debug("No box matched", extra={"candidates": len(candidates)})
        return MatchResult(
            has_match=False,
            matches=[],
            suggested_action=SuggestedAction.CREATE_NEW,
            reason="No matching box found",
        )

    best = matches[0]
    if best.score >= ATTACH_THRESHOLD:
        action = SuggestedAction.ATTACH_TO_EXISTING
        reason = f"Strong match with box {best.box_id} ({best.score} points)"
    else:
        action = SuggestedAction.CREATE_NEW
        reason = f"{len(matches)} possible match(es) below {ATTACH_THRESHOLD} points, review before attaching"

    return MatchResult(has_match=True, matches=matches, suggested_action=action, reason=reason)


def find_duplicates(
    amount: object,
    box_date: Optional[date],
    boxes: Sequence[BoxSnapshot],
    contact_id: Optional[str] = None,
    exclude_box_id: Optional[str] = None,
) -> List[DuplicateMatch]:
    """
    Heuristic duplicate scan over existing boxes (amount + date + contact).

    Only boxes within 1% of the amount, on the same calendar day and, when
    contact_id is given, with the same contact are considered. Those are
    scored:
    - Amount exact: +50, within 0.1%: +40, within 1%: +30
    - Same calendar day: +30
    - Same contact: +20

    Boxes scoring 50 or more are returned, most similar first.
    """
    value = parse_amount(amount)
    if value is None or value <= 0 or box_date is None:
        return []

    results: List[DuplicateMatch] = []
    for box in boxes:
        if exclude_box_id is not None and box.box_id == exclude_box_id:
            continue

        box_amount = parse_amount(box.total_amount)
        if box_amount is None or abs(box_amount - value) > value * DUPLICATE_AMOUNT_TOLERANCE:
            continue
        if box.box_date is None or not same_day(box_date, box.box_date):
            continue
        if contact_id and box.contact_id != contact_id:
            continue

        similarity = 0
        diff = abs(box_amount - value) / value
        if diff == 0:
            similarity += 50
        elif diff < 0.001:
            similarity += 40
        elif diff < 0.01:
            similarity += 30

        similarity += 30  # same day

        if contact_id:
            similarity += 20  # same contact

        if similarity >= DUPLICATE_MIN_SIMILARITY:
            results.append(DuplicateMatch(box_id=box.box_id, similarity=similarity))

    return sorted(results, key=lambda r: -r.similarity)
