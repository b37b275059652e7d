"""POST /v1/match and /v1/duplicates - Placement suggestions for incoming documents"""

import time
from dataclasses import asdict

from fastapi import APIRouter, Request

from docbox_engine.api.dependencies import get_request_id
from docbox_engine.api.v1.schemas import (
    BoxMatchSchema,
    DuplicateRequest,
    DuplicateResponse,
    DuplicateSchema,
    MatchRequest,
    MatchResponse,
)
from docbox_engine.domain.linker import find_duplicates, find_match
from docbox_engine.infrastructure.observability.logging import log_match_result
from docbox_engine.infrastructure.observability.metrics import record_match

router = APIRouter()


@router.post("/match", response_model=MatchResponse)
async def match_document(request_body: MatchRequest, request: Request):
    """
    Rank open boxes for one extracted document.

    Flow:
    1. Sanitize the extractor payload
    2. Score every candidate box
    3. Suggest attach (top score >= 60) or create, with a ranked list for review
    """
    start_time = time.time()

    result = find_match(
        request_body.extracted.to_domain(),
        [candidate.to_domain() for candidate in request_body.candidates],
    )

    top_score = result.matches[0].score if result.matches else 0
    duration_ms = (time.time() - start_time) * 1000
    record_match(result.suggested_action.value, top_score)
    log_match_result(
        get_request_id(request),
        len(request_body.candidates),
        len(result.matches),
        result.suggested_action.value,
        top_score,
        duration_ms,
    )

    return MatchResponse(
        has_match=result.has_match,
        matches=[BoxMatchSchema(**asdict(m)) for m in result.matches],
        suggested_action=result.suggested_action.value,
        reason=result.reason,
    )


@router.post("/duplicates", response_model=DuplicateResponse)
async def scan_duplicates(request_body: DuplicateRequest):
    """Find existing boxes that look like the same transaction (amount + date + contact)"""
    duplicates = find_duplicates(
        request_body.amount,
        request_body.box_date,
        [box.to_domain() for box in request_body.boxes],
        contact_id=request_body.contact_id,
        exclude_box_id=request_body.exclude_box_id,
    )
    return DuplicateResponse(
        is_duplicate=bool(duplicates),
        duplicates=[DuplicateSchema(**asdict(d)) for d in duplicates],
    )
