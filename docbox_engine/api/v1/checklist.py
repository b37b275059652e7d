"""POST /v1/checklist - Recompute a box's checklist and document status"""

from dataclasses import asdict

from fastapi import APIRouter, Request

from docbox_engine.api.dependencies import get_request_id
from docbox_engine.api.v1.schemas import BoxSchema, ChecklistItemSchema, ChecklistResponse
from docbox_engine.domain.checklist import evaluate_box
from docbox_engine.infrastructure.observability.logging import log_status_evaluated
from docbox_engine.infrastructure.observability.metrics import record_status

router = APIRouter()


@router.post("/checklist", response_model=ChecklistResponse)
async def evaluate_checklist(box: BoxSchema, request: Request):
    """
    Evaluate checklist items, completion percent and doc status for a box.

    The caller persists `doc_status` in the same transaction as the document
    change that triggered this call.
    """
    evaluation = evaluate_box(box.to_domain())

    record_status(evaluation.status.value)
    log_status_evaluated(
        get_request_id(request), box.box_id, evaluation.status.value, evaluation.completion_percent
    )

    return ChecklistResponse(
        box_id=box.box_id,
        doc_status=evaluation.status,
        completion_percent=evaluation.completion_percent,
        items=[ChecklistItemSchema(**asdict(item)) for item in evaluation.items],
        flags=asdict(evaluation.flags),
    )
