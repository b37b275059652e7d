"""POST /v1/aggregate - Merge extracted fields of a box's files"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, HTTPException, Request

from docbox_engine.api.dependencies import get_request_id
from docbox_engine.api.v1.schemas import AggregatedFieldSchema, AggregateRequest, AggregateResponse
from docbox_engine.domain.aggregator import aggregate, conflicting_fields, has_vat
from docbox_engine.domain.exceptions import InvalidOverrideError
from docbox_engine.domain.models import ExtractionStatus
from docbox_engine.infrastructure.observability.logging import log_aggregation
from docbox_engine.infrastructure.observability.metrics import extraction_failure_counter, record_conflicts

router = APIRouter()


@router.post("/aggregate", response_model=AggregateResponse)
async def aggregate_fields(request_body: AggregateRequest, request: Request):
    """
    Merge all extraction records of a box into per-field values.

    Failed and pending files are skipped. Fields overridden by a user in
    `previous` (or set in `overrides`) keep the chosen value.
    """
    request_id = get_request_id(request)
    records = [r.to_domain() for r in request_body.records]
    previous = {name: f.to_domain() for name, f in request_body.previous.items()}

    try:
        fields = aggregate(records, previous=previous, overrides=request_body.overrides)
    except InvalidOverrideError as e:
        logging.warning(f"Rejected override: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    conflicts = conflicting_fields(fields)
    failed = sum(1 for r in records if r.status == ExtractionStatus.FAILED)
    if failed:
        extraction_failure_counter.inc(failed)
    record_conflicts(conflicts)
    log_aggregation(request_id, len(records), sum(1 for r in records if r.usable), conflicts)

    return AggregateResponse(
        fields={name: AggregatedFieldSchema(**asdict(f)) for name, f in fields.items()},
        conflicting_fields=conflicts,
        has_vat=has_vat(fields),
    )
