"""POST /v1/validate - Consistency warnings for a box and its documents"""

from dataclasses import asdict

from fastapi import APIRouter

from docbox_engine.api.v1.schemas import ValidateRequest, ValidateResponse, ValidationIssueSchema
from docbox_engine.domain.validation import validate_box

router = APIRouter()


@router.post("/validate", response_model=ValidateResponse)
def validate(request_body: ValidateRequest):
    result = validate_box(
        request_body.box.to_domain(),
        [doc.to_domain() for doc in request_body.documents],
    )
    return ValidateResponse(
        is_valid=result.is_valid,
        has_warnings=result.has_warnings,
        issues=[ValidationIssueSchema(**asdict(issue)) for issue in result.issues],
        summary=result.summary,
    )
