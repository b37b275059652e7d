"""Pytest fixtures for testing"""

import pytest
from datetime import date
from typing import Callable
from fastapi.testclient import TestClient
from docbox_engine.api.main import create_app
from docbox_engine.domain.models import (
    BoxSnapshot,
    BoxType,
    ExpenseType,
    ExtractedDocumentData,
    ExtractionRecord,
    coerce_doc_types,
)


@pytest.fixture
def client() -> TestClient:
    """Create FastAPI test client"""
    return TestClient(create_app())


@pytest.fixture
def make_box() -> Callable[..., BoxSnapshot]:
    """Factory for box snapshots; doc_types may be given as plain strings"""

    def _make(box_id: str = "box-1", doc_types=(), **overrides) -> BoxSnapshot:
        fields = {
            "box_type": BoxType.EXPENSE,
            "expense_type": ExpenseType.STANDARD,
            "has_vat": True,
            "box_date": date(2026, 1, 14),
        }
        fields.update(overrides)
        return BoxSnapshot(box_id=box_id, doc_types=coerce_doc_types(doc_types), **fields)

    return _make


@pytest.fixture
def make_record() -> Callable[..., ExtractionRecord]:
    """Factory for a finished extraction record of one file"""

    def _make(file_id: str, confidence: float = 0.9, **data) -> ExtractionRecord:
        data.setdefault("type", "TAX_INVOICE")
        return ExtractionRecord(
            file_id=file_id,
            file_name=f"{file_id}.pdf",
            data=ExtractedDocumentData(confidence=confidence, **data),
        )

    return _make
