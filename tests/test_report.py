"""Tests for reconciliation run reports."""

import csv
import io
import json
import pytest
from datetime import datetime, timedelta

from payment_reconciliation.reconciliation.models import (
    ErrorCategory,
    ReconciliationErrorDetail,
    ReconciliationResult,
)
from payment_reconciliation.reconciliation.report import ReportGenerator


@pytest.fixture
def result():
    started = datetime(2026, 1, 15, 10, 0, 0)
    return ReconciliationResult(
        started_at=started,
        completed_at=started + timedelta(milliseconds=1500),
        total_processed=10,
        successfully_reconciled=6,
        updated_to_completed=3,
        updated_to_failed=2,
        updated_to_refunded=1,
        still_pending=2,
        errors=2,
        pages_processed=1,
        error_details=[
            ReconciliationErrorDetail(
                transaction_id="txn-1",
                provider_reference="PROV-002",
                error_message="Provider API is currently unavailable",
                category=ErrorCategory.PROVIDER_ERROR,
            ),
            ReconciliationErrorDetail(
                transaction_id="txn-2",
                provider_reference="PROV-003",
                error_message="Unexpected error: boom, retry later",
                category=ErrorCategory.UNEXPECTED_ERROR,
            ),
        ],
    )


class TestReconciliationResult:
    """Tests for derived result values."""
    
    def test_duration_and_error_rate(self, result):
        assert result.duration_ms == 1500
        assert result.error_rate == pytest.approx(0.2)
    
    def test_empty_run_has_zero_error_rate(self):
        empty = ReconciliationResult(started_at=datetime.utcnow())
        assert empty.error_rate == 0.0
        assert empty.duration_ms == 0
    
    def test_result_is_immutable(self, result):
        with pytest.raises(Exception):
            result.errors = 0


class TestReportGenerator:
    """Tests for ReportGenerator."""
    
    def test_json_full(self, result):
        data = json.loads(ReportGenerator(result).to_json())
        
        assert data["statistics"]["total_processed"] == 10
        assert data["statistics"]["updated_to_refunded"] == 1
        assert data["duration_ms"] == 1500
        assert len(data["error_details"]) == 2
        assert data["error_details"][0]["category"] == "provider_error"
    
    def test_json_summary_only(self, result):
        data = json.loads(ReportGenerator(result).to_json(include_details=False))
        
        assert "error_details" not in data
        assert data["statistics"]["errors"] == 2
    
    def test_csv_has_one_row_per_error(self, result):
        rows = list(csv.reader(io.StringIO(ReportGenerator(result).to_csv())))
        
        assert rows[0] == [
            "transaction_id", "provider_reference", "category", "error_message", "occurred_at",
        ]
        assert len(rows) == 3
        assert rows[2][3] == "Unexpected error: boom, retry later"
    
    def test_summary_text(self, result):
        text = ReportGenerator(result).to_summary_text()
        
        assert "RECONCILIATION RUN SUMMARY" in text
        assert "Total Processed: 10" in text
        assert "Updated to REFUNDED: 1" in text
        assert "Page limit reached" not in text
    
    def test_summary_text_warns_on_page_limit(self, result):
        limited = result.model_copy(update={"page_limit_reached": True})
        assert "Page limit reached" in ReportGenerator(limited).to_summary_text()
    
    def test_detailed_text_lists_errors(self, result):
        text = ReportGenerator(result).to_detailed_text()
        
        assert "ERRORS" in text
        assert "provider_error: 1" in text
        assert "Reference: PROV-003" in text
    
    @pytest.mark.parametrize("format", ["json", "csv", "text", "detailed_text"])
    def test_render_supported_formats(self, result, format):
        assert ReportGenerator(result).render(format)
    
    def test_render_unsupported_format(self, result):
        with pytest.raises(ValueError):
            ReportGenerator(result).render("xml")
