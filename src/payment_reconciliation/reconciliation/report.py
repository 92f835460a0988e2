"""Report generation for reconciliation run results."""

import json
import csv
import io
from collections import Counter

from .models import ReconciliationResult

FORMATS = ("json", "csv", "text", "detailed_text")


class ReportGenerator:
    """Generator for reconciliation run reports in various formats."""
    
    def __init__(self, result: ReconciliationResult):
        """Initialize the report generator.
        
        Args:
            result: The finished run to generate output from.
        """
        self.result = result
    
    def render(self, format: str = "json", include_details: bool = True) -> str:
        """Render the result in one of FORMATS.
        
        Raises:
            ValueError: If the format is not supported.
        """
        if format == "json":
            return self.to_json(include_details=include_details)
        elif format == "csv":
            return self.to_csv()
        elif format == "text":
            return self.to_summary_text()
        elif format == "detailed_text":
            return self.to_detailed_text()
        raise ValueError(f"Unsupported report format: {format}")
    
    def to_json(self, include_details: bool = True, indent: int = 2) -> str:
        """Generate JSON representation of the result.
        
        Args:
            include_details: If True, include every error record. If False, only summary.
            indent: JSON indentation level.
        
        Returns:
            JSON string representation of the result.
        """
        if include_details:
            data = self.result.to_full_dict()
        else:
            data = self.result.to_summary_dict()
        return json.dumps(data, indent=indent)
    
    def to_csv(self) -> str:
        """Generate CSV of the per-transaction errors, one row each.
        
        Returns:
            CSV string with a header row.
        """
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow([
            "transaction_id", "provider_reference", "category",
            "error_message", "occurred_at",
        ])
        for record in self.result.error_details:
            writer.writerow([
                record.transaction_id,
                record.provider_reference,
                record.category.value,
                record.error_message,
                record.occurred_at.isoformat(),
            ])
        return output.getvalue()
    
    def to_summary_text(self) -> str:
        """Generate a human-readable text summary of the run.
        
        Returns:
            Formatted text summary.
        """
        summary = self.result.to_summary_dict()
        stats = summary["statistics"]
        
        lines = [
            "=" * 60,
            "RECONCILIATION RUN SUMMARY",
            "=" * 60,
            f"Started At: {summary['started_at']}",
            f"Completed At: {summary['completed_at'] or 'N/A'}",
            f"Duration: {summary['duration_ms']} ms",
            f"Pages Processed: {summary['pages_processed']}",
            "",
            "Statistics:",
            f"  Total Processed: {stats['total_processed']}",
            f"  Successfully Reconciled: {stats['successfully_reconciled']}",
            f"  Updated to COMPLETED: {stats['updated_to_completed']}",
            f"  Updated to FAILED: {stats['updated_to_failed']}",
            f"  Updated to REFUNDED: {stats['updated_to_refunded']}",
            f"  Still Pending: {stats['still_pending']}",
            f"  Errors: {stats['errors']}",
        ]
        
        if summary["page_limit_reached"]:
            lines.extend([
                "",
                "Warning:",
                "  Page limit reached; remaining transactions left for the next run.",
            ])
        
        lines.append("=" * 60)
        
        return "\n".join(lines)
    
    def to_detailed_text(self) -> str:
        """Generate a detailed human-readable text report.
        
        Returns:
            Formatted text with summary and all error records.
        """
        lines = [self.to_summary_text(), ""]
        
        if self.result.error_details:
            by_category = Counter(r.category.value for r in self.result.error_details)
            lines.extend([
                "ERRORS",
                "-" * 40,
            ])
            for category, count in sorted(by_category.items()):
                lines.append(f"  {category}: {count}")
            
            for r in self.result.error_details:
                lines.extend([
                    f"\nTransaction: {r.transaction_id} | Reference: {r.provider_reference}",
                    f"  Category: {r.category.value}",
                    f"  Message: {r.error_message}",
                    f"  At: {r.occurred_at.isoformat()}",
                ])
            
            lines.append("")
        
        return "\n".join(lines)
