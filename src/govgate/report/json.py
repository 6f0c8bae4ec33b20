"""
JSON report generator for govgate.

Generates structured JSON output for programmatic consumption: the
evaluation decision, every denial, audit finding and configuration issue,
and for scans one entry per resource.

Design Principles:
    - Complete data: Include everything the engine decided
    - Consistent schema: Same structure across all evaluations
    - camelCase keys: Same naming as the input documents
    - Deterministic: No timestamps, equal results give equal reports
"""

import json
from typing import Any

from govgate.scan import ScanReport
from govgate.schema import EvaluationResult, Resource

REPORT_VERSION = "1.0"


def build_result_dict(
    result: EvaluationResult,
    resource: Resource | None = None,
) -> dict[str, Any]:
    """
    Build a report dictionary for one evaluation.

    Args:
        result: The evaluation result
        resource: The evaluated resource, included when given

    Returns:
        Dictionary with the decision and all findings
    """
    report: dict[str, Any] = {
        "report_version": REPORT_VERSION,
        "allowed": result.allowed,
        "resource": resource.model_dump(mode="json", by_alias=True) if resource else None,
        "denials": [d.model_dump(mode="json", by_alias=True) for d in result.denials],
        "auditFindings": [f.model_dump(mode="json", by_alias=True) for f in result.audit_findings],
        "configurationIssues": [
            i.model_dump(mode="json", by_alias=True) for i in result.configuration_issues
        ],
        "reasons": result.reasons(),
    }
    return report


def generate_json_report(
    result: EvaluationResult,
    resource: Resource | None = None,
    indent: int = 2,
) -> str:
    """Generate a JSON report string for one evaluation."""
    return json.dumps(build_result_dict(result, resource), indent=indent)


def build_scan_dict(report: ScanReport) -> dict[str, Any]:
    """Build a report dictionary for a bulk scan."""
    return {
        "report_version": REPORT_VERSION,
        "success": report.success,
        "summary": {
            "total": report.total,
            "compliant": report.compliant,
            "nonCompliant": report.non_compliant,
            "errors": report.errors,
        },
        "entries": [
            {
                "index": entry.index,
                "resourceType": entry.resource_type,
                "scopePath": entry.scope_path,
                "state": entry.state.value,
                "error": entry.error,
                "result": build_result_dict(entry.result) if entry.result else None,
            }
            for entry in report.entries
        ],
    }


def generate_scan_json_report(report: ScanReport, indent: int = 2) -> str:
    """Generate a JSON report string for a bulk scan."""
    return json.dumps(build_scan_dict(report), indent=indent)
