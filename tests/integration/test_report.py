"""
Integration tests for the Report module.

Tests cover:
- JSON report generation for evaluations and scans
- Console report generation
- Report content verification
"""

import json
from io import StringIO

import pytest
from rich.console import Console

from govgate.bundle import load_bundle_from_string
from govgate.report import (
    build_result_dict,
    build_scan_dict,
    generate_console_report,
    generate_json_report,
    generate_scan_console_report,
    generate_scan_json_report,
)
from govgate.scan import scan
from govgate.schema import Resource


@pytest.fixture
def evaluated(sample_bundle_yaml: str):
    """Evaluate an untagged resource outside the allowed region."""
    bundle = load_bundle_from_string(sample_bundle_yaml)
    engine = bundle.build_engine(collect_all_denials=True)
    resource = Resource(
        type="Microsoft.Storage/storageAccounts",
        scope_path="/sub/rg-policy-demo",
        location="eastus",
    )
    return {
        "bundle": bundle,
        "engine": engine,
        "resource": resource,
        "result": engine.evaluate(resource, bundle.assignments),
    }


def render(func, *args, **kwargs) -> str:
    output = StringIO()
    console = Console(file=output, force_terminal=False, width=200)
    func(*args, console=console, **kwargs)
    return output.getvalue()


class TestJsonReport:
    """Tests for JSON report generation."""

    def test_result_dict(self, evaluated) -> None:
        """The result dict carries the decision and every denial."""
        report = build_result_dict(evaluated["result"], evaluated["resource"])

        assert report["report_version"] == "1.0"
        assert report["allowed"] is False
        assert [d["assignmentId"] for d in report["denials"]] == [
            "demo-require-env",
            "sub-locations",
        ]
        assert report["resource"]["scopePath"] == "/sub/rg-policy-demo"
        assert report["auditFindings"] == []
        assert report["configurationIssues"] == []
        assert len(report["reasons"]) == 2

    def test_without_resource(self, evaluated) -> None:
        """The resource key is null when no resource is given."""
        assert build_result_dict(evaluated["result"])["resource"] is None

    def test_json_string_parses(self, evaluated) -> None:
        """generate_json_report returns valid JSON."""
        data = json.loads(generate_json_report(evaluated["result"], evaluated["resource"]))
        assert data["allowed"] is False

    def test_deterministic(self, evaluated) -> None:
        """Equal results produce identical reports."""
        engine, resource, bundle = evaluated["engine"], evaluated["resource"], evaluated["bundle"]
        again = engine.evaluate(resource, bundle.assignments)
        assert generate_json_report(again, resource) == generate_json_report(evaluated["result"], resource)

    def test_scan_dict(self, evaluated) -> None:
        """Scan reports summarize and list each entry."""
        report = scan(
            evaluated["engine"],
            [
                {
                    "type": "Microsoft.Storage/storageAccounts",
                    "scopePath": "/sub/rg-policy-demo",
                    "location": "southeastasia",
                    "tags": {"Environment": "Prod"},
                },
                {"type": "Microsoft.Storage/storageAccounts", "scopePath": "/sub/rg-policy-demo"},
            ],
            evaluated["bundle"].assignments,
        )
        data = build_scan_dict(report)

        assert data["success"] is False
        assert data["summary"] == {"total": 2, "compliant": 1, "nonCompliant": 1, "errors": 0}
        assert data["entries"][0]["state"] == "compliant"
        assert data["entries"][1]["result"]["allowed"] is False
        assert json.loads(generate_scan_json_report(report)) == data


class TestConsoleReport:
    """Tests for console report generation."""

    def test_denied_header_and_tables(self, evaluated) -> None:
        """A denied result shows the DENIED header and the denials table."""
        text = render(generate_console_report, evaluated["result"], evaluated["resource"])

        assert "DENIED" in text
        assert "Denials" in text
        assert "require-env-tag" in text
        assert "Denials: 2 | Audit findings: 0 | Configuration issues: 0" in text

    def test_allowed_header(self, evaluated) -> None:
        """An allowed result shows the ALLOWED header."""
        resource = Resource(
            type="Microsoft.Storage/storageAccounts",
            scope_path="/sub/rg-policy-demo",
            location="southeastasia",
            tags={"Environment": "Prod"},
        )
        result = evaluated["engine"].evaluate(resource, evaluated["bundle"].assignments)
        text = render(generate_console_report, result, resource)
        assert "ALLOWED" in text

    def test_verbose_shows_condition(self, evaluated) -> None:
        """Verbose mode adds the matched condition."""
        text = render(generate_console_report, evaluated["result"], verbose=True)
        assert "Condition" in text
        assert "not exists(tags.Environment)" in text

    def test_condition_brackets_not_markup(self, evaluated) -> None:
        """Bracketed text in conditions is printed literally."""
        text = render(generate_console_report, evaluated["result"], verbose=True)
        assert "['southeastasia']" in text

    def test_configuration_issues_table(self, sample_bundle_yaml: str) -> None:
        """Configuration issues get their own table."""
        bundle = load_bundle_from_string(sample_bundle_yaml)
        engine = bundle.build_engine()
        resource = Resource(
            type="Microsoft.Storage/storageAccounts",
            scope_path="/sub/rg-policy-demo",
            tags={"Environment": "Prod"},
        )
        broken = bundle.assignments[1].model_copy(update={"parameter_values": {}})
        result = engine.evaluate(resource, [broken])

        text = render(generate_console_report, result, resource)
        assert "Configuration issues" in text
        assert "UnresolvedParameterError" in text

    def test_scan_console(self, evaluated) -> None:
        """Scan output lists entries and summary counts."""
        report = scan(
            evaluated["engine"],
            [{"type": "Microsoft.Storage/storageAccounts", "scopePath": "/sub/rg-policy-demo"}, {"name": "x"}],
            evaluated["bundle"].assignments,
        )
        text = render(generate_scan_console_report, report)

        assert "Compliance scan" in text
        assert "Total: 2 | Compliant: 0 | Non-compliant: 1 | Errors: 1" in text
