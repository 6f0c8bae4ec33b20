"""
Unit tests for bulk compliance scans.

Tests cover:
- Per-resource states and counts
- Input order is preserved
- Rejected resources do not stop the scan
"""

from govgate.engine import PolicyEngine
from govgate.scan import ComplianceState, ScanReport, scan
from govgate.schema import PolicyAssignment, PolicyDefinition, Resource


def tagged(name: str, environment: str | None = None) -> dict:
    doc = {
        "type": "Microsoft.Storage/storageAccounts",
        "scopePath": "/sub/rg-policy-demo",
        "name": name,
        "tags": {},
    }
    if environment is not None:
        doc["tags"]["Environment"] = environment
    return doc


class TestScan:
    """Tests for scan()."""

    def test_states(
        self,
        require_env_tag: PolicyDefinition,
        demo_assignment: PolicyAssignment,
    ) -> None:
        """Each resource gets its own state."""
        engine = PolicyEngine([require_env_tag])
        resources = [tagged("ok", "Prod"), tagged("bad"), {"name": "broken"}]

        report = scan(engine, resources, [demo_assignment])

        assert [e.state for e in report.entries] == [
            ComplianceState.COMPLIANT,
            ComplianceState.NON_COMPLIANT,
            ComplianceState.ERROR,
        ]
        assert report.total == 3
        assert report.compliant == 1
        assert report.non_compliant == 1
        assert report.errors == 1
        assert report.success is False

    def test_error_entry(self, require_env_tag: PolicyDefinition) -> None:
        """Rejected resources carry the error and no result."""
        engine = PolicyEngine([require_env_tag])
        report = scan(engine, [{"type": "t"}], [])

        entry = report.entries[0]
        assert entry.result is None
        assert "scopePath" in entry.error
        assert entry.resource_type == "t"
        assert entry.scope_path is None

    def test_order_preserved(
        self,
        require_env_tag: PolicyDefinition,
        demo_assignment: PolicyAssignment,
    ) -> None:
        """Entries come back in input order."""
        engine = PolicyEngine([require_env_tag])
        resources = [tagged(f"r{i}", "Prod" if i % 2 else None) for i in range(20)]

        report = scan(engine, resources, [demo_assignment], max_workers=4)

        assert [e.index for e in report.entries] == list(range(20))
        assert report.non_compliant == 10

    def test_models_accepted(
        self,
        require_env_tag: PolicyDefinition,
        demo_assignment: PolicyAssignment,
        storage_account: Resource,
    ) -> None:
        """Resource models can be scanned directly."""
        report = scan(PolicyEngine([require_env_tag]), [storage_account], [demo_assignment])
        entry = report.entries[0]
        assert entry.resource_type == "Microsoft.Storage/storageAccounts"
        assert entry.scope_path == "/sub/rg-policy-demo"
        assert entry.state is ComplianceState.NON_COMPLIANT

    def test_assignments_iterator_reused(
        self,
        require_env_tag: PolicyDefinition,
        demo_assignment: PolicyAssignment,
    ) -> None:
        """A one-shot assignment iterator applies to every resource."""
        engine = PolicyEngine([require_env_tag])
        report = scan(engine, [tagged("a"), tagged("b")], iter([demo_assignment]))
        assert report.non_compliant == 2

    def test_empty_scan(self, require_env_tag: PolicyDefinition) -> None:
        """An empty scan succeeds."""
        report = scan(PolicyEngine([require_env_tag]), [], [])
        assert report.total == 0
        assert report.success is True


class TestScanReport:
    """Tests for ScanReport."""

    def test_all_compliant_is_success(self) -> None:
        """success is true when every entry is compliant."""
        report = ScanReport.model_validate({
            "entries": [
                {"index": 0, "state": "compliant"},
                {"index": 1, "state": "compliant"},
            ]
        })
        assert report.success is True
