"""
Unit tests for the admission response layer.

Tests cover:
- Shaping results into webhook responses
- Fail-closed and fail-open handling of rejected requests
"""

from govgate.admission import AdmissionResponse, review, to_admission_response
from govgate.engine import PolicyEngine
from govgate.schema import (
    AuditFinding,
    Denial,
    EngineConfig,
    EvaluationResult,
    PolicyAssignment,
    PolicyDefinition,
    Resource,
)


class TestToAdmissionResponse:
    """Tests for to_admission_response."""

    def test_allowed(self) -> None:
        """An empty result is allowed with no reasons."""
        response = to_admission_response(EvaluationResult())
        assert response.allowed is True
        assert response.reasons == []
        assert response.error is None

    def test_denied_with_reasons(self) -> None:
        """Denial and audit reasons are carried in order."""
        result = EvaluationResult(
            denials=[Denial(assignment_id="a", policy_id="p", reason="no env tag")],
            audit_findings=[AuditFinding(assignment_id="b", policy_id="q", reason="no owner")],
        )
        response = to_admission_response(result)

        assert response.allowed is False
        assert response.reasons == ["no env tag", "audit: no owner"]
        assert response.result == result

    def test_to_body(self) -> None:
        """The body holds only the allow flag and reasons."""
        body = AdmissionResponse(allowed=False, reasons=["x"]).to_body()
        assert body == {"allowed": False, "reasons": ["x"]}


class TestReview:
    """Tests for review()."""

    def test_denies_untagged(
        self,
        require_env_tag: PolicyDefinition,
        demo_assignment: PolicyAssignment,
        storage_account: Resource,
    ) -> None:
        """A policy violation produces a denied response."""
        response = review(PolicyEngine([require_env_tag]), storage_account, [demo_assignment])

        assert response.allowed is False
        assert "require-env-tag" in response.reasons[0]
        assert response.result is not None

    def test_bad_resource_fail_closed(self, require_env_tag: PolicyDefinition) -> None:
        """A rejected request is denied by default."""
        engine = PolicyEngine([require_env_tag])
        response = review(engine, {"location": "eastus"}, [])

        assert response.allowed is False
        assert response.result is None
        assert response.reasons[0].startswith("Policy evaluation failed, denied")
        assert response.error is not None
        assert response.error["error_type"] == "InvalidResourceError"

    def test_bad_resource_fail_open(self, require_env_tag: PolicyDefinition) -> None:
        """fail_closed=False allows a rejected request and still reports the error."""
        engine = PolicyEngine([require_env_tag])
        response = review(engine, {"location": "eastus"}, [], fail_closed=False)

        assert response.allowed is True
        assert "allowed without evaluation" in response.reasons[0]

    def test_engine_config_fail_open(self, require_env_tag: PolicyDefinition) -> None:
        """The engine's fail_closed setting is the default."""
        engine = PolicyEngine([require_env_tag], EngineConfig(fail_closed=False))
        response = review(engine, {"type": "t"}, [])
        assert response.allowed is True

    def test_configuration_issue_still_allowed(self, allowed_locations: PolicyDefinition) -> None:
        """A configuration issue alone does not deny admission."""
        engine = PolicyEngine([allowed_locations])
        assignment = PolicyAssignment(policy_id="allowed-locations", scope="/sub")
        response = review(engine, {"type": "t", "scopePath": "/sub/rg"}, [assignment])

        assert response.allowed is True
        assert response.result is not None
        assert len(response.result.configuration_issues) == 1
