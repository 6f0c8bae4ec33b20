"""
Admission-webhook surface for govgate.

An admission hook needs a single yes/no answer plus reasons it can show to
whoever submitted the change. This module shapes an EvaluationResult into
that response and decides what happens when the evaluation call itself is
rejected (bad resource document):

    - fail-closed (default): the request is denied
    - fail-open: the request is allowed, the error is still reported
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from govgate.engine import PolicyEngine
from govgate.errors import GovgateError
from govgate.schema import EvaluationResult, PolicyAssignment, Resource

logger = logging.getLogger(__name__)


class AdmissionResponse(BaseModel):
    """
    Webhook response body.

    Attributes:
        allowed: Whether the create/update may proceed
        reasons: Human-readable reasons (denials, then audit findings)
        result: Full evaluation result, absent if the call was rejected
        error: Error details when the call was rejected
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool
    reasons: list[str] = Field(default_factory=list)
    result: EvaluationResult | None = None
    error: dict[str, Any] | None = None

    def to_body(self) -> dict[str, Any]:
        """The minimal webhook body: allow flag and reasons."""
        return {"allowed": self.allowed, "reasons": list(self.reasons)}


def to_admission_response(result: EvaluationResult) -> AdmissionResponse:
    """Build a webhook response from a completed evaluation."""
    return AdmissionResponse(
        allowed=result.allowed,
        reasons=result.reasons(),
        result=result,
    )


def review(
    engine: PolicyEngine,
    resource: Resource | Mapping[str, Any],
    assignments: Iterable[PolicyAssignment],
    fail_closed: bool | None = None,
) -> AdmissionResponse:
    """
    Evaluate an admission request and always produce a response.

    Args:
        engine: The policy engine
        resource: The resource in the request
        assignments: Assignments in force
        fail_closed: Override for engine.config.fail_closed

    Returns:
        AdmissionResponse; never raises for bad input
    """
    if fail_closed is None:
        fail_closed = engine.config.fail_closed

    try:
        result = engine.evaluate(resource, assignments)
    except GovgateError as e:
        return _rejected(str(e.message), e.to_dict(), fail_closed)
    except ValidationError as e:
        return _rejected(
            f"Invalid request: {e.error_count()} validation error(s)",
            {"error_type": "ValidationError", "errors": e.errors(include_url=False, include_context=False)},
            fail_closed,
        )

    return to_admission_response(result)


def _rejected(message: str, error: dict[str, Any], fail_closed: bool) -> AdmissionResponse:
    logger.warning(
        "Admission request could not be evaluated (%s): %s",
        "fail-closed" if fail_closed else "fail-open",
        message,
    )
    prefix = "denied" if fail_closed else "allowed without evaluation"
    return AdmissionResponse(
        allowed=not fail_closed,
        reasons=[f"Policy evaluation failed, {prefix}: {message}"],
        error=error,
    )
