"""
Bulk compliance scan for govgate.

A scan evaluates many existing resources against the same assignments,
for example to find what a newly authored deny policy would block. Every
resource is an independent evaluate() call, so the calls run on a thread
pool; the report lists entries in input order regardless of completion
order.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from govgate.engine import PolicyEngine
from govgate.errors import GovgateError
from govgate.schema import EvaluationResult, PolicyAssignment, Resource

logger = logging.getLogger(__name__)


class ComplianceState(str, Enum):
    """Outcome of one resource in a scan."""

    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    ERROR = "error"


class ScanEntry(BaseModel):
    """
    One scanned resource.

    Attributes:
        index: Position of the resource in the scan input
        resource_type: Resource type, if known
        scope_path: Resource scope path, if known
        state: Compliance outcome
        result: Evaluation result (None when the resource was rejected)
        error: Rejection message when state is ERROR
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    index: int = Field(..., ge=0)
    resource_type: str | None = Field(default=None, alias="resourceType")
    scope_path: str | None = Field(default=None, alias="scopePath")
    state: ComplianceState
    result: EvaluationResult | None = None
    error: str | None = None


class ScanReport(BaseModel):
    """Results of a bulk scan, in input order."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    entries: list[ScanEntry] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.entries)

    @property
    def compliant(self) -> int:
        return self._count(ComplianceState.COMPLIANT)

    @property
    def non_compliant(self) -> int:
        return self._count(ComplianceState.NON_COMPLIANT)

    @property
    def errors(self) -> int:
        return self._count(ComplianceState.ERROR)

    @property
    def success(self) -> bool:
        """True when every resource was evaluated and allowed."""
        return self.compliant == self.total

    def _count(self, state: ComplianceState) -> int:
        return sum(1 for entry in self.entries if entry.state is state)


def scan(
    engine: PolicyEngine,
    resources: Iterable[Resource | Mapping[str, Any]],
    assignments: Iterable[PolicyAssignment],
    max_workers: int | None = None,
) -> ScanReport:
    """
    Evaluate every resource against the same assignments.

    A resource rejected at call level (missing type or scopePath) is
    recorded as an ERROR entry; the scan continues.

    Args:
        engine: The policy engine
        resources: Resources or resource documents
        assignments: Assignments in evaluation order
        max_workers: Thread pool size (None lets the executor decide)

    Returns:
        ScanReport with one entry per resource, in input order
    """
    items = list(resources)
    shared: Sequence[PolicyAssignment] = tuple(assignments)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [
            pool.submit(_scan_one, engine, index, resource, shared)
            for index, resource in enumerate(items)
        ]
        entries = [future.result() for future in futures]

    report = ScanReport(entries=entries)
    logger.info(
        "Scanned %d resource(s): %d compliant, %d non-compliant, %d error(s)",
        report.total,
        report.compliant,
        report.non_compliant,
        report.errors,
    )
    return report


def _scan_one(
    engine: PolicyEngine,
    index: int,
    resource: Resource | Mapping[str, Any],
    assignments: Sequence[PolicyAssignment],
) -> ScanEntry:
    resource_type, scope_path = _identify(resource)
    try:
        result = engine.evaluate(resource, assignments)
    except (GovgateError, ValidationError) as e:
        message = e.message if isinstance(e, GovgateError) else str(e)
        logger.warning("Resource #%d rejected: %s", index, message)
        return ScanEntry(
            index=index,
            resource_type=resource_type,
            scope_path=scope_path,
            state=ComplianceState.ERROR,
            error=message,
        )

    return ScanEntry(
        index=index,
        resource_type=resource_type,
        scope_path=scope_path,
        state=ComplianceState.COMPLIANT if result.allowed else ComplianceState.NON_COMPLIANT,
        result=result,
    )


def _identify(resource: Resource | Mapping[str, Any]) -> tuple[str | None, str | None]:
    """Best-effort type and scope for labelling an entry."""
    if isinstance(resource, Resource):
        return resource.type, resource.scope_path
    resource_type = resource.get("type")
    scope_path = resource.get("scopePath", resource.get("scope_path"))
    return (
        resource_type if isinstance(resource_type, str) else None,
        scope_path if isinstance(scope_path, str) else None,
    )
