"""
govgate - Admission-time evaluation of declarative governance policies.

govgate decides whether a cloud resource may be created or updated, given
policy definitions (a condition plus an effect) and the assignments that
bind them to scopes. It provides:
- A pure, thread-safe policy evaluation engine
- Deny and Audit effects, parameterized policies, scope inheritance
- Admission-webhook responses with fail-closed handling
- Bulk compliance scans
- Console and JSON reports

Example usage:
    $ govgate evaluate storage.yaml --policies governance.yaml
    $ govgate scan inventory.yaml --policies governance.yaml
    $ govgate validate governance.yaml
"""

__version__ = "0.1.0"
__author__ = "govgate Contributors"

from govgate.engine import PolicyEngine
from govgate.schema import (
    EngineConfig,
    EvaluationResult,
    PolicyAssignment,
    PolicyDefinition,
    Resource,
)

__all__ = [
    "__version__",
    "__author__",
    "EngineConfig",
    "EvaluationResult",
    "PolicyAssignment",
    "PolicyDefinition",
    "PolicyEngine",
    "Resource",
]
