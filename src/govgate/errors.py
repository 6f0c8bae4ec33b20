"""
Exception hierarchy for govgate.

All govgate exceptions inherit from GovgateError, allowing callers to catch
all govgate-specific exceptions with a single except clause.

Exception Categories:
    - PolicyConfigurationError: An assignment cannot be evaluated
      (unresolved parameter, malformed predicate, unknown policy, ...).
      These are isolated per assignment and recorded, never raised out of
      PolicyEngine.evaluate().
    - InvalidResourceError: The evaluated resource is unusable. Raised to
      the caller, the whole evaluation call is rejected.
    - BundleLoadError: A policy bundle or resource document failed to load.
    - DuplicatePolicyError: Two definitions share an id. Raised when the
      engine is constructed, before any evaluation.

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context (policy, assignment, field where applicable)
    - Errors are designed to be both human-readable and machine-parseable
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Policy configuration errors: 1xxx
ERROR_UNRESOLVED_PARAMETER = 1001
ERROR_MALFORMED_PREDICATE = 1002
ERROR_SCOPE_MISMATCH = 1003
ERROR_POLICY_NOT_FOUND = 1004
ERROR_PARAMETER_TYPE = 1005
ERROR_UNSUPPORTED_EFFECT = 1006
ERROR_DUPLICATE_POLICY = 1007

# Input errors: 2xxx
ERROR_INVALID_RESOURCE = 2001

# Bundle errors: 3xxx
ERROR_BUNDLE_LOAD = 3001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class GovgateError(Exception):
    """
    Base exception for all govgate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Policy Configuration Errors
# =============================================================================


@dataclass
class PolicyConfigurationError(GovgateError):
    """
    Base class for errors that make a single assignment unevaluable.

    The engine catches these per assignment. In non-strict mode they become
    a recorded ConfigurationIssue, in strict mode an implicit denial.

    Attributes:
        policy_id: ID of the policy definition involved
        assignment_id: ID of the assignment being evaluated
    """

    policy_id: str = ""
    assignment_id: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "policy_id": self.policy_id,
            "assignment_id": self.assignment_id,
        })


@dataclass
class UnresolvedParameterError(PolicyConfigurationError):
    """Raised when a parameter has no assigned value and no default."""

    parameter: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Parameter '{self.parameter}' has no value and no default"
        if self.code == 0:
            self.code = ERROR_UNRESOLVED_PARAMETER
        if not self.suggestion:
            self.suggestion = (
                "Supply the parameter in the assignment's parameterValues "
                "or declare a defaultValue on the definition"
            )
        super().__post_init__()
        self.context["parameter"] = self.parameter


@dataclass
class MalformedPredicateError(PolicyConfigurationError):
    """Raised when a predicate uses an unknown field path or operator."""

    detail: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Malformed predicate: {self.detail}"
        if self.code == 0:
            self.code = ERROR_MALFORMED_PREDICATE
        super().__post_init__()
        self.context["detail"] = self.detail


@dataclass
class ScopeMismatchError(PolicyConfigurationError):
    """Raised when an assignment scope lies outside its definition's scope."""

    assignment_scope: str = ""
    definition_scope: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Assignment scope {self.assignment_scope} is not within "
                f"definition scope {self.definition_scope}"
            )
        if self.code == 0:
            self.code = ERROR_SCOPE_MISMATCH
        super().__post_init__()
        self.context.update({
            "assignment_scope": self.assignment_scope,
            "definition_scope": self.definition_scope,
        })


@dataclass
class PolicyNotFoundError(PolicyConfigurationError):
    """Raised when an assignment references an unknown policy definition."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Policy definition not found: {self.policy_id}"
        if self.code == 0:
            self.code = ERROR_POLICY_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check the assignment's policyId or add the definition to the bundle"
        super().__post_init__()


@dataclass
class ParameterTypeError(PolicyConfigurationError):
    """Raised when a parameter value does not match its declared type or allowed values."""

    parameter: str = ""
    expected: str = ""
    actual: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Parameter '{self.parameter}' expects {self.expected}, got {self.actual}"
            )
        if self.code == 0:
            self.code = ERROR_PARAMETER_TYPE
        super().__post_init__()
        self.context.update({
            "parameter": self.parameter,
            "expected": self.expected,
            "actual": self.actual,
        })


@dataclass
class UnsupportedEffectError(PolicyConfigurationError):
    """Raised when a policy resolves to an effect the engine cannot apply."""

    effect: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unsupported effect: {self.effect}"
        if self.code == 0:
            self.code = ERROR_UNSUPPORTED_EFFECT
        if not self.suggestion:
            self.suggestion = "Use Deny, Audit or Disabled"
        super().__post_init__()
        self.context["effect"] = self.effect


# =============================================================================
# Input Errors
# =============================================================================


@dataclass
class InvalidResourceError(GovgateError):
    """
    Raised when the resource under evaluation is unusable.

    This rejects the whole evaluation call before any assignment runs.

    Attributes:
        missing_fields: Required fields that were absent or empty
    """

    missing_fields: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid resource: missing {', '.join(self.missing_fields)}"
        if self.code == 0:
            self.code = ERROR_INVALID_RESOURCE
        self.context["missing_fields"] = self.missing_fields


# =============================================================================
# Bundle Errors
# =============================================================================


@dataclass
class BundleLoadError(GovgateError):
    """Raised when a bundle or resource document cannot be loaded."""

    path: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to load {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_BUNDLE_LOAD
        self.context.update({
            "path": self.path,
            "underlying_error": self.underlying_error,
        })


@dataclass
class DuplicatePolicyError(GovgateError):
    """
    Raised when two definitions share the same id.

    Detected while the engine indexes its definitions, so it rejects the
    whole set rather than a single assignment.
    """

    policy_id: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Duplicate policy definition id: {self.policy_id}"
        if self.code == 0:
            self.code = ERROR_DUPLICATE_POLICY
        if not self.suggestion:
            self.suggestion = "Give every policy definition in the bundle a unique id"
        self.context["policy_id"] = self.policy_id
