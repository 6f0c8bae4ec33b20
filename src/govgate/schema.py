"""
Schema definitions for govgate.

This module defines the Pydantic models used throughout govgate:
- PolicyDefinition/PolicyRule/ParameterDefinition: What a policy checks
- PolicyAssignment: Where a policy applies and with which parameter values
- Resource: The subject of an admission evaluation
- EngineConfig: Evaluation options
- Denial/AuditFinding/ConfigurationIssue/EvaluationResult: Outcomes

Design Decisions:
    - Models are immutable (frozen=True); the engine never mutates inputs
    - Documents use camelCase keys, Python code uses snake_case attributes
    - Rule conditions stay in document form here and are compiled into
      predicate trees by the engine, so one malformed rule only disables
      the assignments that use it
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from govgate.predicate import iter_parameter_names, parse_parameter_ref
from govgate.predicate.model import ParameterRef
from govgate.scope import ROOT_SCOPE, normalize_scope


# =============================================================================
# Enums
# =============================================================================


class PolicyMode(str, Enum):
    """
    Which resources a definition is evaluated against.

    ALL covers every resource type. INDEXED covers only resource types that
    support tags and location.
    """

    ALL = "All"
    INDEXED = "Indexed"


class Effect(str, Enum):
    """
    Outcome when a policy condition matches.

    Only DENY and AUDIT are applied. DISABLED turns the policy off.
    APPEND needs resource mutation and is rejected at evaluation time.
    """

    DENY = "Deny"
    AUDIT = "Audit"
    APPEND = "Append"
    DISABLED = "Disabled"

    @classmethod
    def parse(cls, value: str) -> "Effect":
        """Match an effect name case-insensitively."""
        for effect in cls:
            if effect.value.lower() == value.strip().lower():
                return effect
        raise ValueError(f"Unknown effect: {value}")


class ParameterType(str, Enum):
    """Declared type of a policy parameter."""

    STRING = "String"
    ARRAY = "Array"
    BOOLEAN = "Boolean"
    INTEGER = "Integer"
    FLOAT = "Float"
    OBJECT = "Object"


class EnforcementMode(str, Enum):
    """
    Whether an assignment's Deny effect blocks admission.

    DO_NOT_ENFORCE reports would-be denials as audit findings instead.
    """

    DEFAULT = "Default"
    DO_NOT_ENFORCE = "DoNotEnforce"


def _tag_string(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


# Resource types that never carry tags and location themselves
NON_INDEXED_TYPES = frozenset({
    "Microsoft.Resources/subscriptions",
    "Microsoft.Resources/subscriptions/resourceGroups",
})


# =============================================================================
# Policy Models
# =============================================================================


class ParameterDefinition(BaseModel):
    """
    A parameter declared by a policy definition.

    A parameter without ``defaultValue`` is required: every assignment must
    supply it.

    Attributes:
        type: Declared value type
        default_value: Value used when an assignment supplies none
        allowed_values: If set, supplied values must be one of these
        description: Optional human-readable description
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    type: ParameterType = Field(
        default=ParameterType.STRING,
        description="Declared value type",
    )
    default_value: Any = Field(
        default=None,
        alias="defaultValue",
        description="Value used when an assignment supplies none",
    )
    allowed_values: list[Any] | None = Field(
        default=None,
        alias="allowedValues",
        description="Permitted values for this parameter",
    )
    description: str | None = Field(
        default=None,
        description="Optional description of the parameter",
    )

    @property
    def has_default(self) -> bool:
        """Whether a default was declared (an explicit null counts)."""
        return "default_value" in self.model_fields_set


class PolicyThen(BaseModel):
    """The ``then`` block of a rule: the effect, literal or parameterized."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    effect: str = Field(
        ...,
        description="Effect name or [parameters('name')] reference",
        min_length=1,
    )

    @field_validator("effect")
    @classmethod
    def validate_effect(cls, v: str) -> str:
        """Accept a known effect name (any case) or a parameter reference."""
        if isinstance(parse_parameter_ref(v), ParameterRef):
            return v
        return Effect.parse(v).value


class PolicyRule(BaseModel):
    """
    A policy rule: condition document plus effect.

    Attributes:
        if_: Condition in document form (aliased to ``if``)
        then: Effect applied when the condition matches
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    if_: dict[str, Any] = Field(
        ...,
        alias="if",
        description="Condition in declarative document form",
    )
    then: PolicyThen = Field(..., description="Effect applied on match")

    def referenced_parameters(self) -> set[str]:
        """Names of all parameters referenced by the condition or effect."""
        names = set(iter_parameter_names(self.if_))
        names.update(iter_parameter_names(self.then.effect))
        return names


class PolicyDefinition(BaseModel):
    """
    A named, reusable policy.

    Attributes:
        id: Unique identifier, stable across evaluations
        mode: Which resource types the policy applies to
        rule: Condition and effect
        parameters: Declared parameters by name
        display_name: Optional human-readable name
        description: Optional description used in reasons
        scope: Highest scope the policy may be assigned at (default: anywhere)
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    id: str = Field(..., description="Unique policy identifier", min_length=1)
    mode: PolicyMode = Field(default=PolicyMode.ALL, description="Resource type selector")
    rule: PolicyRule = Field(..., alias="policyRule", description="Condition and effect")
    parameters: dict[str, ParameterDefinition] = Field(
        default_factory=dict,
        description="Declared parameters",
    )
    display_name: str | None = Field(default=None, alias="displayName")
    description: str | None = Field(default=None)
    scope: str = Field(
        default=ROOT_SCOPE,
        description="Allowed evaluation scope for assignments of this policy",
    )

    @model_validator(mode="after")
    def check_parameter_references(self) -> "PolicyDefinition":
        """The rule may reference only declared parameters."""
        undeclared = sorted(self.rule.referenced_parameters() - set(self.parameters))
        if undeclared:
            raise ValueError(
                f"Policy '{self.id}' references undeclared parameters: {', '.join(undeclared)}"
            )
        return self

    @property
    def label(self) -> str:
        """Name for messages: display name if set, else id."""
        return self.display_name or self.id


class PolicyAssignment(BaseModel):
    """
    Binds a policy definition to a scope with concrete parameter values.

    The definition is referenced weakly by id and resolved at evaluation.

    Attributes:
        id: Optional assignment identifier (derived from policy and scope if unset)
        policy_id: ID of the referenced PolicyDefinition
        scope: Scope path the assignment applies to
        parameter_values: Concrete parameter values by name
        not_scopes: Child scopes excluded from the assignment
        enforcement_mode: Whether Deny effects block admission
        non_compliance_message: Optional reason text for denials and findings
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    id: str | None = Field(default=None, description="Assignment identifier")
    policy_id: str = Field(..., alias="policyId", min_length=1)
    scope: str = Field(..., description="Scope path the assignment applies to", min_length=1)
    parameter_values: dict[str, Any] = Field(default_factory=dict, alias="parameterValues")
    not_scopes: list[str] = Field(default_factory=list, alias="notScopes")
    enforcement_mode: EnforcementMode = Field(
        default=EnforcementMode.DEFAULT,
        alias="enforcementMode",
    )
    non_compliance_message: str | None = Field(default=None, alias="nonComplianceMessage")

    @property
    def assignment_id(self) -> str:
        """The explicit id, or ``<policyId>@<scope>``."""
        return self.id or f"{self.policy_id}@{normalize_scope(self.scope)}"


class Resource(BaseModel):
    """
    The resource being created or updated.

    Attributes:
        type: Resource type string (e.g. "Microsoft.Storage/storageAccounts")
        scope_path: Scope the resource is created within
        tags: Tag key to value (an empty-string value is still a present tag)
        location: Region identifier
        name: Optional resource name
        supports_tags: Whether the resource type carries tags and location
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    type: str = Field(..., description="Resource type")
    scope_path: str = Field(..., alias="scopePath", description="Scope path of the resource")
    tags: dict[str, str] = Field(default_factory=dict, description="Resource tags")
    location: str | None = Field(default=None, description="Region identifier")
    name: str | None = Field(default=None, description="Resource name")
    supports_tags: bool = Field(default=True, alias="supportsTags")

    @field_validator("tags", mode="before")
    @classmethod
    def stringify_tag_values(cls, v: Any) -> Any:
        """YAML scalars (1234, true, an empty value) become tag strings."""
        if not isinstance(v, dict):
            return v
        return {key: _tag_string(value) for key, value in v.items()}

    @property
    def is_indexed(self) -> bool:
        """Whether policies in Indexed mode apply to this resource."""
        return self.supports_tags and self.type not in NON_INDEXED_TYPES


# =============================================================================
# Configuration
# =============================================================================


class EngineConfig(BaseModel):
    """
    Evaluation options.

    Attributes:
        strict_parameters: Fail closed on unevaluable assignments (implicit deny)
        collect_all_denials: Keep evaluating after the first denial
        case_sensitive_tags: Match tag keys case-sensitively
        fail_closed: Deny admission when the call itself is rejected
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    strict_parameters: bool = Field(default=False, alias="strictParameters")
    collect_all_denials: bool = Field(default=False, alias="collectAllDenials")
    case_sensitive_tags: bool = Field(default=True, alias="caseSensitiveTags")
    fail_closed: bool = Field(default=True, alias="failClosed")


# =============================================================================
# Result Models
# =============================================================================


class Denial(BaseModel):
    """
    A Deny-effect match that blocks admission.

    Attributes:
        assignment_id: Assignment that produced the denial
        policy_id: Definition that matched
        reason: Human-readable explanation
        condition: Rendered condition that matched (None for implicit denials)
        implicit: True when produced by strict mode for an unevaluable assignment
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    assignment_id: str = Field(..., alias="assignmentId")
    policy_id: str = Field(..., alias="policyId")
    reason: str
    condition: str | None = None
    implicit: bool = False


class AuditFinding(BaseModel):
    """An Audit-effect match, recorded without blocking admission."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    assignment_id: str = Field(..., alias="assignmentId")
    policy_id: str = Field(..., alias="policyId")
    reason: str
    condition: str | None = None


class ConfigurationIssue(BaseModel):
    """
    An assignment skipped because it could not be evaluated.

    Attributes:
        assignment_id: Assignment that was skipped
        policy_id: Referenced definition id
        error_type: Exception class name (e.g. "UnresolvedParameterError")
        code: Numeric error code
        message: Error message
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    assignment_id: str = Field(..., alias="assignmentId")
    policy_id: str = Field(..., alias="policyId")
    error_type: str = Field(..., alias="errorType")
    code: int
    message: str


class EvaluationResult(BaseModel):
    """
    Result of evaluating one resource against its applicable assignments.

    ``allowed`` is derived: false iff there is at least one denial.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    denials: list[Denial] = Field(default_factory=list)
    audit_findings: list[AuditFinding] = Field(default_factory=list, alias="auditFindings")
    configuration_issues: list[ConfigurationIssue] = Field(
        default_factory=list,
        alias="configurationIssues",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def allowed(self) -> bool:
        """Whether admission is permitted."""
        return not self.denials

    def reasons(self) -> list[str]:
        """Human-readable reasons: denials first, then audit findings."""
        reasons = [d.reason for d in self.denials]
        reasons.extend(f"audit: {f.reason}" for f in self.audit_findings)
        return reasons
