"""
Policy Evaluation Engine for govgate.

The engine decides whether a resource may be created or updated, given the
policy assignments in force. It is invoked once per admission attempt.

Design Principles:
    - Pure: inputs are never mutated, nothing is persisted
    - Predictable: same inputs always produce equal results
    - Isolated failures: one broken assignment never aborts its siblings
    - Fail-closed in strict mode: an unevaluable assignment becomes a denial

How it works:
    1. Engine validates the resource (type and scopePath are required)
    2. Assignments whose scope does not cover the resource are skipped
    3. For each remaining assignment, in caller order:
         resolve definition -> bind parameters -> evaluate condition
    4. A Deny match stops evaluation (unless collect_all_denials);
       an Audit match is recorded and evaluation continues
    5. Returns EvaluationResult (allowed iff no denials)
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from govgate.errors import (
    DuplicatePolicyError,
    InvalidResourceError,
    MalformedPredicateError,
    ParameterTypeError,
    PolicyConfigurationError,
    PolicyNotFoundError,
    ScopeMismatchError,
    UnresolvedParameterError,
    UnsupportedEffectError,
)
from govgate.predicate import (
    Predicate,
    bind_parameters,
    describe_predicate,
    evaluate_predicate,
    parse_parameter_ref,
    parse_predicate,
)
from govgate.predicate.model import ParameterRef
from govgate.schema import (
    AuditFinding,
    ConfigurationIssue,
    Denial,
    Effect,
    EnforcementMode,
    EngineConfig,
    EvaluationResult,
    ParameterDefinition,
    ParameterType,
    PolicyAssignment,
    PolicyDefinition,
    PolicyMode,
    Resource,
)
from govgate.scope import is_ancestor_or_self, is_excluded

logger = logging.getLogger(__name__)


class PolicyEngine:
    """
    Central policy evaluator for govgate.

    Usage:
        engine = PolicyEngine(definitions)
        result = engine.evaluate(resource, assignments)
        if result.allowed:
            # let the create/update proceed
        else:
            # block it, result.denials says why

    The engine holds only immutable state after construction, so one
    instance can serve concurrent evaluate() calls.

    Attributes:
        config: Evaluation options
    """

    def __init__(
        self,
        definitions: Iterable[PolicyDefinition] = (),
        config: EngineConfig | None = None,
    ) -> None:
        """
        Initialize the engine.

        Rule conditions are compiled once here. A condition that fails to
        compile does not stop construction; every assignment of that
        definition is reported as malformed at evaluation time.

        Args:
            definitions: Policy definitions, unique by id
            config: Evaluation options (defaults to EngineConfig())

        Raises:
            DuplicatePolicyError: If two definitions share an id
        """
        self.config = config or EngineConfig()
        self._definitions: dict[str, PolicyDefinition] = {}
        self._predicates: dict[str, Predicate] = {}
        self._compile_errors: dict[str, str] = {}

        for definition in definitions:
            if definition.id in self._definitions:
                raise DuplicatePolicyError(policy_id=definition.id)
            self._definitions[definition.id] = definition
            try:
                self._predicates[definition.id] = parse_predicate(definition.rule.if_)
            except MalformedPredicateError as e:
                logger.warning("Policy %s has a malformed condition: %s", definition.id, e.detail)
                self._compile_errors[definition.id] = e.detail

    @property
    def definitions(self) -> Mapping[str, PolicyDefinition]:
        """Known definitions by id."""
        return dict(self._definitions)

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate(
        self,
        resource: Resource | Mapping[str, Any],
        assignments: Iterable[PolicyAssignment],
    ) -> EvaluationResult:
        """
        Evaluate a resource against policy assignments.

        Args:
            resource: The resource being admitted (model or document mapping)
            assignments: Assignments in evaluation order

        Returns:
            EvaluationResult with denials, audit findings and configuration issues

        Raises:
            InvalidResourceError: If the resource lacks type or scopePath
        """
        resource = self.validate_resource(resource)

        denials: list[Denial] = []
        findings: list[AuditFinding] = []
        issues: list[ConfigurationIssue] = []

        for assignment in self.applicable_assignments(resource, assignments):
            try:
                outcome = self._evaluate_assignment(assignment, resource)
            except PolicyConfigurationError as e:
                _attach_assignment(e, assignment)
                if self.config.strict_parameters:
                    logger.warning(
                        "Assignment %s cannot be evaluated, denying (strict): %s",
                        assignment.assignment_id,
                        e.message,
                    )
                    denials.append(
                        Denial(
                            assignment_id=assignment.assignment_id,
                            policy_id=assignment.policy_id,
                            reason=f"Policy '{assignment.policy_id}' could not be evaluated: {e.message}",
                            implicit=True,
                        )
                    )
                    if not self.config.collect_all_denials:
                        break
                else:
                    logger.warning(
                        "Assignment %s skipped: %s",
                        assignment.assignment_id,
                        e.message,
                    )
                    issues.append(
                        ConfigurationIssue(
                            assignment_id=assignment.assignment_id,
                            policy_id=assignment.policy_id,
                            error_type=type(e).__name__,
                            code=e.code,
                            message=e.message,
                        )
                    )
                continue

            if isinstance(outcome, Denial):
                logger.debug("Assignment %s denies: %s", assignment.assignment_id, outcome.reason)
                denials.append(outcome)
                if not self.config.collect_all_denials:
                    break
            elif isinstance(outcome, AuditFinding):
                logger.debug("Assignment %s audits: %s", assignment.assignment_id, outcome.reason)
                findings.append(outcome)

        return EvaluationResult(
            denials=denials,
            audit_findings=findings,
            configuration_issues=issues,
        )

    def applicable_assignments(
        self,
        resource: Resource,
        assignments: Iterable[PolicyAssignment],
    ) -> list[PolicyAssignment]:
        """
        Filter assignments to those whose scope covers the resource.

        Non-applicable assignments are not errors; they are dropped silently.
        """
        applicable = []
        for assignment in assignments:
            if not is_ancestor_or_self(assignment.scope, resource.scope_path):
                logger.debug(
                    "Assignment %s (scope %s) does not cover %s",
                    assignment.assignment_id,
                    assignment.scope,
                    resource.scope_path,
                )
                continue
            if is_excluded(resource.scope_path, assignment.not_scopes):
                logger.debug(
                    "Assignment %s excludes %s via notScopes",
                    assignment.assignment_id,
                    resource.scope_path,
                )
                continue
            applicable.append(assignment)
        return applicable

    def validate_resource(self, resource: Resource | Mapping[str, Any]) -> Resource:
        """
        Check the resource is evaluable, converting a mapping to a Resource.

        Raises:
            InvalidResourceError: If type or scopePath is missing or empty
        """
        if isinstance(resource, Mapping):
            missing = [
                name
                for name, attr in (("type", "type"), ("scopePath", "scope_path"))
                if not resource.get(name) and not resource.get(attr)
            ]
            if missing:
                raise InvalidResourceError(missing_fields=missing)
            try:
                resource = Resource.model_validate(resource)
            except ValidationError as e:
                raise InvalidResourceError(
                    message=f"Invalid resource: {e.error_count()} validation error(s)",
                    context={"errors": e.errors(include_url=False, include_context=False)},
                ) from e

        missing = []
        if not resource.type or not resource.type.strip():
            missing.append("type")
        if not resource.scope_path or not resource.scope_path.strip():
            missing.append("scopePath")
        if missing:
            raise InvalidResourceError(missing_fields=missing)
        return resource

    def _evaluate_assignment(
        self,
        assignment: PolicyAssignment,
        resource: Resource,
    ) -> Denial | AuditFinding | None:
        """
        Evaluate a single applicable assignment.

        Returns:
            Denial, AuditFinding, or None when the condition does not match
            or the policy does not apply to this resource

        Raises:
            PolicyConfigurationError: If the assignment cannot be evaluated
        """
        definition, values, effect = self.resolve_assignment(assignment)

        if effect is Effect.DISABLED:
            logger.debug("Assignment %s is disabled", assignment.assignment_id)
            return None

        if definition.mode is PolicyMode.INDEXED and not resource.is_indexed:
            logger.debug(
                "Policy %s is Indexed, %s is not an indexed type",
                definition.id,
                resource.type,
            )
            return None

        closed = bind_parameters(self._predicates[definition.id], values)
        if not evaluate_predicate(closed, resource, self.config.case_sensitive_tags):
            return None

        condition = describe_predicate(closed)
        enforced = assignment.enforcement_mode is EnforcementMode.DEFAULT

        if effect is Effect.DENY and enforced:
            return Denial(
                assignment_id=assignment.assignment_id,
                policy_id=definition.id,
                reason=assignment.non_compliance_message
                or f"Policy '{definition.label}' denied the request: {condition}",
                condition=condition,
            )

        return AuditFinding(
            assignment_id=assignment.assignment_id,
            policy_id=definition.id,
            reason=assignment.non_compliance_message
            or f"Policy '{definition.label}' flagged the resource: {condition}",
            condition=condition,
        )

    # =========================================================================
    # Assignment Resolution
    # =========================================================================

    def resolve_assignment(
        self,
        assignment: PolicyAssignment,
    ) -> tuple[PolicyDefinition, dict[str, Any], Effect]:
        """
        Resolve everything about an assignment that does not depend on a resource.

        Returns:
            Tuple of (definition, parameter values, effect)

        Raises:
            PolicyNotFoundError: If the definition id is unknown
            ScopeMismatchError: If the assignment scope is outside the definition scope
            UnresolvedParameterError: If a required parameter has no value
            ParameterTypeError: If a value has the wrong type or is not allowed
            UnsupportedEffectError: If the effect resolves to Append or an unknown name
            MalformedPredicateError: If the definition's condition failed to compile
        """
        definition = self._definitions.get(assignment.policy_id)
        if definition is None:
            raise PolicyNotFoundError(policy_id=assignment.policy_id)

        if not is_ancestor_or_self(definition.scope, assignment.scope):
            raise ScopeMismatchError(
                policy_id=definition.id,
                assignment_scope=assignment.scope,
                definition_scope=definition.scope,
            )

        if definition.id in self._compile_errors:
            raise MalformedPredicateError(
                policy_id=definition.id,
                detail=self._compile_errors[definition.id],
            )

        values = resolve_parameters(definition, assignment)
        effect = resolve_effect(definition, values)
        return definition, values, effect

    def check_assignment(self, assignment: PolicyAssignment) -> PolicyConfigurationError | None:
        """
        Validate an assignment without a resource.

        Returns:
            The configuration error that would make it unevaluable, or None
        """
        try:
            self.resolve_assignment(assignment)
        except PolicyConfigurationError as e:
            _attach_assignment(e, assignment)
            return e
        return None


# =============================================================================
# Parameter and Effect Resolution
# =============================================================================


def resolve_parameters(
    definition: PolicyDefinition,
    assignment: PolicyAssignment,
) -> dict[str, Any]:
    """
    Compute the parameter values for an assignment.

    Each declared parameter takes the assignment's value, else the declared
    default. Values supplied for undeclared parameters are ignored.

    Raises:
        UnresolvedParameterError: If a parameter has neither
        ParameterTypeError: If a supplied value does not fit its declaration
    """
    values: dict[str, Any] = {}
    for name, declaration in definition.parameters.items():
        if name in assignment.parameter_values:
            value = assignment.parameter_values[name]
            _check_parameter_value(definition.id, name, declaration, value)
            values[name] = value
        elif declaration.has_default:
            values[name] = declaration.default_value
        else:
            raise UnresolvedParameterError(policy_id=definition.id, parameter=name)

    for name in assignment.parameter_values:
        if name not in definition.parameters:
            logger.debug(
                "Assignment %s supplies undeclared parameter %s",
                assignment.assignment_id,
                name,
            )
    return values


def _check_parameter_value(
    policy_id: str,
    name: str,
    declaration: ParameterDefinition,
    value: Any,
) -> None:
    if not _matches_type(declaration.type, value):
        raise ParameterTypeError(
            policy_id=policy_id,
            parameter=name,
            expected=declaration.type.value,
            actual=type(value).__name__,
        )
    if declaration.allowed_values is not None and value not in declaration.allowed_values:
        raise ParameterTypeError(
            policy_id=policy_id,
            parameter=name,
            expected=f"one of {declaration.allowed_values}",
            actual=repr(value),
        )


def _matches_type(declared: ParameterType, value: Any) -> bool:
    """Check a value against a declared parameter type (bool is not a number)."""
    if declared is ParameterType.STRING:
        return isinstance(value, str)
    if declared is ParameterType.ARRAY:
        return isinstance(value, (list, tuple))
    if declared is ParameterType.BOOLEAN:
        return isinstance(value, bool)
    if declared is ParameterType.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if declared is ParameterType.FLOAT:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if declared is ParameterType.OBJECT:
        return isinstance(value, Mapping)
    return False


def resolve_effect(definition: PolicyDefinition, values: Mapping[str, Any]) -> Effect:
    """
    Resolve a definition's effect, following a parameter reference if present.

    Raises:
        UnsupportedEffectError: If the effect is Append or not a known effect
    """
    raw: Any = definition.rule.then.effect
    ref = parse_parameter_ref(raw)
    if isinstance(ref, ParameterRef):
        raw = values.get(ref.name)

    try:
        effect = Effect.parse(raw) if isinstance(raw, str) else None
    except ValueError:
        effect = None

    if effect is None or effect is Effect.APPEND:
        raise UnsupportedEffectError(policy_id=definition.id, effect=str(raw))
    return effect


def _attach_assignment(error: PolicyConfigurationError, assignment: PolicyAssignment) -> None:
    """Fill in which assignment an error belongs to."""
    if not error.policy_id:
        error.policy_id = assignment.policy_id
    error.assignment_id = assignment.assignment_id
    error.context.update({
        "policy_id": error.policy_id,
        "assignment_id": error.assignment_id,
    })
