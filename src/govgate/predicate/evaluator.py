"""
Parameter binding and evaluation of predicate trees.

Evaluation is a two-step process:

    1. bind_parameters() substitutes every ParameterRef with a concrete
       value, producing a closed predicate.
    2. evaluate_predicate() walks the closed predicate against a Resource.

Tag existence semantics: an absent tag key does not exist; a key mapped to
an empty string exists. Equality and membership never match an absent field.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from govgate.errors import MalformedPredicateError, UnresolvedParameterError
from govgate.predicate.model import (
    And,
    Equals,
    Exists,
    MemberOf,
    Not,
    Or,
    ParameterRef,
    Predicate,
)

if TYPE_CHECKING:
    from govgate.schema import Resource


_MISSING = object()


# =============================================================================
# Binding
# =============================================================================


def bind_parameters(predicate: Predicate, values: Mapping[str, Any]) -> Predicate:
    """
    Substitute parameter values into a predicate.

    Args:
        predicate: Predicate possibly containing ParameterRef operands
        values: Resolved parameter values by name

    Returns:
        A closed predicate with no ParameterRef left

    Raises:
        UnresolvedParameterError: If a referenced parameter has no value
        MalformedPredicateError: If a bound operand has the wrong shape
    """
    if isinstance(predicate, And):
        return And(children=tuple(bind_parameters(c, values) for c in predicate.children))
    if isinstance(predicate, Or):
        return Or(children=tuple(bind_parameters(c, values) for c in predicate.children))
    if isinstance(predicate, Not):
        return Not(child=bind_parameters(predicate.child, values))
    if isinstance(predicate, Exists):
        expected = _coerce_bool(_resolve(predicate.expected, values), predicate.field)
        return Exists(field=predicate.field, expected=expected)
    if isinstance(predicate, Equals):
        return Equals(field=predicate.field, value=_resolve(predicate.value, values))
    if isinstance(predicate, MemberOf):
        bound = _resolve(predicate.values, values)
        if not isinstance(bound, (list, tuple)):
            raise MalformedPredicateError(
                detail=f"'in' on {predicate.field} requires an array, got {bound!r}"
            )
        return MemberOf(field=predicate.field, values=tuple(bound))

    raise MalformedPredicateError(detail=f"unknown predicate node: {predicate!r}")


def _resolve(operand: Any, values: Mapping[str, Any]) -> Any:
    if isinstance(operand, ParameterRef):
        if operand.name not in values:
            raise UnresolvedParameterError(parameter=operand.name)
        return values[operand.name]
    return operand


def _coerce_bool(value: Any, field_path: str) -> bool:
    """Documents may write exists as true/false or "true"/"false"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise MalformedPredicateError(
        detail=f"'exists' on {field_path} requires a boolean, got {value!r}"
    )


# =============================================================================
# Evaluation
# =============================================================================


def evaluate_predicate(
    predicate: Predicate,
    resource: Resource,
    case_sensitive_tags: bool = True,
) -> bool:
    """
    Evaluate a closed predicate against a resource.

    Args:
        predicate: A predicate with all parameters bound
        resource: The resource being admitted
        case_sensitive_tags: Whether tag keys are matched case-sensitively

    Returns:
        True if the predicate holds for the resource

    Raises:
        MalformedPredicateError: If an unbound parameter or unknown node remains
    """
    if isinstance(predicate, And):
        return all(evaluate_predicate(c, resource, case_sensitive_tags) for c in predicate.children)
    if isinstance(predicate, Or):
        return any(evaluate_predicate(c, resource, case_sensitive_tags) for c in predicate.children)
    if isinstance(predicate, Not):
        return not evaluate_predicate(predicate.child, resource, case_sensitive_tags)

    if isinstance(predicate, (Exists, Equals, MemberOf)):
        actual = lookup_field(resource, predicate.field, case_sensitive_tags)

        if isinstance(predicate, Exists):
            _ensure_bound(predicate.expected, predicate.field)
            return (actual is not _MISSING) == predicate.expected

        if actual is _MISSING:
            return False

        if isinstance(predicate, Equals):
            _ensure_bound(predicate.value, predicate.field)
            return actual == predicate.value

        _ensure_bound(predicate.values, predicate.field)
        return actual in predicate.values

    raise MalformedPredicateError(detail=f"unknown predicate node: {predicate!r}")


def _ensure_bound(operand: Any, field_path: str) -> None:
    if isinstance(operand, ParameterRef):
        raise MalformedPredicateError(
            detail=f"unbound parameter {operand.name} in condition on {field_path}"
        )


def lookup_field(resource: Resource, field_path: str, case_sensitive_tags: bool = True) -> Any:
    """
    Read a canonical field path from a resource.

    Returns the field value, or a sentinel when the field does not exist.
    A tag mapped to "" exists and returns "".
    """
    if field_path.startswith("tags."):
        key = field_path[len("tags."):]
        if key in resource.tags:
            return resource.tags[key]
        if not case_sensitive_tags:
            folded = key.casefold()
            for tag_key, tag_value in resource.tags.items():
                if tag_key.casefold() == folded:
                    return tag_value
        return _MISSING

    if field_path == "type":
        value = resource.type
    elif field_path == "location":
        value = resource.location
    elif field_path == "name":
        value = resource.name
    elif field_path == "scopePath":
        value = resource.scope_path
    else:
        raise MalformedPredicateError(detail=f"unknown field path: {field_path}")

    return _MISSING if value is None else value


def field_exists(resource: Resource, field_path: str, case_sensitive_tags: bool = True) -> bool:
    """Check whether a field path is present on a resource."""
    return lookup_field(resource, field_path, case_sensitive_tags) is not _MISSING


# =============================================================================
# Rendering
# =============================================================================


def describe_predicate(predicate: Predicate) -> str:
    """
    Render a predicate as a short human-readable expression.

    Examples:
        not exists(tags.Environment)
        location not in ['southeastasia']
        (type == 'Microsoft.Storage/storageAccounts' and exists(tags.Owner))
    """
    if isinstance(predicate, Exists):
        text = f"exists({predicate.field})"
        if predicate.expected is True:
            return text
        if predicate.expected is False:
            return f"not {text}"
        return f"{text} == {predicate.expected}"
    if isinstance(predicate, Equals):
        return f"{predicate.field} == {_render(predicate.value)}"
    if isinstance(predicate, MemberOf):
        return f"{predicate.field} in {_render(predicate.values)}"
    if isinstance(predicate, Not):
        child = predicate.child
        if isinstance(child, Equals):
            return f"{child.field} != {_render(child.value)}"
        if isinstance(child, MemberOf):
            return f"{child.field} not in {_render(child.values)}"
        return f"not {describe_predicate(child)}"
    if isinstance(predicate, And):
        return "(" + " and ".join(describe_predicate(c) for c in predicate.children) + ")"
    if isinstance(predicate, Or):
        return "(" + " or ".join(describe_predicate(c) for c in predicate.children) + ")"
    return repr(predicate)


def _render(value: Any) -> str:
    if isinstance(value, ParameterRef):
        return str(value)
    if isinstance(value, tuple):
        return repr(list(value))
    return repr(value)
