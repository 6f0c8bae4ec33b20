"""
Parser from declarative policy documents to predicate trees.

Document form:

    {"field": "tags['Environment']", "exists": false}
    {"field": "location", "equals": "eastus"}
    {"field": "location", "notEquals": "eastus"}
    {"field": "location", "in": "[parameters('allowedLocations')]"}
    {"field": "location", "notIn": ["eastus", "westus"]}
    {"allOf": [...]}
    {"anyOf": [...]}
    {"not": {...}}

``notEquals`` and ``notIn`` are compiled to ``Not(Equals)`` and
``Not(MemberOf)`` so the evaluator only deals with six node kinds.

Any unknown operator, unknown field path, or structurally invalid node
raises MalformedPredicateError.
"""

import re
from collections.abc import Iterator, Mapping
from typing import Any

from govgate.errors import MalformedPredicateError
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

# Plain resource properties addressable by a field path
RESOURCE_FIELDS = ("type", "location", "name", "scopePath")

LEAF_OPERATORS = ("exists", "equals", "notEquals", "in", "notIn")
COMPOSITE_OPERATORS = ("allOf", "anyOf", "not")

_PARAMETER_PATTERN = re.compile(r"^\[parameters\('([^']+)'\)\]$")
_TAG_BRACKET_PATTERN = re.compile(r"^tags\[(?:'([^']*)'|\"([^\"]*)\"|([^\]'\"]+))\]$")


def parse_parameter_ref(value: Any) -> Any:
    """
    Convert a ``[parameters('name')]`` string into a ParameterRef.

    Any other value is returned unchanged.
    """
    if isinstance(value, str):
        match = _PARAMETER_PATTERN.match(value.strip())
        if match:
            return ParameterRef(name=match.group(1))
    return value


def parse_field_path(path: Any) -> str:
    """
    Normalize a field path to its canonical form.

    Examples:
        "type"                 -> "type"
        "tags.Environment"     -> "tags.Environment"
        "tags['Environment']"  -> "tags.Environment"
        "tags[Environment]"    -> "tags.Environment"

    Raises:
        MalformedPredicateError: If the path addresses no known field
    """
    if not isinstance(path, str) or not path.strip():
        raise MalformedPredicateError(detail=f"field must be a non-empty string, got {path!r}")

    path = path.strip()
    if path in RESOURCE_FIELDS:
        return path

    if path.startswith("tags."):
        key = path[len("tags."):]
        if key:
            return f"tags.{key}"

    match = _TAG_BRACKET_PATTERN.match(path)
    if match:
        key = next(group for group in match.groups() if group is not None)
        if key:
            return f"tags.{key}"

    raise MalformedPredicateError(detail=f"unknown field path: {path}")


def parse_predicate(document: Any) -> Predicate:
    """
    Parse a predicate document into a typed predicate tree.

    Args:
        document: A mapping in the declarative document form

    Returns:
        The predicate tree, possibly containing ParameterRef operands

    Raises:
        MalformedPredicateError: If the document is not a valid predicate
    """
    if not isinstance(document, Mapping):
        raise MalformedPredicateError(
            detail=f"predicate must be a mapping, got {type(document).__name__}"
        )

    composite = [key for key in COMPOSITE_OPERATORS if key in document]
    if composite:
        if len(document) != 1:
            raise MalformedPredicateError(
                detail=f"'{composite[0]}' must be the only key in its node, got {sorted(document)}"
            )
        return _parse_composite(composite[0], document[composite[0]])

    if "field" not in document:
        raise MalformedPredicateError(
            detail=f"unsupported operator in node: {sorted(document)}"
        )

    field_path = parse_field_path(document["field"])
    operators = [key for key in document if key != "field"]
    if len(operators) != 1:
        raise MalformedPredicateError(
            detail=f"field condition needs exactly one operator, got {operators}"
        )

    operator = operators[0]
    if operator not in LEAF_OPERATORS:
        raise MalformedPredicateError(detail=f"unsupported operator: {operator}")

    operand = parse_parameter_ref(document[operator])

    if operator == "exists":
        return Exists(field=field_path, expected=operand)
    if operator == "equals":
        return Equals(field=field_path, value=operand)
    if operator == "notEquals":
        return Not(child=Equals(field=field_path, value=operand))

    values = _parse_values(operator, operand)
    if operator == "in":
        return MemberOf(field=field_path, values=values)
    return Not(child=MemberOf(field=field_path, values=values))


def _parse_composite(operator: str, operand: Any) -> Predicate:
    """Parse allOf / anyOf / not nodes."""
    if operator == "not":
        return Not(child=parse_predicate(operand))

    if not isinstance(operand, list):
        raise MalformedPredicateError(detail=f"'{operator}' requires a list of conditions")

    children = tuple(parse_predicate(child) for child in operand)
    if operator == "allOf":
        return And(children=children)
    return Or(children=children)


def _parse_values(operator: str, operand: Any) -> Any:
    """Membership operands are a list literal or a parameter reference."""
    if isinstance(operand, ParameterRef):
        return operand
    if isinstance(operand, (list, tuple)):
        return tuple(operand)
    raise MalformedPredicateError(
        detail=f"'{operator}' requires an array or a parameter reference, got {operand!r}"
    )


def iter_parameter_names(document: Any) -> Iterator[str]:
    """
    Yield every parameter name referenced anywhere in a raw document.

    Used to check a rule against its declared parameters without
    compiling it.
    """
    if isinstance(document, str):
        ref = parse_parameter_ref(document)
        if isinstance(ref, ParameterRef):
            yield ref.name
    elif isinstance(document, Mapping):
        for value in document.values():
            yield from iter_parameter_names(value)
    elif isinstance(document, (list, tuple)):
        for item in document:
            yield from iter_parameter_names(item)
