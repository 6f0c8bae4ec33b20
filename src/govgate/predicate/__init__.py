"""
Predicate module for govgate.

Policy rules are recursive predicate trees over a small, closed set of node
kinds (Exists, Equals, MemberOf, And, Or, Not). Rules arrive as declarative
documents, are parsed into trees, bound to parameter values, and then
evaluated against a resource.

Example:
    from govgate.predicate import parse_predicate, bind_parameters, evaluate_predicate

    tree = parse_predicate({"field": "location", "notIn": "[parameters('allowed')]"})
    closed = bind_parameters(tree, {"allowed": ["southeastasia"]})
    evaluate_predicate(closed, resource)
"""

from govgate.predicate.evaluator import (
    bind_parameters,
    describe_predicate,
    evaluate_predicate,
    field_exists,
)
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
from govgate.predicate.parser import (
    iter_parameter_names,
    parse_field_path,
    parse_parameter_ref,
    parse_predicate,
)

__all__ = [
    "And",
    "Equals",
    "Exists",
    "MemberOf",
    "Not",
    "Or",
    "ParameterRef",
    "Predicate",
    "bind_parameters",
    "describe_predicate",
    "evaluate_predicate",
    "field_exists",
    "iter_parameter_names",
    "parse_field_path",
    "parse_parameter_ref",
    "parse_predicate",
]
