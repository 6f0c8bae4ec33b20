"""
Scope paths for govgate.

A scope is a hierarchical, slash-separated path such as
``/sub/rg-policy-demo/storage01``. Policy inheritance down the hierarchy
(subscription -> resource group -> resource) is modeled as a
segment-wise prefix relation:

    /sub                covers /sub/rg-policy-demo
    /sub/rg-policy-demo covers /sub/rg-policy-demo
    /sub/rg             does NOT cover /sub/rg-policy-demo

Comparison is case-sensitive. Empty segments (leading, trailing or doubled
slashes) are ignored, so ``/`` and the empty string both denote the root.
"""

ROOT_SCOPE = "/"


def scope_segments(scope: str) -> tuple[str, ...]:
    """Split a scope path into its non-empty segments."""
    return tuple(part for part in scope.strip().split("/") if part)


def normalize_scope(scope: str) -> str:
    """
    Return the canonical form of a scope path.

    Examples:
        "sub/rg/"  -> "/sub/rg"
        "//sub"    -> "/sub"
        ""         -> "/"
    """
    return "/" + "/".join(scope_segments(scope))


def is_ancestor_or_self(ancestor: str, scope: str) -> bool:
    """
    Check if ``ancestor`` is equal to, or a parent of, ``scope``.

    Args:
        ancestor: The candidate covering scope (e.g. an assignment scope)
        scope: The scope being tested (e.g. a resource's scopePath)

    Returns:
        True if every segment of ``ancestor`` matches the leading
        segments of ``scope``
    """
    ancestor_parts = scope_segments(ancestor)
    scope_parts = scope_segments(scope)
    if len(ancestor_parts) > len(scope_parts):
        return False
    return scope_parts[: len(ancestor_parts)] == ancestor_parts


def is_excluded(scope: str, not_scopes: list[str] | tuple[str, ...]) -> bool:
    """Check if ``scope`` falls under any of the excluded scopes."""
    return any(is_ancestor_or_self(excluded, scope) for excluded in not_scopes)
