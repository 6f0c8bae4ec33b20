"""
Policy bundle loading for govgate.

A bundle is a declarative document holding everything an evaluation needs
besides the resource:

    engine:
      strictParameters: false
    definitions:
      - id: require-env-tag
        mode: Indexed
        policyRule:
          if: {field: "tags['Environment']", exists: false}
          then: {effect: Deny}
    assignments:
      - policyId: require-env-tag
        scope: /sub/rg-policy-demo

Bundles are YAML or JSON (the YAML parser reads both). A bundle path may be
a directory: every *.yaml, *.yml and *.json file in it is loaded in sorted
filename order and the lists are concatenated; a later ``engine`` section
overrides earlier keys.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from govgate.engine import PolicyEngine
from govgate.errors import BundleLoadError
from govgate.schema import EngineConfig, PolicyAssignment, PolicyDefinition

logger = logging.getLogger(__name__)

BUNDLE_SUFFIXES = (".yaml", ".yml", ".json")


class PolicyBundle(BaseModel):
    """
    Definitions, assignments and engine options loaded together.

    Attributes:
        definitions: Policy definitions
        assignments: Policy assignments, in evaluation order
        engine: Evaluation options
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    definitions: list[PolicyDefinition] = Field(default_factory=list)
    assignments: list[PolicyAssignment] = Field(default_factory=list)
    engine: EngineConfig = Field(default_factory=EngineConfig)

    def build_engine(self, **overrides: Any) -> PolicyEngine:
        """
        Create a PolicyEngine for this bundle.

        Args:
            **overrides: EngineConfig fields that take precedence over the
                bundle's engine section (None values are ignored)
        """
        updates = {key: value for key, value in overrides.items() if value is not None}
        config = self.engine.model_copy(update=updates) if updates else self.engine
        return PolicyEngine(self.definitions, config)


def load_document(path: Path | str) -> Any:
    """
    Parse a YAML or JSON file.

    Raises:
        BundleLoadError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        with path.open() as f:
            return yaml.safe_load(f)
    except OSError as e:
        raise BundleLoadError(path=str(path), underlying_error=str(e)) from e
    except yaml.YAMLError as e:
        raise BundleLoadError(path=str(path), underlying_error=f"parse error: {e}") from e


def load_bundle(path: Path | str) -> PolicyBundle:
    """
    Load a policy bundle from a file or a directory of files.

    Args:
        path: Bundle file, or directory of bundle files

    Returns:
        Validated PolicyBundle

    Raises:
        BundleLoadError: If a file is missing, unparsable or invalid
    """
    path = Path(path)
    if path.is_dir():
        files = sorted(p for p in path.iterdir() if p.is_file() and p.suffix in BUNDLE_SUFFIXES)
        if not files:
            raise BundleLoadError(path=str(path), underlying_error="no bundle files in directory")
    else:
        files = [path]

    merged: dict[str, Any] = {"definitions": [], "assignments": [], "engine": {}}
    for file in files:
        data = load_document(file)
        if data is None:
            continue
        if not isinstance(data, Mapping):
            raise BundleLoadError(
                path=str(file),
                underlying_error=f"expected a mapping at top level, got {type(data).__name__}",
            )
        unknown = set(data) - set(merged)
        if unknown:
            raise BundleLoadError(
                path=str(file),
                underlying_error=f"unknown top-level keys: {', '.join(sorted(unknown))}",
            )
        merged["definitions"].extend(data.get("definitions") or [])
        merged["assignments"].extend(data.get("assignments") or [])
        merged["engine"].update(data.get("engine") or {})

    bundle = load_bundle_from_dict(merged, source=str(path))
    logger.info(
        "Loaded bundle %s: %d definition(s), %d assignment(s)",
        path,
        len(bundle.definitions),
        len(bundle.assignments),
    )
    return bundle


def load_bundle_from_dict(data: Mapping[str, Any], source: str = "<memory>") -> PolicyBundle:
    """Validate an already-parsed bundle document."""
    try:
        return PolicyBundle.model_validate(data)
    except ValidationError as e:
        raise BundleLoadError(path=source, underlying_error=_summarize(e)) from e


def load_bundle_from_string(content: str) -> PolicyBundle:
    """Load a bundle from a YAML/JSON string."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise BundleLoadError(path="<string>", underlying_error=f"parse error: {e}") from e
    return load_bundle_from_dict(data or {}, source="<string>")


def load_resources(path: Path | str) -> list[dict[str, Any]]:
    """
    Load resource documents for evaluation or scanning.

    Accepts a single resource mapping, a list of mappings, or a mapping
    with a ``resources`` list. Documents are returned unvalidated so the
    engine can report each bad resource individually.

    Raises:
        BundleLoadError: If the file cannot be parsed or has the wrong shape
    """
    data = load_document(path)
    if isinstance(data, Mapping) and "resources" in data:
        data = data["resources"]
    if isinstance(data, Mapping):
        data = [data]
    if not isinstance(data, list) or not all(isinstance(item, Mapping) for item in data):
        raise BundleLoadError(
            path=str(path),
            underlying_error="expected a resource mapping or a list of resource mappings",
        )
    return [dict(item) for item in data]


def _summarize(error: ValidationError) -> str:
    """One line per validation error: location and message."""
    lines = []
    for item in error.errors(include_url=False):
        location = ".".join(str(part) for part in item["loc"])
        lines.append(f"{location}: {item['msg']}")
    return "; ".join(lines)
