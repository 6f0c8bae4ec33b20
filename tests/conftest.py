"""
Pytest configuration and fixtures for govgate tests.

This module provides shared fixtures used across unit and integration tests.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from govgate.schema import PolicyAssignment, PolicyDefinition, Resource


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def require_env_tag() -> PolicyDefinition:
    """Deny resources without an Environment tag."""
    return PolicyDefinition.model_validate({
        "id": "require-env-tag",
        "mode": "Indexed",
        "policyRule": {
            "if": {"field": "tags['Environment']", "exists": False},
            "then": {"effect": "Deny"},
        },
    })


@pytest.fixture
def allowed_locations() -> PolicyDefinition:
    """Deny resources outside allowedLocations (required parameter)."""
    return PolicyDefinition.model_validate({
        "id": "allowed-locations",
        "parameters": {"allowedLocations": {"type": "Array"}},
        "policyRule": {
            "if": {"field": "location", "notIn": "[parameters('allowedLocations')]"},
            "then": {"effect": "Deny"},
        },
    })


@pytest.fixture
def audit_owner_tag() -> PolicyDefinition:
    """Audit resources without an Owner tag."""
    return PolicyDefinition.model_validate({
        "id": "audit-owner-tag",
        "policyRule": {
            "if": {"field": "tags.Owner", "exists": False},
            "then": {"effect": "Audit"},
        },
    })


@pytest.fixture
def demo_assignment() -> PolicyAssignment:
    """require-env-tag assigned at the demo resource group."""
    return PolicyAssignment(
        id="rg-demo-require-env",
        policy_id="require-env-tag",
        scope="/sub/rg-policy-demo",
    )


@pytest.fixture
def storage_account() -> Resource:
    """An untagged storage account in the demo resource group."""
    return Resource(
        type="Microsoft.Storage/storageAccounts",
        scope_path="/sub/rg-policy-demo",
        location="southeastasia",
    )


@pytest.fixture
def sample_bundle_yaml() -> str:
    """Return a bundle YAML with a tag policy and a location policy."""
    return """
definitions:
  - id: require-env-tag
    mode: Indexed
    policyRule:
      if:
        field: "tags['Environment']"
        exists: false
      then:
        effect: Deny
  - id: allowed-locations
    parameters:
      allowedLocations:
        type: Array
    policyRule:
      if:
        field: location
        notIn: "[parameters('allowedLocations')]"
      then:
        effect: Deny
assignments:
  - id: demo-require-env
    policyId: require-env-tag
    scope: /sub/rg-policy-demo
  - id: sub-locations
    policyId: allowed-locations
    scope: /sub
    parameterValues:
      allowedLocations: [southeastasia]
"""


@pytest.fixture
def bundle_file(temp_dir: Path, sample_bundle_yaml: str) -> Path:
    """Write the sample bundle to a file."""
    path = temp_dir / "bundle.yaml"
    path.write_text(sample_bundle_yaml)
    return path
