"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest
from prometheus_client import CollectorRegistry

# Make src/ and the test helpers (azure_mock, fakes) importable without install
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from managed_certs.config import Config  # noqa: E402

TEST_SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000001"

TEST_ENV = {
    "AZURE_SUBSCRIPTION_ID": TEST_SUBSCRIPTION_ID,
    "AZURE_RESOURCE_GROUP": "rg-certs",
    "AZURE_LOCATION": "westeurope",
    "STATE_NAMESPACE": "kube-system",
    "STATE_CONFIG_MAP": "managed-certificate-state",
}


@pytest.fixture
def base_config() -> Config:
    """Minimal valid configuration."""
    return Config(
        subscription_id=TEST_SUBSCRIPTION_ID,
        resource_group_name="rg-certs",
        location="westeurope",
    )


@pytest.fixture
def registry() -> CollectorRegistry:
    """Isolated Prometheus registry, so collectors can be registered per test."""
    return CollectorRegistry()
