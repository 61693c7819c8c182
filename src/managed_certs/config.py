"""Configuration management with validation.

All settings come from environment variables and are validated at load time,
so a misconfigured controller fails at startup rather than mid-reconciliation.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_RESYNC_INTERVAL_SECONDS = 60
MIN_RESYNC_INTERVAL_SECONDS = 10
MAX_RESYNC_INTERVAL_SECONDS = 3600

DEFAULT_API_TIMEOUT_SECONDS = 60
MIN_API_TIMEOUT_SECONDS = 5
MAX_API_TIMEOUT_SECONDS = 600

DEFAULT_METRICS_PORT = 9090

DEFAULT_STATE_NAMESPACE = "kube-system"
DEFAULT_STATE_CONFIG_MAP = "managed-certificate-state"

# ManagedCertificate custom resource coordinates
MANAGED_CERTIFICATE_GROUP = "networking.azure-managed-certs.io"
MANAGED_CERTIFICATE_VERSION = "v1"
MANAGED_CERTIFICATE_PLURAL = "managedcertificates"
MANAGED_CERTIFICATE_KIND = "ManagedCertificate"

# ARM certificate resource
CERTIFICATE_RESOURCE_TYPE = "Microsoft.Web/certificates"
CERTIFICATE_API_VERSION = "2023-12-01"
SSL_CERTIFICATE_NAME_PREFIX = "mcrt"
MAX_DOMAINS_PER_CERTIFICATE = 100

# Ownership tags written on every certificate this controller creates
OWNER_NAMESPACE_TAG = "managed-certificate-namespace"
OWNER_NAME_TAG = "managed-certificate-name"
MANAGED_BY_TAG = "managedBy"
MANAGED_BY_VALUE = "azure-managed-certs"

# ARM provisioning state -> ManagedCertificate certificate status
CERTIFICATE_STATUS: dict[str, str] = {
    "Succeeded": "Active",
    "Accepted": "Provisioning",
    "Creating": "Provisioning",
    "InProgress": "Provisioning",
    "Provisioning": "Provisioning",
    "Updating": "Provisioning",
    "Failed": "ProvisioningFailed",
    "Canceled": "ProvisioningFailedPermanently",
}

# ARM provisioning state -> per-domain status
DOMAIN_STATUS: dict[str, str] = {
    "Succeeded": "Active",
    "Accepted": "Provisioning",
    "Creating": "Provisioning",
    "InProgress": "Provisioning",
    "Provisioning": "Provisioning",
    "Updating": "Provisioning",
    "Failed": "FailedNotVisible",
    "Canceled": "FailedCaaForbidden",
}

# Input validation patterns
VALID_SUBSCRIPTION_ID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
VALID_LOCATION_PATTERN = r"^[a-z]{2,}[a-z0-9]*$"
VALID_RESOURCE_GROUP_PATTERN = r"^[-\w._()]{1,90}$"
VALID_K8S_NAME_PATTERN = r"^[a-z0-9]([-a-z0-9.]{0,251}[a-z0-9])?$"


@dataclass(frozen=True)
class Config:
    """Controller configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    # Required fields
    subscription_id: str
    resource_group_name: str
    location: str

    # Identity used for ARM calls, None selects the system-assigned identity
    client_id: str | None = None

    # App Service plan the managed certificates are bound to
    server_farm_id: str | None = None

    # State persistence
    state_namespace: str = DEFAULT_STATE_NAMESPACE
    state_config_map: str = DEFAULT_STATE_CONFIG_MAP

    # Timing
    resync_interval_seconds: int = DEFAULT_RESYNC_INTERVAL_SECONDS
    api_timeout_seconds: int = DEFAULT_API_TIMEOUT_SECONDS

    # Observability
    metrics_port: int = DEFAULT_METRICS_PORT
    enable_kubernetes_events: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.subscription_id:
            errors.append("AZURE_SUBSCRIPTION_ID is required")
        elif not re.match(VALID_SUBSCRIPTION_ID_PATTERN, self.subscription_id.lower()):
            errors.append(f"AZURE_SUBSCRIPTION_ID must be a valid GUID: {self.subscription_id}")

        if not self.resource_group_name:
            errors.append("AZURE_RESOURCE_GROUP is required")
        elif not re.match(VALID_RESOURCE_GROUP_PATTERN, self.resource_group_name):
            errors.append(f"AZURE_RESOURCE_GROUP is not a valid name: {self.resource_group_name}")

        if not self.location:
            errors.append("AZURE_LOCATION is required")
        elif not re.match(VALID_LOCATION_PATTERN, self.location.lower()):
            errors.append(f"AZURE_LOCATION must be a valid Azure region: {self.location}")

        if not re.match(VALID_K8S_NAME_PATTERN, self.state_namespace):
            errors.append(f"STATE_NAMESPACE is not a valid namespace: {self.state_namespace}")

        if not re.match(VALID_K8S_NAME_PATTERN, self.state_config_map):
            errors.append(f"STATE_CONFIG_MAP is not a valid name: {self.state_config_map}")

        if not (
            MIN_RESYNC_INTERVAL_SECONDS
            <= self.resync_interval_seconds
            <= MAX_RESYNC_INTERVAL_SECONDS
        ):
            errors.append(
                f"RESYNC_INTERVAL must be between {MIN_RESYNC_INTERVAL_SECONDS} "
                f"and {MAX_RESYNC_INTERVAL_SECONDS} seconds"
            )

        if not MIN_API_TIMEOUT_SECONDS <= self.api_timeout_seconds <= MAX_API_TIMEOUT_SECONDS:
            errors.append(
                f"API_TIMEOUT must be between {MIN_API_TIMEOUT_SECONDS} "
                f"and {MAX_API_TIMEOUT_SECONDS} seconds"
            )

        if not 1 <= self.metrics_port <= 65535:
            errors.append(f"METRICS_PORT must be a valid TCP port: {self.metrics_port}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def certificate_scope(self) -> str:
        """ARM scope under which certificates are created."""
        return (
            f"/subscriptions/{self.subscription_id}"
            f"/resourceGroups/{self.resource_group_name}"
        )

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            AZURE_SUBSCRIPTION_ID: Subscription holding the certificates
            AZURE_RESOURCE_GROUP: Resource group holding the certificates
            AZURE_LOCATION: Region certificates are created in
            AZURE_CLIENT_ID: Optional user-assigned managed identity client ID
            CERTIFICATE_SERVER_FARM_ID: Optional App Service plan resource ID
            STATE_NAMESPACE: Namespace of the state ConfigMap (default: kube-system)
            STATE_CONFIG_MAP: Name of the state ConfigMap
            RESYNC_INTERVAL: Seconds between resync passes (default: 60)
            API_TIMEOUT: Timeout for outbound API calls in seconds (default: 60)
            METRICS_PORT: Prometheus metrics port (default: 9090)
            ENABLE_KUBERNETES_EVENTS: Emit Kubernetes Events (default: true)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID", ""),
            resource_group_name=os.environ.get("AZURE_RESOURCE_GROUP", ""),
            location=os.environ.get("AZURE_LOCATION", ""),
            client_id=os.environ.get("AZURE_CLIENT_ID") or None,
            server_farm_id=os.environ.get("CERTIFICATE_SERVER_FARM_ID") or None,
            state_namespace=os.environ.get("STATE_NAMESPACE", DEFAULT_STATE_NAMESPACE),
            state_config_map=os.environ.get("STATE_CONFIG_MAP", DEFAULT_STATE_CONFIG_MAP),
            resync_interval_seconds=get_int("RESYNC_INTERVAL", DEFAULT_RESYNC_INTERVAL_SECONDS),
            api_timeout_seconds=get_int("API_TIMEOUT", DEFAULT_API_TIMEOUT_SECONDS),
            metrics_port=get_int("METRICS_PORT", DEFAULT_METRICS_PORT),
            enable_kubernetes_events=get_bool("ENABLE_KUBERNETES_EVENTS", True),
        )
