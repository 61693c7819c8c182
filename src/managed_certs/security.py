"""Secretless credential acquisition for ARM calls.

The controller authenticates to Azure only with a managed identity. Startup is
refused when service principal secrets or passwords are present in the
environment, so a leaked secret cannot silently widen the controller's access.
"""

from __future__ import annotations

import logging
import os

from azure.identity import ManagedIdentityCredential

logger = logging.getLogger(__name__)

# Environment variables that indicate credential leakage
FORBIDDEN_CREDENTIAL_ENV_VARS: tuple[str, ...] = (
    "AZURE_CLIENT_SECRET",
    "AZURE_CLIENT_CERTIFICATE_PATH",
    "AZURE_CLIENT_CERTIFICATE_PASSWORD",
    "AZURE_USERNAME",
    "AZURE_PASSWORD",
)


class SecretlessViolationError(Exception):
    """Raised when a credential secret is found in the environment."""

    pass


def enforce_secretless_architecture() -> None:
    """Fail if any credential secret is present in the environment.

    Raises:
        SecretlessViolationError: If any forbidden variable is set.
    """
    for env_var in FORBIDDEN_CREDENTIAL_ENV_VARS:
        if os.environ.get(env_var):
            logger.critical(
                "Secretless architecture violation",
                extra={"env_var": env_var, "action": "startup_blocked"},
            )
            raise SecretlessViolationError(
                f"{env_var} is set; this controller authenticates with managed identity only. "
                "Remove the variable and assign a managed identity instead."
            )


def get_managed_identity_credential(client_id: str | None = None) -> ManagedIdentityCredential:
    """Get a ManagedIdentityCredential after verifying the environment is secretless.

    Args:
        client_id: Client ID of a user-assigned identity, None for system-assigned.

    Raises:
        SecretlessViolationError: If credential environment variables are detected.
    """
    enforce_secretless_architecture()

    if client_id:
        logger.info(
            "Using user-assigned managed identity",
            extra={"client_id": client_id[:8] + "..." if len(client_id) > 8 else client_id},
        )
        return ManagedIdentityCredential(client_id=client_id)

    logger.info("Using system-assigned managed identity")
    return ManagedIdentityCredential()
