"""Azure API Mock for Integration Testing.

In-memory stand-ins for the ARM generic resource API and managed identity
credential, so the certificate manager can be exercised without Azure.

Usage:
    from azure_mock import MockAzureContext

    with MockAzureContext() as ctx:
        components = build_components(config)
        await components.sync.managed_certificate(cert_id)
        assert ctx.state.resource_count == 1
"""

from .context import MockAzureContext
from .credential import MockManagedIdentityCredential, create_mock_credential
from .resources import (
    MockResource,
    MockResourceClient,
    MockResourceState,
    backend_error,
    quota_error,
)

__all__ = [
    "MockAzureContext",
    "MockManagedIdentityCredential",
    "MockResource",
    "MockResourceClient",
    "MockResourceState",
    "backend_error",
    "create_mock_credential",
    "quota_error",
]
