"""SslCertificate lifecycle in Azure Resource Manager.

Certificates are ARM generic resources created under the configured resource
group. Ownership is recorded in tags at creation time; a certificate whose
tags name a different ManagedCertificate is never reported as ours.

SECURITY: Timeouts are enforced on all Azure API calls to prevent indefinite hangs.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import GenericResource

from .config import (
    CERTIFICATE_API_VERSION,
    CERTIFICATE_RESOURCE_TYPE,
    MANAGED_BY_TAG,
    MANAGED_BY_VALUE,
    OWNER_NAME_TAG,
    OWNER_NAMESPACE_TAG,
    Config,
)
from .errors import SslCertificateNotOwnedError, is_not_found, is_quota_exceeded
from .events import EventRecorder
from .identity import CertId
from .metrics import Metrics
from .models import ManagedCertificate, SslCertificate

logger = logging.getLogger(__name__)


class SslCertificateManager(ABC):
    """CRUD on SslCertificates, scoped to the ManagedCertificate that owns them."""

    @abstractmethod
    async def exists(self, name: str, owner: CertId) -> bool:
        """Check whether an SslCertificate owned by ``owner`` exists."""

    @abstractmethod
    async def get(self, name: str, owner: CertId) -> SslCertificate:
        """Fetch an SslCertificate.

        Raises:
            ResourceNotFoundError: If it does not exist.
        """

    @abstractmethod
    async def create(self, name: str, mcrt: ManagedCertificate) -> None:
        """Create an SslCertificate for the domains of ``mcrt``."""

    @abstractmethod
    async def delete(self, name: str, owner: CertId) -> None:
        """Delete an SslCertificate.

        Raises:
            ResourceNotFoundError: If it does not exist.
        """


def owner_tags(owner: CertId) -> dict[str, str]:
    """Tags linking a certificate back to its ManagedCertificate."""
    return {
        OWNER_NAMESPACE_TAG: owner.namespace,
        OWNER_NAME_TAG: owner.name,
        MANAGED_BY_TAG: MANAGED_BY_VALUE,
    }


def owner_from_tags(tags: dict[str, str] | None) -> CertId | None:
    if not tags:
        return None
    namespace = tags.get(OWNER_NAMESPACE_TAG)
    name = tags.get(OWNER_NAME_TAG)
    if not namespace or not name:
        return None
    return CertId(namespace=namespace, name=name)


def to_ssl_certificate(resource: Any) -> SslCertificate:
    """Convert an ARM generic resource into an SslCertificate."""
    properties = resource.properties or {}
    status = properties.get("provisioningState") or getattr(resource, "provisioning_state", None)
    return SslCertificate(
        name=resource.name,
        domains=list(properties.get("hostNames") or []),
        status=status,
        expire_time=properties.get("expirationDate"),
        owner=owner_from_tags(resource.tags),
    )


class ArmSslCertificateManager(SslCertificateManager):
    """SslCertificateManager backed by ARM generic resource operations."""

    def __init__(
        self,
        client: ResourceManagementClient,
        config: Config,
        events: EventRecorder,
        metrics: Metrics,
    ) -> None:
        self._client = client
        self._config = config
        self._events = events
        self._metrics = metrics

    def resource_id(self, name: str) -> str:
        return f"{self._config.certificate_scope}/providers/{CERTIFICATE_RESOURCE_TYPE}/{name}"

    async def _call(
        self,
        operation: Callable[[], Any],
        operation_name: str,
        *,
        poll: bool = False,
    ) -> Any:
        """Run a blocking SDK call in the executor with the configured timeout.

        With ``poll`` the call returns an LROPoller which is waited on as well.
        """
        loop = asyncio.get_event_loop()
        timeout = self._config.api_timeout_seconds

        try:
            result = await asyncio.wait_for(
                loop.run_in_executor(None, operation), timeout=timeout
            )
            if poll:
                result = await asyncio.wait_for(
                    loop.run_in_executor(None, result.result), timeout=timeout
                )
            return result
        except TimeoutError:
            logger.error(
                f"{operation_name} timed out",
                extra={"timeout_seconds": timeout},
            )
            raise
        except HttpResponseError as e:
            if is_quota_exceeded(e):
                self._metrics.observe_quota_error()
            elif not is_not_found(e):
                self._metrics.observe_backend_error()
            raise

    async def _get_owned(self, name: str, owner: CertId) -> SslCertificate:
        resource_id = self.resource_id(name)
        resource = await self._call(
            lambda: self._client.resources.get_by_id(resource_id, CERTIFICATE_API_VERSION),
            operation_name="Get SslCertificate",
        )
        ssl_cert = to_ssl_certificate(resource)
        if ssl_cert.owner != owner:
            raise SslCertificateNotOwnedError(name, owner)
        return ssl_cert

    async def exists(self, name: str, owner: CertId) -> bool:
        try:
            await self._get_owned(name, owner)
        except ResourceNotFoundError:
            return False
        return True

    async def get(self, name: str, owner: CertId) -> SslCertificate:
        return await self._get_owned(name, owner)

    async def create(self, name: str, mcrt: ManagedCertificate) -> None:
        properties: dict[str, Any] = {
            "canonicalName": mcrt.spec.domains[0],
            "hostNames": list(mcrt.spec.domains),
        }
        if self._config.server_farm_id:
            properties["serverFarmId"] = self._config.server_farm_id

        parameters = GenericResource(
            location=self._config.location,
            tags=owner_tags(mcrt.id),
            properties=properties,
        )
        resource_id = self.resource_id(name)

        try:
            await self._call(
                lambda: self._client.resources.begin_create_or_update_by_id(
                    resource_id, CERTIFICATE_API_VERSION, parameters
                ),
                operation_name="Create SslCertificate",
                poll=True,
            )
        except HttpResponseError as e:
            if is_quota_exceeded(e):
                self._events.too_many_certificates(mcrt.id, e)
            raise

        logger.info(
            "Created SslCertificate",
            extra={"ssl_certificate": name, "managed_certificate": str(mcrt.id)},
        )
        self._events.create(mcrt.id, name)

    async def delete(self, name: str, owner: CertId) -> None:
        await self._get_owned(name, owner)

        resource_id = self.resource_id(name)
        await self._call(
            lambda: self._client.resources.begin_delete_by_id(resource_id, CERTIFICATE_API_VERSION),
            operation_name="Delete SslCertificate",
            poll=True,
        )

        logger.info(
            "Deleted SslCertificate",
            extra={"ssl_certificate": name, "managed_certificate": str(owner)},
        )
        self._events.delete(owner, name)
