"""Access to ManagedCertificate custom resources in Kubernetes."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

from kubernetes import client as k8s_client
from kubernetes.client.exceptions import ApiException

from .config import (
    MANAGED_CERTIFICATE_GROUP,
    MANAGED_CERTIFICATE_PLURAL,
    MANAGED_CERTIFICATE_VERSION,
)
from .errors import is_not_found
from .identity import CertId
from .models import ManagedCertificate

logger = logging.getLogger(__name__)


class ManagedCertificateStore(ABC):
    """Declarative store holding desired ManagedCertificates."""

    @abstractmethod
    async def get(self, cert_id: CertId) -> ManagedCertificate | None:
        """Fetch a ManagedCertificate, None if it does not exist."""

    @abstractmethod
    async def list_ids(self) -> list[CertId]: ...

    @abstractmethod
    async def update_status(self, mcrt: ManagedCertificate) -> None:
        """Persist ``mcrt.status``; ``mcrt.spec`` is never written."""


class KubernetesManagedCertificateStore(ManagedCertificateStore):
    """ManagedCertificateStore backed by the Kubernetes custom objects API."""

    def __init__(self, api: k8s_client.CustomObjectsApi, timeout_seconds: int) -> None:
        self._api = api
        self._timeout_seconds = timeout_seconds

    async def _call(self, operation: Callable[[], Any]) -> Any:
        loop = asyncio.get_event_loop()
        return await asyncio.wait_for(
            loop.run_in_executor(None, operation), timeout=self._timeout_seconds
        )

    async def get(self, cert_id: CertId) -> ManagedCertificate | None:
        try:
            obj = await self._call(
                lambda: self._api.get_namespaced_custom_object(
                    MANAGED_CERTIFICATE_GROUP,
                    MANAGED_CERTIFICATE_VERSION,
                    cert_id.namespace,
                    MANAGED_CERTIFICATE_PLURAL,
                    cert_id.name,
                )
            )
        except ApiException as e:
            if is_not_found(e):
                return None
            raise
        return ManagedCertificate.from_k8s(obj)

    async def list_ids(self) -> list[CertId]:
        response = await self._call(
            lambda: self._api.list_cluster_custom_object(
                MANAGED_CERTIFICATE_GROUP,
                MANAGED_CERTIFICATE_VERSION,
                MANAGED_CERTIFICATE_PLURAL,
            )
        )
        ids = []
        for item in response.get("items", []):
            metadata = item.get("metadata", {})
            ids.append(CertId(namespace=metadata["namespace"], name=metadata["name"]))
        return ids

    async def update_status(self, mcrt: ManagedCertificate) -> None:
        body = mcrt.status_patch()
        await self._call(
            lambda: self._api.patch_namespaced_custom_object_status(
                MANAGED_CERTIFICATE_GROUP,
                MANAGED_CERTIFICATE_VERSION,
                mcrt.namespace,
                MANAGED_CERTIFICATE_PLURAL,
                mcrt.name,
                body,
            )
        )
        logger.debug(
            "Updated ManagedCertificate status",
            extra={"managed_certificate": str(mcrt.id), "status": body["status"]},
        )
