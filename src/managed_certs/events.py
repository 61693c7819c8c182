"""Human-facing notifications about ManagedCertificates.

Events are informational only: a failure to record one is logged and never
affects reconciliation.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime

from kubernetes import client as k8s_client
from kubernetes.client.exceptions import ApiException

from .config import MANAGED_CERTIFICATE_GROUP, MANAGED_CERTIFICATE_KIND, MANAGED_CERTIFICATE_VERSION
from .identity import CertId

logger = logging.getLogger(__name__)

COMPONENT = "managed-certificate-controller"

EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"

REASON_CREATE = "Create"
REASON_DELETE = "Delete"
REASON_BACKEND_ERROR = "BackendError"
REASON_TOO_MANY_CERTIFICATES = "TooManyCertificates"


class EventRecorder(ABC):
    """Records events against a ManagedCertificate."""

    @abstractmethod
    def record(self, cert_id: CertId, event_type: str, reason: str, message: str) -> None: ...

    def create(self, cert_id: CertId, ssl_certificate_name: str) -> None:
        self.record(
            cert_id, EVENT_TYPE_NORMAL, REASON_CREATE, f"Create SslCertificate {ssl_certificate_name}"
        )

    def delete(self, cert_id: CertId, ssl_certificate_name: str) -> None:
        self.record(
            cert_id, EVENT_TYPE_NORMAL, REASON_DELETE, f"Delete SslCertificate {ssl_certificate_name}"
        )

    def backend_error(self, cert_id: CertId, error: BaseException) -> None:
        self.record(cert_id, EVENT_TYPE_WARNING, REASON_BACKEND_ERROR, str(error))

    def too_many_certificates(self, cert_id: CertId, error: BaseException) -> None:
        self.record(cert_id, EVENT_TYPE_WARNING, REASON_TOO_MANY_CERTIFICATES, str(error))


class LoggingEventRecorder(EventRecorder):
    """Writes events to the structured log only."""

    def record(self, cert_id: CertId, event_type: str, reason: str, message: str) -> None:
        level = logging.WARNING if event_type == EVENT_TYPE_WARNING else logging.INFO
        logger.log(
            level,
            message,
            extra={
                "managed_certificate": str(cert_id),
                "event_type": event_type,
                "reason": reason,
            },
        )


class KubernetesEventRecorder(LoggingEventRecorder):
    """Creates core/v1 Events referencing the ManagedCertificate, and logs them."""

    def __init__(self, api: k8s_client.CoreV1Api) -> None:
        self._api = api

    def record(self, cert_id: CertId, event_type: str, reason: str, message: str) -> None:
        super().record(cert_id, event_type, reason, message)

        now = datetime.now(UTC)
        body = k8s_client.CoreV1Event(
            metadata=k8s_client.V1ObjectMeta(
                generate_name=f"{cert_id.name}.", namespace=cert_id.namespace
            ),
            involved_object=k8s_client.V1ObjectReference(
                api_version=f"{MANAGED_CERTIFICATE_GROUP}/{MANAGED_CERTIFICATE_VERSION}",
                kind=MANAGED_CERTIFICATE_KIND,
                namespace=cert_id.namespace,
                name=cert_id.name,
            ),
            type=event_type,
            reason=reason,
            message=message,
            source=k8s_client.V1EventSource(component=COMPONENT),
            first_timestamp=now,
            last_timestamp=now,
            count=1,
        )

        try:
            self._api.create_namespaced_event(cert_id.namespace, body)
        except ApiException as e:
            logger.warning(
                "Failed to record event",
                extra={"managed_certificate": str(cert_id), "reason": reason, "status": e.status},
            )
