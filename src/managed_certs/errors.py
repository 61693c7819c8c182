"""Error taxonomy and not-found classification helpers.

Remote not-found errors arrive in two shapes: azure-core exceptions from ARM
and ``ApiException`` from the Kubernetes client. ``is_not_found`` recognises
both so delete paths can treat "already gone" as success.
"""

from __future__ import annotations

from enum import Enum

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from kubernetes.client.exceptions import ApiException

HTTP_NOT_FOUND = 404
QUOTA_ERROR_CODES = frozenset({"QuotaExceeded", "ResourceQuotaExceeded"})


class ErrorKind(str, Enum):
    """Classification of a failed sync pass."""

    NOT_FOUND = "not_found"
    BACKEND = "backend"


class ManagedCertsError(Exception):
    """Base class for errors raised by this package."""

    pass


class NotTrackedError(ManagedCertsError):
    """Raised by the state store when an identity has no entry."""

    def __init__(self, cert_id: object) -> None:
        super().__init__(f"ManagedCertificate {cert_id} is not tracked in state")
        self.cert_id = cert_id


class SslCertificateNotOwnedError(ManagedCertsError):
    """Raised when a certificate with the expected name belongs to someone else."""

    def __init__(self, name: str, owner: object) -> None:
        super().__init__(f"SslCertificate {name} exists but is not owned by {owner}")
        self.name = name
        self.owner = owner


class UnknownCertificateStatusError(ManagedCertsError):
    """Raised when a certificate reports a provisioning state with no mapping."""

    def __init__(self, status: str | None) -> None:
        super().__init__(f"Unexpected SslCertificate provisioning state: {status!r}")
        self.status = status


def is_not_found(error: BaseException | None) -> bool:
    """Check whether an error means the remote object does not exist."""
    if error is None:
        return False
    if isinstance(error, ResourceNotFoundError):
        return True
    if isinstance(error, HttpResponseError):
        return error.status_code == HTTP_NOT_FOUND
    if isinstance(error, ApiException):
        return error.status == HTTP_NOT_FOUND
    return False


def is_quota_exceeded(error: BaseException) -> bool:
    """Check whether an ARM error reports an exhausted certificate quota."""
    if not isinstance(error, HttpResponseError):
        return False
    code = error.error.code if error.error else None
    return code in QUOTA_ERROR_CODES


def classify(error: BaseException) -> ErrorKind:
    """Map an error onto the flat not-found / backend taxonomy."""
    if is_not_found(error):
        return ErrorKind.NOT_FOUND
    return ErrorKind.BACKEND
