"""Pydantic models for ManagedCertificate objects and observed SslCertificates.

ManagedCertificate mirrors the custom resource stored in Kubernetes: the
controller reads ``spec`` and writes ``status``. SslCertificate is the
controller's view of the ARM certificate resource.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator

from .config import MAX_DOMAINS_PER_CERTIFICATE
from .identity import CertId

MAX_DOMAIN_LENGTH = 253


class ManagedCertificateSpec(BaseModel):
    """Desired configuration: the domains to secure."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    domains: Annotated[
        list[str], Field(min_length=1, max_length=MAX_DOMAINS_PER_CERTIFICATE)
    ]

    @field_validator("domains")
    @classmethod
    def validate_domains(cls, v: list[str]) -> list[str]:
        for domain in v:
            if not domain or len(domain) > MAX_DOMAIN_LENGTH:
                raise ValueError(f"invalid domain: {domain!r}")
        return v


class DomainStatus(BaseModel):
    """Provisioning status of a single domain."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    domain: str
    status: str


class ManagedCertificateStatus(BaseModel):
    """Observed status copied from the SslCertificate."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    certificate_status: str | None = Field(None, alias="certificateStatus")
    certificate_name: str | None = Field(None, alias="certificateName")
    domain_status: list[DomainStatus] = Field(default_factory=list, alias="domainStatus")
    expire_time: str | None = Field(None, alias="expireTime")


class ManagedCertificate(BaseModel):
    """Declarative certificate request owned by a cluster operator."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    namespace: str
    name: str
    creation_timestamp: datetime = Field(alias="creationTimestamp")
    spec: ManagedCertificateSpec
    status: ManagedCertificateStatus = Field(default_factory=ManagedCertificateStatus)

    @property
    def id(self) -> CertId:
        return CertId(namespace=self.namespace, name=self.name)

    @classmethod
    def from_k8s(cls, obj: dict[str, Any]) -> ManagedCertificate:
        """Build from a custom object as returned by the Kubernetes API."""
        metadata = obj.get("metadata", {})
        return cls.model_validate(
            {
                "namespace": metadata.get("namespace"),
                "name": metadata.get("name"),
                "creationTimestamp": metadata.get("creationTimestamp"),
                "spec": obj.get("spec", {}),
                "status": obj.get("status") or {},
            }
        )

    def status_patch(self) -> dict[str, Any]:
        """Body for a status subresource patch."""
        return {"status": self.status.model_dump(by_alias=True, exclude_none=True)}


class SslCertificate(BaseModel):
    """Observed state of a certificate resource in ARM."""

    model_config = {"extra": "ignore"}

    name: str
    domains: list[str] = Field(default_factory=list)
    status: str | None = None
    expire_time: str | None = None
    owner: CertId | None = None
