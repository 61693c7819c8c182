"""Comparison and status propagation between ManagedCertificate and SslCertificate."""

from __future__ import annotations

from .config import CERTIFICATE_STATUS, DOMAIN_STATUS
from .errors import UnknownCertificateStatusError
from .models import DomainStatus, ManagedCertificate, SslCertificate


def equal(mcrt: ManagedCertificate, ssl_cert: SslCertificate) -> bool:
    """Check whether the certificate was created for the domains the user asked for.

    Only desired-intent fields take part; provisioning status and expiry are
    populated by Azure and ignored.
    """
    return sorted(mcrt.spec.domains) == sorted(ssl_cert.domains)


def copy_status(ssl_cert: SslCertificate, mcrt: ManagedCertificate) -> None:
    """Write the observed certificate status onto the ManagedCertificate.

    Raises:
        UnknownCertificateStatusError: If the provisioning state has no mapping.
    """
    certificate_status = CERTIFICATE_STATUS.get(ssl_cert.status or "")
    domain_status = DOMAIN_STATUS.get(ssl_cert.status or "")
    if certificate_status is None or domain_status is None:
        raise UnknownCertificateStatusError(ssl_cert.status)

    mcrt.status.certificate_status = certificate_status
    mcrt.status.certificate_name = ssl_cert.name
    mcrt.status.domain_status = [
        DomainStatus(domain=domain, status=domain_status) for domain in ssl_cert.domains
    ]
    mcrt.status.expire_time = ssl_cert.expire_time
