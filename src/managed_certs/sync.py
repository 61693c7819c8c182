"""Reconciliation of a single ManagedCertificate with its SslCertificate.

One call to ``Sync.managed_certificate`` is a single best-effort pass:

1. Read the ManagedCertificate. If it is gone, delete the SslCertificate still
   tracked in state (if any) and forget the identity.
2. Ensure a stable SslCertificate name, persisting a new one before any call
   to Azure.
3. If the identity is soft deleted, finish deleting the SslCertificate.
4. Create the SslCertificate if it does not exist, reporting creation latency
   at most once.
5. Fetch the SslCertificate and compare it with the ManagedCertificate.
6. Converged: copy status back. Drifted: delete the SslCertificate, forget the
   identity and report DRIFT_REMEDIATED. Certificates cannot be changed in
   place, so the replacement is created by a later pass.

ERROR HANDLING:
No retries happen here. The first collaborator error ends the pass and is
returned unmodified in ``SyncResult.error``; the only errors swallowed are
not-found errors while deleting. Every step either records a durable marker
before acting or is idempotent, so an interrupted pass is safe to repeat.

CONCURRENCY:
Callers must never run two passes for the same identity at once.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from azure.core.exceptions import HttpResponseError

from .certificates import copy_status, equal
from .errors import ErrorKind, NotTrackedError, classify, is_not_found
from .identity import CertId
from .metrics import Metrics
from .models import ManagedCertificate, SslCertificate
from .random_name import NameGenerator
from .ssl_manager import SslCertificateManager
from .state import State
from .store import ManagedCertificateStore

logger = logging.getLogger(__name__)


class SyncOutcome(str, Enum):
    """Outcome of a sync pass."""

    SUCCESS = "success"
    DRIFT_REMEDIATED = "drift_remediated"  # Stale SslCertificate deleted, sync again
    FAILED = "failed"


@dataclass
class SyncResult:
    """Result of a single sync pass."""

    cert_id: CertId
    outcome: SyncOutcome = SyncOutcome.SUCCESS
    error: Exception | None = None
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        return self.outcome == SyncOutcome.SUCCESS

    @property
    def error_kind(self) -> ErrorKind | None:
        if self.error is None:
            return None
        return classify(self.error)


class Sync:
    """Drives one ManagedCertificate towards its SslCertificate."""

    def __init__(
        self,
        store: ManagedCertificateStore,
        state: State,
        ssl: SslCertificateManager,
        metrics: Metrics,
        names: NameGenerator | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._state = state
        self._ssl = ssl
        self._metrics = metrics
        self._names = names or NameGenerator()
        self._clock = clock or (lambda: datetime.now(UTC))

    async def managed_certificate(self, cert_id: CertId) -> SyncResult:
        """Run one sync pass for ``cert_id``."""
        result = SyncResult(cert_id=cert_id, start_time=self._clock())
        try:
            result.outcome = await self._sync(cert_id)
        except Exception as e:
            result.outcome = SyncOutcome.FAILED
            result.error = e
        result.end_time = self._clock()
        return result

    def ensure_ssl_certificate_name(self, cert_id: CertId) -> str:
        """Return the SslCertificate name for ``cert_id``, assigning one if needed."""
        try:
            return self._state.get_external_name(cert_id)
        except NotTrackedError:
            pass

        name = self._names.name()
        logger.info(
            "Add SslCertificate name to state",
            extra={"managed_certificate": str(cert_id), "ssl_certificate": name},
        )
        self._state.set_external_name(cert_id, name)
        return name

    async def _sync(self, cert_id: CertId) -> SyncOutcome:
        mcrt = await self._store.get(cert_id)
        if mcrt is None:
            try:
                name = self._state.get_external_name(cert_id)
            except NotTrackedError:
                return SyncOutcome.SUCCESS

            logger.info("ManagedCertificate already deleted", extra={"managed_certificate": str(cert_id)})
            await self._delete_ssl_certificate(cert_id, name)
            return SyncOutcome.SUCCESS

        logger.info("Syncing ManagedCertificate", extra={"managed_certificate": str(cert_id)})

        name = self.ensure_ssl_certificate_name(cert_id)

        if self._state.is_soft_deleted(cert_id):
            logger.info(
                "ManagedCertificate is soft deleted, deleting SslCertificate",
                extra={"managed_certificate": str(cert_id), "ssl_certificate": name},
            )
            await self._delete_ssl_certificate(cert_id, name)
            return SyncOutcome.SUCCESS

        ssl_cert = await self._ensure_ssl_certificate(cert_id, name, mcrt)
        if ssl_cert is None:
            return SyncOutcome.DRIFT_REMEDIATED

        copy_status(ssl_cert, mcrt)
        await self._store.update_status(mcrt)
        return SyncOutcome.SUCCESS

    async def _ensure_ssl_certificate(
        self, cert_id: CertId, name: str, mcrt: ManagedCertificate
    ) -> SslCertificate | None:
        """Create the SslCertificate if missing and check it matches.

        Returns None when a stale SslCertificate was deleted.
        """
        if not await self._ssl.exists(name, cert_id):
            await self._ssl.create(name, mcrt)
            self._observe_creation_latency_if_needed(cert_id, mcrt)

        ssl_cert = await self._ssl.get(name, cert_id)
        if equal(mcrt, ssl_cert):
            return ssl_cert

        logger.info(
            "ManagedCertificate and SslCertificate are different",
            extra={
                "managed_certificate": str(cert_id),
                "ssl_certificate": name,
                "desired_domains": mcrt.spec.domains,
                "observed_domains": ssl_cert.domains,
            },
        )
        await self._delete_ssl_certificate(cert_id, name)
        return None

    def _observe_creation_latency_if_needed(self, cert_id: CertId, mcrt: ManagedCertificate) -> None:
        if self._state.is_excluded_from_slo(cert_id):
            logger.info(
                "Skipping SslCertificate creation latency, excluded from SLO",
                extra={"managed_certificate": str(cert_id)},
            )
            return

        if self._state.is_latency_reported(cert_id):
            return

        self._metrics.observe_creation_latency(self._clock() - mcrt.creation_timestamp)
        self._state.set_latency_reported(cert_id)

    async def _delete_ssl_certificate(self, cert_id: CertId, name: str) -> None:
        """Delete the SslCertificate and forget ``cert_id``.

        The entry is marked soft deleted first so that an interrupted deletion
        is resumed by the next pass even if the ManagedCertificate still exists.
        """
        logger.info("Mark state entry as soft deleted", extra={"managed_certificate": str(cert_id)})
        self._state.set_soft_deleted(cert_id)

        logger.info(
            "Delete SslCertificate",
            extra={"managed_certificate": str(cert_id), "ssl_certificate": name},
        )
        try:
            await self._ssl.delete(name, cert_id)
        except HttpResponseError as e:
            if not is_not_found(e):
                raise

        logger.info("Remove state entry", extra={"managed_certificate": str(cert_id)})
        self._state.remove(cert_id)
