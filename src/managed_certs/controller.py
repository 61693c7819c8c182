"""Periodic resync loop driving Sync for every known ManagedCertificate.

Each pass enumerates identities from both the declarative store and state (so
deleted ManagedCertificates still get their SslCertificates cleaned up) and
syncs them one at a time. Serial processing is what guarantees that at most
one sync per identity is ever in flight.
"""

from __future__ import annotations

import asyncio
import logging

from .config import Config
from .errors import ErrorKind
from .events import EventRecorder
from .identity import CertId
from .state import State
from .store import ManagedCertificateStore
from .sync import Sync, SyncOutcome, SyncResult

logger = logging.getLogger(__name__)

# Extra passes granted per resync to identities whose SslCertificate was just
# deleted for drift, so recreation does not wait a full interval
MAX_DRIFT_RESYNCS = 1


class Controller:
    """Runs resync passes on an interval until shutdown."""

    def __init__(
        self,
        config: Config,
        store: ManagedCertificateStore,
        state: State,
        sync: Sync,
        events: EventRecorder,
    ) -> None:
        self._config = config
        self._store = store
        self._state = state
        self._sync = sync
        self._events = events
        self._shutdown_event = asyncio.Event()

    def exclude_tracked_from_slo(self) -> None:
        """Exclude identities tracked before startup from latency reporting.

        Their ManagedCertificates may have been waiting on a previous controller
        instance, so any latency measured now would be misleading.
        """
        for cert_id in self._state.list_ids():
            if not self._state.is_latency_reported(cert_id):
                self._state.set_excluded_from_slo(cert_id)
                logger.info(
                    "Excluding ManagedCertificate from SLO",
                    extra={"managed_certificate": str(cert_id)},
                )

    async def run(self) -> None:
        """Run resync passes until shutdown is requested."""
        logger.info(
            "Starting controller",
            extra={"interval_seconds": self._config.resync_interval_seconds},
        )

        self.exclude_tracked_from_slo()

        while not self._shutdown_event.is_set():
            try:
                await self.resync()
            except Exception as e:
                # Listing failed; keep the loop alive and try again next interval
                logger.exception("Resync failed", extra={"error": str(e)})

            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self._config.resync_interval_seconds,
                )
            except TimeoutError:
                pass

        logger.info("Controller shutdown complete")

    def shutdown(self) -> None:
        """Signal the controller to stop."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()

    async def resync(self) -> list[SyncResult]:
        """Sync every known identity once."""
        cert_ids = sorted(set(await self._store.list_ids()) | set(self._state.list_ids()))
        results: list[SyncResult] = []

        for cert_id in cert_ids:
            if self._shutdown_event.is_set():
                break
            results.append(await self.sync_one(cert_id))

        return results

    async def sync_one(self, cert_id: CertId) -> SyncResult:
        """Sync one identity, re-running it after a drift remediation."""
        result = await self._sync.managed_certificate(cert_id)
        self._log_result(result)

        resyncs = 0
        while result.outcome == SyncOutcome.DRIFT_REMEDIATED and resyncs < MAX_DRIFT_RESYNCS:
            resyncs += 1
            result = await self._sync.managed_certificate(cert_id)
            self._log_result(result)

        return result

    def _log_result(self, result: SyncResult) -> None:
        extra = {
            "managed_certificate": str(result.cert_id),
            "outcome": result.outcome.value,
            "duration_seconds": result.duration_seconds,
        }

        if result.error is not None:
            extra["error"] = str(result.error)
            extra["error_kind"] = result.error_kind.value if result.error_kind else None
            extra["error_type"] = type(result.error).__name__
            if result.error_kind == ErrorKind.NOT_FOUND:
                # An object vanished mid-pass; the next pass sees the new state
                logger.warning("Sync failed, object not found", extra=extra)
            else:
                logger.error("Sync failed", extra=extra)
                self._events.backend_error(result.cert_id, result.error)
        elif result.outcome == SyncOutcome.DRIFT_REMEDIATED:
            logger.warning("SslCertificate out of sync, deleted for recreation", extra=extra)
        else:
            logger.info("Sync completed", extra=extra)
