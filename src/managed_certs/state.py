"""Per-ManagedCertificate bookkeeping: SslCertificate name and lifecycle flags.

An entry is created the first time a ManagedCertificate is seen and removed
only once its SslCertificate is confirmed deleted. The SslCertificate name is
assigned at most once per entry and must be persisted before the certificate
is created, so that a pass interrupted after creation finds the same
certificate again instead of leaking it.

Thread Safety:
    Not thread-safe. Callers must serialize access per ManagedCertificate;
    the controller loop does so by syncing one identity at a time.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any

from kubernetes import client as k8s_client
from kubernetes.client.exceptions import ApiException

from .errors import NotTrackedError, is_not_found
from .identity import CertId

logger = logging.getLogger(__name__)

CONFIG_MAP_DATA_KEY = "entries"
HTTP_CONFLICT = 409


@dataclass
class StateEntry:
    """Bookkeeping for a single ManagedCertificate."""

    external_name: str
    soft_deleted: bool = False
    excluded_from_slo: bool = False
    latency_reported: bool = False

    def to_dict(self, cert_id: CertId) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "namespace": cert_id.namespace,
            "name": cert_id.name,
            "sslCertificateName": self.external_name,
            "softDeleted": self.soft_deleted,
            "excludedFromSLO": self.excluded_from_slo,
            "sslCertificateCreationReported": self.latency_reported,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> tuple[CertId, StateEntry]:
        """Create from dictionary."""
        cert_id = CertId(namespace=data["namespace"], name=data["name"])
        return cert_id, cls(
            external_name=data["sslCertificateName"],
            soft_deleted=data.get("softDeleted", False),
            excluded_from_slo=data.get("excludedFromSLO", False),
            latency_reported=data.get("sslCertificateCreationReported", False),
        )


class State(ABC):
    """Keyed store of StateEntry records.

    Every accessor except ``set_external_name`` and ``remove`` raises
    NotTrackedError for an identity without an entry.
    """

    @abstractmethod
    def get_external_name(self, cert_id: CertId) -> str: ...

    @abstractmethod
    def set_external_name(self, cert_id: CertId, name: str) -> None: ...

    @abstractmethod
    def is_soft_deleted(self, cert_id: CertId) -> bool: ...

    @abstractmethod
    def set_soft_deleted(self, cert_id: CertId) -> None: ...

    @abstractmethod
    def is_excluded_from_slo(self, cert_id: CertId) -> bool: ...

    @abstractmethod
    def set_excluded_from_slo(self, cert_id: CertId) -> None: ...

    @abstractmethod
    def is_latency_reported(self, cert_id: CertId) -> bool: ...

    @abstractmethod
    def set_latency_reported(self, cert_id: CertId) -> None: ...

    @abstractmethod
    def remove(self, cert_id: CertId) -> None:
        """Delete the entry; removing an untracked identity is a no-op."""

    @abstractmethod
    def list_ids(self) -> list[CertId]: ...


class InMemoryState(State):
    """State held in a dict; the reference implementation.

    Every mutation builds a new snapshot and hands it to ``_commit``, so a
    subclass that persists entries can refuse a change by raising before
    the in-memory copy moves.
    """

    def __init__(self, entries: dict[CertId, StateEntry] | None = None) -> None:
        self._entries: dict[CertId, StateEntry] = dict(entries or {})

    def _entry(self, cert_id: CertId) -> StateEntry:
        entry = self._entries.get(cert_id)
        if entry is None:
            raise NotTrackedError(cert_id)
        return entry

    def _commit(self, entries: dict[CertId, StateEntry]) -> None:
        """Replace all entries with ``entries``."""
        self._entries = entries

    def _update(self, cert_id: CertId, **changes: Any) -> None:
        entries = self.entries()
        entries[cert_id] = replace(self._entry(cert_id), **changes)
        self._commit(entries)

    def get_external_name(self, cert_id: CertId) -> str:
        return self._entry(cert_id).external_name

    def set_external_name(self, cert_id: CertId, name: str) -> None:
        entry = self._entries.get(cert_id)
        if entry is not None:
            if entry.external_name == name:
                return
            raise ValueError(
                f"ManagedCertificate {cert_id} already has SslCertificate name "
                f"{entry.external_name}, refusing to replace it with {name}"
            )
        entries = self.entries()
        entries[cert_id] = StateEntry(external_name=name)
        self._commit(entries)

    def is_soft_deleted(self, cert_id: CertId) -> bool:
        return self._entry(cert_id).soft_deleted

    def set_soft_deleted(self, cert_id: CertId) -> None:
        self._update(cert_id, soft_deleted=True)

    def is_excluded_from_slo(self, cert_id: CertId) -> bool:
        return self._entry(cert_id).excluded_from_slo

    def set_excluded_from_slo(self, cert_id: CertId) -> None:
        self._update(cert_id, excluded_from_slo=True)

    def is_latency_reported(self, cert_id: CertId) -> bool:
        return self._entry(cert_id).latency_reported

    def set_latency_reported(self, cert_id: CertId) -> None:
        self._update(cert_id, latency_reported=True)

    def remove(self, cert_id: CertId) -> None:
        if cert_id not in self._entries:
            return
        entries = self.entries()
        del entries[cert_id]
        self._commit(entries)

    def list_ids(self) -> list[CertId]:
        return sorted(self._entries)

    def entries(self) -> dict[CertId, StateEntry]:
        """Snapshot of all entries, keyed by identity."""
        return {cert_id: replace(entry) for cert_id, entry in self._entries.items()}


class ConfigMapState(InMemoryState):
    """State persisted as JSON in a Kubernetes ConfigMap.

    The whole entry list is written before the in-memory copy changes, so a
    successful return from a setter means the change survives a controller
    restart, and a failed write raises and leaves both copies as they were.
    """

    def __init__(
        self,
        api: k8s_client.CoreV1Api,
        namespace: str,
        name: str,
    ) -> None:
        self._api = api
        self._namespace = namespace
        self._name = name
        self._exists = False
        super().__init__(self._load())

    def _load(self) -> dict[CertId, StateEntry]:
        try:
            config_map = self._api.read_namespaced_config_map(self._name, self._namespace)
        except ApiException as e:
            if is_not_found(e):
                logger.info(
                    "State ConfigMap not found, starting with empty state",
                    extra={"namespace": self._namespace, "config_map": self._name},
                )
                return {}
            raise

        self._exists = True
        raw = (config_map.data or {}).get(CONFIG_MAP_DATA_KEY)
        if not raw:
            return {}

        entries: dict[CertId, StateEntry] = {}
        for item in json.loads(raw):
            cert_id, entry = StateEntry.from_dict(item)
            entries[cert_id] = entry

        logger.info(
            "Loaded state from ConfigMap",
            extra={"namespace": self._namespace, "config_map": self._name, "entries": len(entries)},
        )
        return entries

    def _commit(self, entries: dict[CertId, StateEntry]) -> None:
        self._write(entries)
        super()._commit(entries)

    def _write(self, entries: dict[CertId, StateEntry]) -> None:
        payload = json.dumps(
            [entry.to_dict(cert_id) for cert_id, entry in sorted(entries.items())]
        )
        body = k8s_client.V1ConfigMap(
            metadata=k8s_client.V1ObjectMeta(name=self._name, namespace=self._namespace),
            data={CONFIG_MAP_DATA_KEY: payload},
        )

        if self._exists:
            self._api.replace_namespaced_config_map(self._name, self._namespace, body)
            return

        try:
            self._api.create_namespaced_config_map(self._namespace, body)
        except ApiException as e:
            if e.status != HTTP_CONFLICT:
                raise
            # Created by someone else since we loaded
            logger.info(
                "State ConfigMap already exists, replacing it",
                extra={"namespace": self._namespace, "config_map": self._name},
            )
            self._api.replace_namespaced_config_map(self._name, self._namespace, body)
        self._exists = True
