"""Main entry point for the managed certificate controller.

Wires the Kubernetes and Azure clients into the controller loop and runs it
until SIGTERM or SIGINT.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from dataclasses import dataclass
from datetime import UTC, datetime

from azure.mgmt.resource import ResourceManagementClient
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from .config import Config, ConfigurationError
from .controller import Controller
from .events import EventRecorder, KubernetesEventRecorder, LoggingEventRecorder
from .metrics import PrometheusMetrics
from .security import SecretlessViolationError, get_managed_identity_credential
from .ssl_manager import ArmSslCertificateManager
from .state import ConfigMapState
from .store import KubernetesManagedCertificateStore
from .sync import Sync

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_LOG_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_LOG_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure structured logging with JSON output."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from SDKs
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_kubernetes_config() -> None:
    """Use the in-cluster service account, falling back to kubeconfig."""
    try:
        k8s_config.load_incluster_config()
    except k8s_config.ConfigException:
        k8s_config.load_kube_config()


@dataclass
class Components:
    """Collaborators assembled for one controller process."""

    config: Config
    metrics: PrometheusMetrics
    events: EventRecorder
    state: ConfigMapState
    store: KubernetesManagedCertificateStore
    ssl: ArmSslCertificateManager
    sync: Sync
    controller: Controller


def build_components(config: Config) -> Components:
    """Create clients and wire them together.

    Raises:
        SecretlessViolationError: If credential secrets are in the environment.
    """
    load_kubernetes_config()
    core_api = k8s_client.CoreV1Api()

    credential = get_managed_identity_credential(config.client_id)
    resource_client = ResourceManagementClient(
        credential=credential,
        subscription_id=config.subscription_id,
    )

    metrics = PrometheusMetrics()
    events: EventRecorder = (
        KubernetesEventRecorder(core_api)
        if config.enable_kubernetes_events
        else LoggingEventRecorder()
    )
    state = ConfigMapState(core_api, config.state_namespace, config.state_config_map)
    store = KubernetesManagedCertificateStore(
        k8s_client.CustomObjectsApi(), timeout_seconds=config.api_timeout_seconds
    )
    ssl = ArmSslCertificateManager(resource_client, config, events, metrics)
    sync = Sync(store=store, state=state, ssl=ssl, metrics=metrics)
    controller = Controller(config, store, state, sync, events)

    return Components(
        config=config,
        metrics=metrics,
        events=events,
        state=state,
        store=store,
        ssl=ssl,
        sync=sync,
        controller=controller,
    )


async def main() -> int:
    """Run the controller.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    setup_logging()
    logger = logging.getLogger(__name__)

    try:
        config = Config.from_env()
    except ConfigurationError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return 1

    logger.info(
        "Starting managed certificate controller",
        extra={
            "subscription_id": config.subscription_id,
            "resource_group": config.resource_group_name,
            "location": config.location,
        },
    )

    try:
        components = build_components(config)
    except SecretlessViolationError as e:
        logger.critical(
            "Security violation: credentials detected in environment",
            extra={"error": str(e)},
        )
        return 2
    except Exception as e:
        logger.exception(
            "Failed to initialize controller",
            extra={"error": str(e), "error_type": type(e).__name__},
        )
        return 1

    components.metrics.serve(config.metrics_port)
    controller = components.controller

    loop = asyncio.get_event_loop()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received signal", extra={"signal": sig.name})
        controller.shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    try:
        await controller.run()
    except Exception as e:
        logger.exception("Unhandled exception", extra={"error": str(e)})
        return 1

    logger.info("Controller stopped")
    return 0


def run() -> None:
    """Entry point for the controller process."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
