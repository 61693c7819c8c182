"""Mock Azure Resource Manager generic resource operations.

Provides in-memory state for ARM resources addressed by ID, with the
``resources.*_by_id`` operations the certificate manager uses.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError


@dataclass
class MockResource:
    """Represents a mock ARM generic resource in state.

    Attribute names follow azure.mgmt.resource GenericResource.
    """

    id: str
    name: str
    location: str
    properties: dict[str, Any] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("id cannot be empty")


class MockResourceState:
    """In-memory ARM resource state.

    Records every call so tests can assert on what the controller asked for.
    Errors can be queued per operation name ("get", "create", "delete"); each
    queued error is raised once, by the next call of that operation.
    """

    def __init__(self, provisioning_state: str = "Succeeded") -> None:
        self._resources: dict[str, MockResource] = {}
        self._errors: dict[str, list[Exception]] = {}
        self.calls: list[tuple[str, str]] = []
        self.provisioning_state = provisioning_state

    @property
    def resource_count(self) -> int:
        return len(self._resources)

    def get_resource(self, resource_id: str) -> MockResource | None:
        return self._resources.get(resource_id)

    def put_resource(self, resource: MockResource) -> MockResource:
        self._resources[resource.id] = resource
        return resource

    def delete_resource(self, resource_id: str) -> bool:
        return self._resources.pop(resource_id, None) is not None

    def fail_next(self, operation: str, error: Exception) -> None:
        """Queue an error for the next call of ``operation``."""
        self._errors.setdefault(operation, []).append(error)

    def call_count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    def record(self, operation: str, resource_id: str) -> None:
        self.calls.append((operation, resource_id))
        queued = self._errors.get(operation)
        if queued:
            raise queued.pop(0)


class _MockLROPoller:
    """Mock Long-Running Operation poller.

    Immediately returns results (no actual polling needed in tests).
    """

    def __init__(self, result: Any) -> None:
        self._result = result

    def result(self, _timeout: int | None = None) -> Any:
        return self._result

    def done(self) -> bool:
        return True


class _MockResourcesOperations:
    """Mock of ResourceManagementClient.resources."""

    def __init__(self, state: MockResourceState) -> None:
        self._state = state

    def get_by_id(self, resource_id: str, api_version: str, **_kwargs: Any) -> MockResource:
        self._state.record("get", resource_id)
        resource = self._state.get_resource(resource_id)
        if resource is None:
            raise ResourceNotFoundError(message=f"Resource {resource_id} not found")
        return copy.deepcopy(resource)

    def begin_create_or_update_by_id(
        self,
        resource_id: str,
        api_version: str,
        parameters: Any,
        **_kwargs: Any,
    ) -> _MockLROPoller:
        self._state.record("create", resource_id)
        properties = dict(parameters.properties or {})
        properties.setdefault("provisioningState", self._state.provisioning_state)
        resource = MockResource(
            id=resource_id,
            name=resource_id.rsplit("/", 1)[-1],
            location=parameters.location,
            properties=properties,
            tags=dict(parameters.tags or {}),
        )
        self._state.put_resource(resource)
        return _MockLROPoller(copy.deepcopy(resource))

    def begin_delete_by_id(self, resource_id: str, api_version: str, **_kwargs: Any) -> _MockLROPoller:
        self._state.record("delete", resource_id)
        if not self._state.delete_resource(resource_id):
            raise ResourceNotFoundError(message=f"Resource {resource_id} not found")
        return _MockLROPoller(None)


class MockResourceClient:
    """Mock implementation of Azure ResourceManagementClient."""

    def __init__(self, state: MockResourceState, subscription_id: str) -> None:
        self._state = state
        self._subscription_id = subscription_id
        self.resources = _MockResourcesOperations(state)

    @property
    def subscription_id(self) -> str:
        return self._subscription_id


def quota_error() -> HttpResponseError:
    """An ARM error reporting an exhausted certificate quota."""
    error = HttpResponseError(message="Certificate quota exceeded")
    error.status_code = 409
    error.error = _ODataError("QuotaExceeded")
    return error


def backend_error(status_code: int = 500) -> HttpResponseError:
    error = HttpResponseError(message="Internal server error")
    error.status_code = status_code
    return error


@dataclass
class _ODataError:
    code: str
