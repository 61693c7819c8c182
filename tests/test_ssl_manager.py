"""Tests for the ARM-backed SslCertificate manager."""

from __future__ import annotations

import time

import pytest
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from azure_mock import MockResource, MockResourceClient, MockResourceState, backend_error, quota_error
from fakes import FakeEventRecorder, FakeMetrics, make_mcrt

from managed_certs.config import (
    CERTIFICATE_RESOURCE_TYPE,
    MANAGED_BY_TAG,
    MANAGED_BY_VALUE,
    OWNER_NAME_TAG,
    OWNER_NAMESPACE_TAG,
    Config,
)
from managed_certs.errors import SslCertificateNotOwnedError
from managed_certs.identity import CertId
from managed_certs.ssl_manager import ArmSslCertificateManager, owner_from_tags, owner_tags

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000001"
OWNER = CertId("default", "mcrt1")
OTHER = CertId("default", "someone-else")


@pytest.fixture
def config() -> Config:
    return Config(
        subscription_id=SUBSCRIPTION_ID,
        resource_group_name="rg-certs",
        location="westeurope",
        server_farm_id="/subscriptions/x/resourceGroups/rg/providers/Microsoft.Web/serverfarms/plan",
    )


@pytest.fixture
def resource_state() -> MockResourceState:
    return MockResourceState(provisioning_state="InProgress")


@pytest.fixture
def events() -> FakeEventRecorder:
    return FakeEventRecorder()


@pytest.fixture
def metrics() -> FakeMetrics:
    return FakeMetrics()


@pytest.fixture
def manager(
    config: Config,
    resource_state: MockResourceState,
    events: FakeEventRecorder,
    metrics: FakeMetrics,
) -> ArmSslCertificateManager:
    client = MockResourceClient(resource_state, SUBSCRIPTION_ID)
    return ArmSslCertificateManager(client, config, events, metrics)


def _put_foreign(state: MockResourceState, manager: ArmSslCertificateManager, name: str) -> None:
    state.put_resource(
        MockResource(
            id=manager.resource_id(name),
            name=name,
            location="westeurope",
            properties={"hostNames": ["example.com"], "provisioningState": "Succeeded"},
            tags=owner_tags(OTHER),
        )
    )


class TestOwnerTags:
    def test_round_trip(self) -> None:
        tags = owner_tags(OWNER)

        assert tags[MANAGED_BY_TAG] == MANAGED_BY_VALUE
        assert owner_from_tags(tags) == OWNER

    @pytest.mark.parametrize(
        "tags",
        [None, {}, {OWNER_NAMESPACE_TAG: "default"}, {OWNER_NAME_TAG: "mcrt1"}],
    )
    def test_incomplete_tags_have_no_owner(self, tags: dict[str, str] | None) -> None:
        assert owner_from_tags(tags) is None


class TestCreate:
    """Tests for SslCertificate creation."""

    @pytest.mark.asyncio
    async def test_create_tags_owner_and_sets_domains(
        self,
        manager: ArmSslCertificateManager,
        resource_state: MockResourceState,
        config: Config,
        events: FakeEventRecorder,
    ) -> None:
        mcrt = make_mcrt(domains=["example.com", "www.example.com"])

        await manager.create("mcrt-1", mcrt)

        resource = resource_state.get_resource(manager.resource_id("mcrt-1"))
        assert resource is not None
        assert resource.location == "westeurope"
        assert owner_from_tags(resource.tags) == OWNER
        assert resource.properties["hostNames"] == ["example.com", "www.example.com"]
        assert resource.properties["canonicalName"] == "example.com"
        assert resource.properties["serverFarmId"] == config.server_farm_id
        assert events.reasons() == ["Create"]

    def test_resource_id_is_scoped_to_resource_group(
        self, manager: ArmSslCertificateManager
    ) -> None:
        assert manager.resource_id("mcrt-1") == (
            f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg-certs"
            f"/providers/{CERTIFICATE_RESOURCE_TYPE}/mcrt-1"
        )

    @pytest.mark.asyncio
    async def test_quota_error_records_event_and_counter(
        self,
        manager: ArmSslCertificateManager,
        resource_state: MockResourceState,
        events: FakeEventRecorder,
        metrics: FakeMetrics,
    ) -> None:
        resource_state.fail_next("create", quota_error())

        with pytest.raises(HttpResponseError):
            await manager.create("mcrt-1", make_mcrt())

        assert events.reasons() == ["TooManyCertificates"]
        assert metrics.quota_errors == 1
        assert metrics.backend_errors == 0
        assert resource_state.resource_count == 0

    @pytest.mark.asyncio
    async def test_backend_error_counted(
        self,
        manager: ArmSslCertificateManager,
        resource_state: MockResourceState,
        events: FakeEventRecorder,
        metrics: FakeMetrics,
    ) -> None:
        resource_state.fail_next("create", backend_error())

        with pytest.raises(HttpResponseError):
            await manager.create("mcrt-1", make_mcrt())

        assert metrics.backend_errors == 1
        assert events.events == []


class TestGet:
    @pytest.mark.asyncio
    async def test_get_converts_resource(self, manager: ArmSslCertificateManager) -> None:
        await manager.create("mcrt-1", make_mcrt(domains=["example.com"]))

        ssl_cert = await manager.get("mcrt-1", OWNER)

        assert ssl_cert.name == "mcrt-1"
        assert ssl_cert.domains == ["example.com"]
        assert ssl_cert.status == "InProgress"
        assert ssl_cert.owner == OWNER

    @pytest.mark.asyncio
    async def test_get_missing_raises_not_found(
        self, manager: ArmSslCertificateManager, metrics: FakeMetrics
    ) -> None:
        with pytest.raises(ResourceNotFoundError):
            await manager.get("mcrt-missing", OWNER)

        assert metrics.backend_errors == 0

    @pytest.mark.asyncio
    async def test_get_foreign_certificate_raises(
        self, manager: ArmSslCertificateManager, resource_state: MockResourceState
    ) -> None:
        _put_foreign(resource_state, manager, "mcrt-1")

        with pytest.raises(SslCertificateNotOwnedError):
            await manager.get("mcrt-1", OWNER)


class TestExists:
    @pytest.mark.asyncio
    async def test_exists(self, manager: ArmSslCertificateManager) -> None:
        assert await manager.exists("mcrt-1", OWNER) is False

        await manager.create("mcrt-1", make_mcrt())

        assert await manager.exists("mcrt-1", OWNER) is True

    @pytest.mark.asyncio
    async def test_foreign_certificate_is_not_reported_as_ours(
        self, manager: ArmSslCertificateManager, resource_state: MockResourceState
    ) -> None:
        _put_foreign(resource_state, manager, "mcrt-1")

        with pytest.raises(SslCertificateNotOwnedError):
            await manager.exists("mcrt-1", OWNER)

    @pytest.mark.asyncio
    async def test_backend_error_propagates(
        self,
        manager: ArmSslCertificateManager,
        resource_state: MockResourceState,
        metrics: FakeMetrics,
    ) -> None:
        resource_state.fail_next("get", backend_error(503))

        with pytest.raises(HttpResponseError):
            await manager.exists("mcrt-1", OWNER)

        assert metrics.backend_errors == 1


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_resource(
        self,
        manager: ArmSslCertificateManager,
        resource_state: MockResourceState,
        events: FakeEventRecorder,
    ) -> None:
        await manager.create("mcrt-1", make_mcrt())

        await manager.delete("mcrt-1", OWNER)

        assert resource_state.resource_count == 0
        assert events.reasons() == ["Create", "Delete"]

    @pytest.mark.asyncio
    async def test_delete_missing_raises_not_found(
        self, manager: ArmSslCertificateManager, resource_state: MockResourceState
    ) -> None:
        with pytest.raises(ResourceNotFoundError):
            await manager.delete("mcrt-1", OWNER)

        assert resource_state.call_count("delete") == 0

    @pytest.mark.asyncio
    async def test_delete_refuses_foreign_certificate(
        self, manager: ArmSslCertificateManager, resource_state: MockResourceState
    ) -> None:
        _put_foreign(resource_state, manager, "mcrt-1")

        with pytest.raises(SslCertificateNotOwnedError):
            await manager.delete("mcrt-1", OWNER)

        assert resource_state.resource_count == 1
        assert resource_state.call_count("delete") == 0


class TestTimeout:
    @pytest.mark.asyncio
    async def test_slow_call_times_out(
        self,
        config: Config,
        resource_state: MockResourceState,
        events: FakeEventRecorder,
        metrics: FakeMetrics,
    ) -> None:
        client = MockResourceClient(resource_state, SUBSCRIPTION_ID)
        client.resources.get_by_id = lambda *_args, **_kwargs: time.sleep(0.5)
        # Below the validated minimum, to keep the test fast
        object.__setattr__(config, "api_timeout_seconds", 0.05)
        manager = ArmSslCertificateManager(client, config, events, metrics)

        with pytest.raises(TimeoutError):
            await manager.get("mcrt-1", OWNER)

        assert metrics.backend_errors == 0
