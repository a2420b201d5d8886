"""Tests for the in-memory entity services."""

from __future__ import annotations

import pytest

from src.rule_engine.models import EntityId, EntityType
from src.rule_engine.services import (
    AssetService,
    DashboardService,
    Device,
    DeviceService,
    EntityServices,
    RuleEngineContext,
    TextPageLink,
)
from src.rule_engine.storage import (
    InMemoryAssetService,
    InMemoryDashboardService,
    InMemoryDeviceService,
)
from tests.unit.rule_engine.helpers import TENANT_ID, RecordingRouter

OTHER_TENANT = EntityId.create(EntityType.TENANT)


class TestProtocols:
    def test_in_memory_services_satisfy_protocols(self) -> None:
        assert isinstance(InMemoryDeviceService(), DeviceService)
        assert isinstance(InMemoryAssetService(), AssetService)
        assert isinstance(InMemoryDashboardService(), DashboardService)


class TestDeviceStore:
    def test_save_assigns_id(self) -> None:
        service = InMemoryDeviceService()

        saved = service.save_device(Device(name="d", type=None, tenant_id=TENANT_ID))

        assert saved.id is not None
        assert saved.id.entity_type is EntityType.DEVICE
        assert service.find_device_by_tenant_id_and_name(TENANT_ID, "d") == saved

    def test_lookup_is_tenant_scoped(self) -> None:
        service = InMemoryDeviceService()
        service.save_device(Device(name="d", type=None, tenant_id=TENANT_ID))

        assert service.find_device_by_tenant_id_and_name(OTHER_TENANT, "d") is None
        assert service.lookups == 1


class TestDashboardSearch:
    def test_prefix_search_is_case_insensitive_and_paged(self) -> None:
        service = InMemoryDashboardService()
        for title in ("beta", "Alpha 2", "alpha 1", "ALPHA"):
            service.add(TENANT_ID, title)
        service.add(OTHER_TENANT, "alpha other")

        first = service.find_dashboards_by_tenant_id(
            TENANT_ID, TextPageLink(limit=2, text_search="alpha")
        )
        second = service.find_dashboards_by_tenant_id(TENANT_ID, first.next_page_link)

        assert [d.title for d in first.data] == ["ALPHA", "alpha 1"]
        assert first.has_next is True
        assert [d.title for d in second.data] == ["Alpha 2"]
        assert second.has_next is False
        assert second.next_page_link is None

    def test_page_link_next(self) -> None:
        link = TextPageLink(limit=50, text_search="x")

        assert link.next() == TextPageLink(limit=50, text_search="x", offset=50)


class TestRuleEngineContext:
    def test_tenant_id_must_be_a_tenant(self) -> None:
        with pytest.raises(ValueError, match="TENANT"):
            RuleEngineContext(
                tenant_id=EntityId.create(EntityType.DEVICE),
                services=EntityServices(),
                router=RecordingRouter(),
            )
