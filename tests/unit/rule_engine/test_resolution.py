"""Tests for per-kind entity resolution strategies."""

from __future__ import annotations

import uuid

import pytest

from src.rule_engine.models import EntityContainer, EntityId, EntityKey, EntityType
from src.rule_engine.resolution import (
    DashboardStrategy,
    StrategyRegistry,
    default_strategy_registry,
)
from src.rule_engine.services import (
    DashboardInfo,
    Device,
    EntityServices,
    RuleEngineContext,
    TextPageData,
    TextPageLink,
)
from tests.unit.rule_engine.helpers import TENANT_ID, RecordingRouter


def _key(name: str, entity_type: EntityType, subtype: str | None = None) -> EntityKey:
    return EntityKey(entity_name=name, type=subtype, entity_type=entity_type)


def _dashboard(title: str) -> DashboardInfo:
    return DashboardInfo(title=title, tenant_id=TENANT_ID, id=EntityId.create(EntityType.DASHBOARD))


class PagedDashboardService:
    """DashboardService returning a fixed sequence of pages."""

    def __init__(self, pages: list[list[DashboardInfo]]) -> None:
        self._pages = pages
        self.requested: list[TextPageLink] = []

    def find_dashboards_by_tenant_id(self, tenant_id, page_link: TextPageLink) -> TextPageData:
        self.requested.append(page_link)
        index = len(self.requested) - 1
        has_next = index + 1 < len(self._pages)
        return TextPageData(
            data=self._pages[index],
            has_next=has_next,
            next_page_link=page_link.next() if has_next else None,
        )


class FailingDeviceService:
    def find_device_by_tenant_id_and_name(self, tenant_id, name):
        raise ConnectionError("device store unreachable")

    def save_device(self, device: Device) -> Device:
        raise AssertionError("should not be called")


class TestCreatableKinds:
    """Devices, assets and customers are looked up and optionally created."""

    def setup_method(self) -> None:
        self.registry = default_strategy_registry()

    def test_existing_device_is_found(self, ctx, services) -> None:
        existing = services.devices.save_device(
            Device(name="sensor-1", type="thermometer", tenant_id=TENANT_ID)
        )

        result = self.registry.resolve(ctx, _key("sensor-1", EntityType.DEVICE), True)

        assert result == EntityContainer(EntityType.DEVICE, existing.id)
        assert services.devices.saves == 1  # Only the setup save

    def test_missing_device_without_create_is_absent(self, ctx, services) -> None:
        result = self.registry.resolve(ctx, _key("ghost", EntityType.DEVICE), False)

        assert result.found is False
        assert result.entity_type is EntityType.DEVICE
        assert services.devices.saves == 0

    def test_missing_device_is_created_with_subtype(self, ctx, services) -> None:
        result = self.registry.resolve(
            ctx, _key("sensor-9", EntityType.DEVICE, "thermometer"), True
        )

        created = services.devices.all()
        assert len(created) == 1
        assert created[0].name == "sensor-9"
        assert created[0].type == "thermometer"
        assert created[0].tenant_id == TENANT_ID
        assert result.entity_id == created[0].id

    def test_empty_subtype_is_passed_literally(self, ctx, services) -> None:
        self.registry.resolve(ctx, _key("sensor-9", EntityType.DEVICE, ""), True)

        assert services.devices.all()[0].type == ""

    def test_missing_asset_is_created(self, ctx, services) -> None:
        result = self.registry.resolve(ctx, _key("pump-3", EntityType.ASSET, "pump"), True)

        created = services.assets.all()
        assert [(a.name, a.type) for a in created] == [("pump-3", "pump")]
        assert result.entity_id == created[0].id
        assert result.entity_id.entity_type is EntityType.ASSET

    def test_missing_customer_is_created_by_title(self, ctx, services) -> None:
        result = self.registry.resolve(ctx, _key("ACME", EntityType.CUSTOMER, "ignored"), True)

        created = services.customers.all()
        assert [c.title for c in created] == ["ACME"]
        assert result.entity_id == created[0].id

    def test_service_error_propagates(self, router) -> None:
        ctx = RuleEngineContext(
            tenant_id=TENANT_ID,
            services=EntityServices(devices=FailingDeviceService()),
            router=router,
        )

        with pytest.raises(ConnectionError, match="unreachable"):
            self.registry.resolve(ctx, _key("sensor-1", EntityType.DEVICE), True)

    def test_missing_service_raises_lookup_error(self) -> None:
        ctx = RuleEngineContext(
            tenant_id=TENANT_ID, services=EntityServices(), router=RecordingRouter()
        )

        with pytest.raises(LookupError, match="devices"):
            self.registry.resolve(ctx, _key("sensor-1", EntityType.DEVICE), False)


class TestLookupOnlyKinds:
    """Tenants, entity views and unknown kinds never create anything."""

    def setup_method(self) -> None:
        self.registry = default_strategy_registry()

    def test_tenant_resolves_to_context_tenant(self, ctx, services) -> None:
        result = self.registry.resolve(ctx, _key("anything", EntityType.TENANT, "x"), True)

        assert result.entity_id == TENANT_ID
        assert services.devices.lookups == 0

    def test_entity_view_found(self, ctx, services) -> None:
        view = services.entity_views.add(TENANT_ID, "north-wing")

        result = self.registry.resolve(ctx, _key("north-wing", EntityType.ENTITY_VIEW), False)

        assert result.entity_id == view.id

    def test_entity_view_never_created(self, ctx, services) -> None:
        result = self.registry.resolve(ctx, _key("missing", EntityType.ENTITY_VIEW), True)

        assert result.found is False
        assert services.entity_views.lookups == 1

    @pytest.mark.parametrize("entity_type", [EntityType.USER, EntityType.ALARM, EntityType.RULE_CHAIN])
    def test_unregistered_kind_is_absent_without_lookup(self, ctx, services, entity_type) -> None:
        result = self.registry.resolve(ctx, _key("x", entity_type), True)

        assert result == EntityContainer(entity_type)
        assert services.devices.lookups == 0
        assert services.dashboards.lookups == 0

    def test_custom_strategy_can_be_registered(self, ctx) -> None:
        user_id = EntityId.create(EntityType.USER)

        class UserStrategy:
            def resolve(self, ctx, key, create_if_missing):
                return EntityContainer(EntityType.USER, user_id)

        registry = StrategyRegistry()
        registry.register(EntityType.USER, UserStrategy())

        assert registry.resolve(ctx, _key("admin", EntityType.USER), False).entity_id == user_id
        assert registry.entity_types == frozenset({EntityType.USER})


class TestDashboardResolution:
    """Dashboards are matched by exact title across all search pages."""

    def _ctx(self, service, router) -> RuleEngineContext:
        return RuleEngineContext(
            tenant_id=TENANT_ID,
            services=EntityServices(dashboards=service),
            router=router,
        )

    def test_exact_match_on_last_page(self, router) -> None:
        target = _dashboard("Fleet")
        service = PagedDashboardService(
            [
                [_dashboard("Fleet A"), _dashboard("Fleet B")],
                [_dashboard("Fleet C"), _dashboard("Fleet Overview")],
                [target],
            ]
        )

        result = DashboardStrategy(page_size=2).resolve(
            self._ctx(service, router), _key("Fleet", EntityType.DASHBOARD), False
        )

        assert result.entity_id == target.id
        assert [link.offset for link in service.requested] == [0, 2, 4]
        assert all(link.text_search == "Fleet" for link in service.requested)

    def test_exact_match_on_first_page_still_scans_all(self, router) -> None:
        target = _dashboard("Fleet")
        service = PagedDashboardService([[target, _dashboard("Fleet A")], [_dashboard("Fleet B")]])

        result = DashboardStrategy(page_size=2).resolve(
            self._ctx(service, router), _key("Fleet", EntityType.DASHBOARD), False
        )

        assert result.entity_id == target.id
        assert len(service.requested) == 2

    def test_prefix_match_only_is_absent(self, router) -> None:
        service = PagedDashboardService(
            [[_dashboard("Fleet A"), _dashboard("Fleet B")], [_dashboard("Fleets")]]
        )

        result = DashboardStrategy(page_size=2).resolve(
            self._ctx(service, router), _key("Fleet", EntityType.DASHBOARD), True
        )

        assert result.found is False

    def test_last_exact_match_wins(self, router) -> None:
        first, second = _dashboard("Fleet"), _dashboard("Fleet")
        service = PagedDashboardService([[first], [second]])

        result = DashboardStrategy(page_size=1).resolve(
            self._ctx(service, router), _key("Fleet", EntityType.DASHBOARD), False
        )

        assert result.entity_id == second.id

    def test_in_memory_service_paging(self, ctx, services) -> None:
        """The in-memory search pages through prefix matches."""
        for title in ("Plant 1", "Plant 2", "Plant 3"):
            services.dashboards.add(TENANT_ID, title)
        target = services.dashboards.add(TENANT_ID, "Plant")
        services.dashboards.add(TENANT_ID, "Other")

        registry = StrategyRegistry()
        registry.register(EntityType.DASHBOARD, DashboardStrategy(page_size=2))
        result = registry.resolve(ctx, _key("Plant", EntityType.DASHBOARD), False)

        assert result.entity_id == target.id
        assert services.dashboards.lookups == 2

    def test_page_size_default(self, ctx, services) -> None:
        dashboard = services.dashboards.add(TENANT_ID, "Energy")

        result = default_strategy_registry().resolve(
            ctx, _key("Energy", EntityType.DASHBOARD), False
        )

        assert result.entity_id == dashboard.id
        assert result.entity_id.id != uuid.UUID(int=0)
