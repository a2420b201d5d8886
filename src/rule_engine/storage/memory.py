"""
In-Memory Entity Services

Simple dict-based storage for unit testing and local runs.
Implements the same protocols as production backends.

Service calls arrive from executor threads, so every store is guarded by a
lock. Each service counts its lookups and saves so callers can assert how
often the backend was hit.
"""

from __future__ import annotations

import threading

from src.rule_engine.models import EntityId, EntityType
from src.rule_engine.services import (
    Asset,
    Customer,
    DashboardInfo,
    Device,
    EntityServices,
    EntityView,
    TextPageData,
    TextPageLink,
)


class _CountingStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.lookups = 0
        self.saves = 0


class InMemoryDeviceService(_CountingStore):
    """In-memory implementation of DeviceService."""

    def __init__(self) -> None:
        super().__init__()
        self._store: dict[tuple[EntityId, str], Device] = {}

    def find_device_by_tenant_id_and_name(self, tenant_id: EntityId, name: str) -> Device | None:
        with self._lock:
            self.lookups += 1
            return self._store.get((tenant_id, name))

    def save_device(self, device: Device) -> Device:
        """Save a device, assigning an id if it has none."""
        with self._lock:
            self.saves += 1
            saved = device if device.id else device.with_id(EntityId.create(EntityType.DEVICE))
            self._store[(saved.tenant_id, saved.name)] = saved
            return saved

    def all(self) -> list[Device]:
        with self._lock:
            return list(self._store.values())


class InMemoryAssetService(_CountingStore):
    """In-memory implementation of AssetService."""

    def __init__(self) -> None:
        super().__init__()
        self._store: dict[tuple[EntityId, str], Asset] = {}

    def find_asset_by_tenant_id_and_name(self, tenant_id: EntityId, name: str) -> Asset | None:
        with self._lock:
            self.lookups += 1
            return self._store.get((tenant_id, name))

    def save_asset(self, asset: Asset) -> Asset:
        """Save an asset, assigning an id if it has none."""
        with self._lock:
            self.saves += 1
            saved = asset if asset.id else asset.with_id(EntityId.create(EntityType.ASSET))
            self._store[(saved.tenant_id, saved.name)] = saved
            return saved

    def all(self) -> list[Asset]:
        with self._lock:
            return list(self._store.values())


class InMemoryCustomerService(_CountingStore):
    """In-memory implementation of CustomerService."""

    def __init__(self) -> None:
        super().__init__()
        self._store: dict[tuple[EntityId, str], Customer] = {}

    def find_customer_by_tenant_id_and_title(
        self, tenant_id: EntityId, title: str
    ) -> Customer | None:
        with self._lock:
            self.lookups += 1
            return self._store.get((tenant_id, title))

    def save_customer(self, customer: Customer) -> Customer:
        """Save a customer, assigning an id if it has none."""
        with self._lock:
            self.saves += 1
            saved = (
                customer if customer.id else customer.with_id(EntityId.create(EntityType.CUSTOMER))
            )
            self._store[(saved.tenant_id, saved.title)] = saved
            return saved

    def all(self) -> list[Customer]:
        with self._lock:
            return list(self._store.values())


class InMemoryEntityViewService(_CountingStore):
    """In-memory implementation of EntityViewService."""

    def __init__(self) -> None:
        super().__init__()
        self._store: dict[tuple[EntityId, str], EntityView] = {}

    def find_entity_view_by_tenant_id_and_name(
        self, tenant_id: EntityId, name: str
    ) -> EntityView | None:
        with self._lock:
            self.lookups += 1
            return self._store.get((tenant_id, name))

    def add(self, tenant_id: EntityId, name: str) -> EntityView:
        """Register an entity view. Views are never created by resolution."""
        view = EntityView(name=name, tenant_id=tenant_id, id=EntityId.create(EntityType.ENTITY_VIEW))
        with self._lock:
            self._store[(tenant_id, name)] = view
        return view


class InMemoryDashboardService(_CountingStore):
    """
    In-memory implementation of DashboardService.

    Text search matches title prefixes case-insensitively and returns
    dashboards in title order, one page at a time.
    """

    def __init__(self) -> None:
        super().__init__()
        self._store: list[DashboardInfo] = []

    def find_dashboards_by_tenant_id(
        self, tenant_id: EntityId, page_link: TextPageLink
    ) -> TextPageData:
        with self._lock:
            self.lookups += 1
            prefix = (page_link.text_search or "").lower()
            matches = [
                d
                for d in self._store
                if d.tenant_id == tenant_id and d.title.lower().startswith(prefix)
            ]

        matches.sort(key=lambda d: d.title.lower())
        start = page_link.offset
        end = start + page_link.limit
        has_next = end < len(matches)
        return TextPageData(
            data=matches[start:end],
            has_next=has_next,
            next_page_link=page_link.next() if has_next else None,
        )

    def add(self, tenant_id: EntityId, title: str) -> DashboardInfo:
        """Register a dashboard. Dashboards are never created by resolution."""
        dashboard = DashboardInfo(
            title=title, tenant_id=tenant_id, id=EntityId.create(EntityType.DASHBOARD)
        )
        with self._lock:
            self._store.append(dashboard)
        return dashboard


def create_in_memory_services() -> EntityServices:
    """Create an EntityServices bundle backed entirely by memory."""
    return EntityServices(
        devices=InMemoryDeviceService(),
        assets=InMemoryAssetService(),
        customers=InMemoryCustomerService(),
        entity_views=InMemoryEntityViewService(),
        dashboards=InMemoryDashboardService(),
    )
