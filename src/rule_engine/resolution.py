"""
Entity Resolution Strategies

Resolves an EntityKey to an EntityContainer by looking the entity up in the
matching backing service, optionally creating it when absent.

Each entity kind has its own strategy; a StrategyRegistry maps kinds to
strategies. Kinds with no registered strategy resolve to an empty container
without touching any service.

Strategies are synchronous and may block on I/O. Callers run them on an
executor, never on the event loop.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from src.rule_engine.models import EntityContainer, EntityType
from src.rule_engine.services import (
    Asset,
    Customer,
    Device,
    TextPageLink,
)

if TYPE_CHECKING:
    from src.rule_engine.models import EntityKey
    from src.rule_engine.services import RuleEngineContext

logger = logging.getLogger(__name__)

DASHBOARD_SEARCH_PAGE_SIZE = 200


class ResolutionStrategy(Protocol):
    """Lookup-or-create logic for one entity kind."""

    def resolve(
        self,
        ctx: RuleEngineContext,
        key: EntityKey,
        create_if_missing: bool,
    ) -> EntityContainer:
        """
        Resolve a key to a container.

        Args:
            ctx: Context providing the tenant and backing services
            key: Entity descriptor
            create_if_missing: Create the entity if the kind supports it

        Returns:
            EntityContainer, with ``entity_id=None`` when nothing was found or
            created

        Raises:
            Whatever the backing service raises; failures are never reported
            as "not found".
        """
        ...


class DeviceStrategy:
    """Devices are looked up by name and created with name and profile type."""

    def resolve(
        self, ctx: RuleEngineContext, key: EntityKey, create_if_missing: bool
    ) -> EntityContainer:
        service = ctx.require("devices")
        device = service.find_device_by_tenant_id_and_name(ctx.tenant_id, key.entity_name)
        if device is not None:
            return EntityContainer(EntityType.DEVICE, device.id)
        if not create_if_missing:
            return EntityContainer(EntityType.DEVICE)

        saved = service.save_device(
            Device(name=key.entity_name, type=key.type, tenant_id=ctx.tenant_id)
        )
        logger.info(f"Created device '{key.entity_name}' ({saved.id})")
        return EntityContainer(EntityType.DEVICE, saved.id)


class AssetStrategy:
    """Assets are looked up by name and created with name and type."""

    def resolve(
        self, ctx: RuleEngineContext, key: EntityKey, create_if_missing: bool
    ) -> EntityContainer:
        service = ctx.require("assets")
        asset = service.find_asset_by_tenant_id_and_name(ctx.tenant_id, key.entity_name)
        if asset is not None:
            return EntityContainer(EntityType.ASSET, asset.id)
        if not create_if_missing:
            return EntityContainer(EntityType.ASSET)

        saved = service.save_asset(
            Asset(name=key.entity_name, type=key.type, tenant_id=ctx.tenant_id)
        )
        logger.info(f"Created asset '{key.entity_name}' ({saved.id})")
        return EntityContainer(EntityType.ASSET, saved.id)


class CustomerStrategy:
    """Customers are looked up and created by title; they have no subtype."""

    def resolve(
        self, ctx: RuleEngineContext, key: EntityKey, create_if_missing: bool
    ) -> EntityContainer:
        service = ctx.require("customers")
        customer = service.find_customer_by_tenant_id_and_title(
            ctx.tenant_id, key.entity_name
        )
        if customer is not None:
            return EntityContainer(EntityType.CUSTOMER, customer.id)
        if not create_if_missing:
            return EntityContainer(EntityType.CUSTOMER)

        saved = service.save_customer(Customer(title=key.entity_name, tenant_id=ctx.tenant_id))
        logger.info(f"Created customer '{key.entity_name}' ({saved.id})")
        return EntityContainer(EntityType.CUSTOMER, saved.id)


class TenantStrategy:
    """The tenant always resolves to the context's own tenant."""

    def resolve(
        self, ctx: RuleEngineContext, key: EntityKey, create_if_missing: bool
    ) -> EntityContainer:
        return EntityContainer(EntityType.TENANT, ctx.tenant_id)


class EntityViewStrategy:
    """Entity views are looked up by name and never created."""

    def resolve(
        self, ctx: RuleEngineContext, key: EntityKey, create_if_missing: bool
    ) -> EntityContainer:
        service = ctx.require("entity_views")
        view = service.find_entity_view_by_tenant_id_and_name(ctx.tenant_id, key.entity_name)
        if view is None:
            return EntityContainer(EntityType.ENTITY_VIEW)
        return EntityContainer(EntityType.ENTITY_VIEW, view.id)


class DashboardStrategy:
    """
    Dashboards are found by scanning a paged title search for exact matches.

    The search matches on title prefix, so every page is scanned and only
    exact titles count. If several dashboards share the title, the last one
    seen wins. Dashboards are never created.
    """

    def __init__(self, page_size: int = DASHBOARD_SEARCH_PAGE_SIZE):
        self._page_size = page_size

    def resolve(
        self, ctx: RuleEngineContext, key: EntityKey, create_if_missing: bool
    ) -> EntityContainer:
        service = ctx.require("dashboards")
        container = EntityContainer(EntityType.DASHBOARD)
        page_link: TextPageLink | None = TextPageLink(
            limit=self._page_size, text_search=key.entity_name
        )
        pages = 0

        while page_link is not None:
            page = service.find_dashboards_by_tenant_id(ctx.tenant_id, page_link)
            pages += 1
            for dashboard in page.data:
                if dashboard.title == key.entity_name:
                    container = EntityContainer(EntityType.DASHBOARD, dashboard.id)
            page_link = (page.next_page_link or page_link.next()) if page.has_next else None

        logger.debug(
            f"Scanned {pages} dashboard page(s) for '{key.entity_name}', "
            f"found={container.found}"
        )
        return container


class StrategyRegistry:
    """
    Maps entity kinds to their resolution strategies.

    Kinds without a registered strategy resolve to an empty container.
    """

    def __init__(self) -> None:
        self._strategies: dict[EntityType, ResolutionStrategy] = {}

    def register(self, entity_type: EntityType, strategy: ResolutionStrategy) -> None:
        """Register (or replace) the strategy for a kind."""
        self._strategies[entity_type] = strategy

    def get(self, entity_type: EntityType) -> ResolutionStrategy | None:
        return self._strategies.get(entity_type)

    @property
    def entity_types(self) -> frozenset[EntityType]:
        """Kinds that have a registered strategy."""
        return frozenset(self._strategies)

    def resolve(
        self,
        ctx: RuleEngineContext,
        key: EntityKey,
        create_if_missing: bool,
    ) -> EntityContainer:
        """Resolve a key with the strategy registered for its kind."""
        strategy = self._strategies.get(key.entity_type)
        if strategy is None:
            logger.debug(f"No resolution strategy for {key.entity_type.value}")
            return EntityContainer(key.entity_type)
        return strategy.resolve(ctx, key, create_if_missing)


def default_strategy_registry() -> StrategyRegistry:
    """Create a registry with strategies for every resolvable kind."""
    registry = StrategyRegistry()
    registry.register(EntityType.DEVICE, DeviceStrategy())
    registry.register(EntityType.ASSET, AssetStrategy())
    registry.register(EntityType.CUSTOMER, CustomerStrategy())
    registry.register(EntityType.TENANT, TenantStrategy())
    registry.register(EntityType.ENTITY_VIEW, EntityViewStrategy())
    registry.register(EntityType.DASHBOARD, DashboardStrategy())
    return registry
