"""
Entity Service Protocol Definitions

Uses typing.Protocol for duck-typed interface definitions of the persistence
services a relation action node looks entities up in. Service calls are
blocking; nodes run them on the context's I/O executor.
"""

from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from src.rule_engine.models import EntityId, EntityType

if TYPE_CHECKING:
    from src.rule_engine.models import TbMsg


# =============================================================================
# Entity Records
# =============================================================================


@dataclass(frozen=True)
class Device:
    """A device owned by a tenant. ``type`` is the device profile name."""

    name: str
    type: str | None
    tenant_id: EntityId
    id: EntityId | None = None

    def with_id(self, entity_id: EntityId) -> Device:
        return replace(self, id=entity_id)


@dataclass(frozen=True)
class Asset:
    """An asset owned by a tenant."""

    name: str
    type: str | None
    tenant_id: EntityId
    id: EntityId | None = None

    def with_id(self, entity_id: EntityId) -> Asset:
        return replace(self, id=entity_id)


@dataclass(frozen=True)
class Customer:
    """A customer of a tenant, identified by title."""

    title: str
    tenant_id: EntityId
    id: EntityId | None = None

    def with_id(self, entity_id: EntityId) -> Customer:
        return replace(self, id=entity_id)


@dataclass(frozen=True)
class EntityView:
    """A named view over another entity."""

    name: str
    tenant_id: EntityId
    id: EntityId | None = None


@dataclass(frozen=True)
class DashboardInfo:
    """Summary of a dashboard, identified by title."""

    title: str
    tenant_id: EntityId
    id: EntityId | None = None


# =============================================================================
# Paging
# =============================================================================


@dataclass(frozen=True)
class TextPageLink:
    """A page request for a text search."""

    limit: int
    text_search: str | None = None
    offset: int = 0

    def next(self) -> TextPageLink:
        """Link to the page following this one."""
        return replace(self, offset=self.offset + self.limit)


@dataclass(frozen=True)
class TextPageData:
    """One page of text search results."""

    data: list[DashboardInfo] = field(default_factory=list)
    has_next: bool = False
    next_page_link: TextPageLink | None = None


# =============================================================================
# Service Protocols
# =============================================================================


@runtime_checkable
class DeviceService(Protocol):
    """Lookup and persistence of devices."""

    def find_device_by_tenant_id_and_name(
        self, tenant_id: EntityId, name: str
    ) -> Device | None:
        """Find a tenant's device by exact name. Returns None if absent."""
        ...

    def save_device(self, device: Device) -> Device:
        """Persist a device and return it with its assigned id."""
        ...


@runtime_checkable
class AssetService(Protocol):
    """Lookup and persistence of assets."""

    def find_asset_by_tenant_id_and_name(
        self, tenant_id: EntityId, name: str
    ) -> Asset | None:
        """Find a tenant's asset by exact name. Returns None if absent."""
        ...

    def save_asset(self, asset: Asset) -> Asset:
        """Persist an asset and return it with its assigned id."""
        ...


@runtime_checkable
class CustomerService(Protocol):
    """Lookup and persistence of customers."""

    def find_customer_by_tenant_id_and_title(
        self, tenant_id: EntityId, title: str
    ) -> Customer | None:
        """Find a tenant's customer by exact title. Returns None if absent."""
        ...

    def save_customer(self, customer: Customer) -> Customer:
        """Persist a customer and return it with its assigned id."""
        ...


@runtime_checkable
class EntityViewService(Protocol):
    """Lookup of entity views."""

    def find_entity_view_by_tenant_id_and_name(
        self, tenant_id: EntityId, name: str
    ) -> EntityView | None:
        """Find a tenant's entity view by exact name. Returns None if absent."""
        ...


@runtime_checkable
class DashboardService(Protocol):
    """Paged search over dashboards."""

    def find_dashboards_by_tenant_id(
        self, tenant_id: EntityId, page_link: TextPageLink
    ) -> TextPageData:
        """
        Search a tenant's dashboards.

        Args:
            tenant_id: Owning tenant
            page_link: Page to fetch; ``text_search`` matches title prefixes
                case-insensitively, so results are not necessarily exact
        """
        ...


@dataclass
class EntityServices:
    """The set of backing services available to a node. Any may be absent."""

    devices: DeviceService | None = None
    assets: AssetService | None = None
    customers: CustomerService | None = None
    entity_views: EntityViewService | None = None
    dashboards: DashboardService | None = None


# =============================================================================
# Routing
# =============================================================================


@runtime_checkable
class MessageRouter(Protocol):
    """Sink that receives each message once processing has an outcome."""

    def route_success(self, msg: TbMsg) -> None:
        """Forward the message down the success path."""
        ...

    def route_failure(self, msg: TbMsg, error: BaseException | None) -> None:
        """
        Forward the message down the failure path.

        ``error`` is None when the action completed with a negative outcome.
        """
        ...


# =============================================================================
# Context
# =============================================================================


@dataclass
class RuleEngineContext:
    """
    Everything a node needs from the surrounding runtime.

    Attributes:
        tenant_id: Tenant the node runs on behalf of
        services: Backing entity services
        router: Destination for processed messages
        io_executor: Executor for blocking service calls. None uses the
            event loop's default executor.
    """

    tenant_id: EntityId
    services: EntityServices
    router: MessageRouter
    io_executor: Executor | None = None

    def __post_init__(self) -> None:
        if self.tenant_id.entity_type is not EntityType.TENANT:
            raise ValueError(f"tenant_id must be a TENANT id, got {self.tenant_id}")

    def require(self, service_name: str):
        """Return a configured service or raise if the context lacks it."""
        service = getattr(self.services, service_name)
        if service is None:
            raise LookupError(f"No '{service_name}' service configured for this context")
        return service
