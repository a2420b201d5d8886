"""
Rule Engine Runtime

Hosts relation action nodes for one tenant using process-wide settings:
configures sanitized logging, starts telemetry when enabled, owns the I/O
executor and builds nodes with the configured cache bound.

Usage:
    runtime = RuleEngineRuntime.start(tenant_id, services, router)
    node = runtime.create_node(node_json, create_relation, create_if_missing=True)
    node.on_msg(runtime.context, msg)
    ...
    await runtime.shutdown()
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from src.common.logging import configure_sanitized_logging
from src.common.telemetry import init_telemetry, shutdown_telemetry
from src.rule_engine.config import RuleEngineSettings, create_io_executor, load_settings
from src.rule_engine.pipeline import RelationActionHook, RelationActionNode
from src.rule_engine.services import RuleEngineContext

if TYPE_CHECKING:
    from concurrent.futures import ThreadPoolExecutor

    from src.rule_engine.models import EntityId
    from src.rule_engine.services import EntityServices, MessageRouter

logger = logging.getLogger(__name__)


class RuleEngineRuntime:
    """Process-level host for relation action nodes."""

    def __init__(
        self,
        settings: RuleEngineSettings,
        context: RuleEngineContext,
        executor: ThreadPoolExecutor,
        telemetry_started: bool = False,
    ):
        self._settings = settings
        self._context = context
        self._executor = executor
        self._telemetry_started = telemetry_started
        self._nodes: list[RelationActionNode] = []

    @classmethod
    def start(
        cls,
        tenant_id: EntityId,
        services: EntityServices,
        router: MessageRouter,
        settings: RuleEngineSettings | None = None,
        configure_logging: bool = True,
    ) -> RuleEngineRuntime:
        """
        Start a runtime from settings (loaded from the environment if omitted).

        Args:
            tenant_id: Tenant the hosted nodes act for
            services: Backing entity services
            router: Destination for processed messages
            settings: Runtime settings
            configure_logging: Install sanitized logging on the root logger
        """
        settings = settings or load_settings()
        if configure_logging:
            configure_sanitized_logging(level=settings.log_level.upper())

        telemetry_started = False
        if settings.telemetry_enabled:
            telemetry_started = init_telemetry(
                service_name=settings.service_name,
                otlp_endpoint=settings.otlp_endpoint,
            )

        executor = create_io_executor(settings)
        context = RuleEngineContext(
            tenant_id=tenant_id,
            services=services,
            router=router,
            io_executor=executor,
        )
        logger.info(
            f"Rule engine runtime started: tenant={tenant_id}, "
            f"io_workers={settings.io_executor_workers}, telemetry={telemetry_started}"
        )
        return cls(settings, context, executor, telemetry_started)

    @property
    def settings(self) -> RuleEngineSettings:
        return self._settings

    @property
    def context(self) -> RuleEngineContext:
        return self._context

    @property
    def telemetry_started(self) -> bool:
        return self._telemetry_started

    @property
    def nodes(self) -> list[RelationActionNode]:
        return list(self._nodes)

    def create_node(
        self,
        data: Mapping[str, Any],
        action: RelationActionHook,
        create_if_missing: bool = False,
        **kwargs: Any,
    ) -> RelationActionNode:
        """
        Build and initialize a node from its JSON configuration.

        Raises:
            ConfigurationError: The configuration is invalid
        """
        kwargs.setdefault("cache_max_size", self._settings.cache_max_size)
        node = RelationActionNode.from_config_dict(
            data, action, create_if_missing=create_if_missing, **kwargs
        )
        node.init(self._context)
        self._nodes.append(node)
        return node

    async def shutdown(self) -> None:
        """Destroy every node, stop the executor and flush telemetry."""
        for node in self._nodes:
            await node.destroy()
        self._nodes.clear()
        self._executor.shutdown(wait=True)
        if self._telemetry_started:
            shutdown_telemetry()
        logger.info("Rule engine runtime stopped")
