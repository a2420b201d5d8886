"""
Relation Action Node

Processes one message at a time without blocking the caller:

1. Build an EntityKey from the message metadata and the node configuration
2. Resolve it through the node's EntityCache (blocking lookups run on the
   context's I/O executor)
3. Place the resolved entity relative to the message originator
4. Run the action hook with the resolved entity and relation endpoints
5. Route the message to success (hook returned True) or failure (hook
   returned False, or any step raised)

What the action does with the relation is up to the hook; the node never
inspects it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from src.common.telemetry import (
    RelationActionMetrics,
    add_span_attributes,
    get_relation_action_metrics,
    get_tracer,
    record_exception,
    trace_async,
)
from src.rule_engine.cache import EntityCache
from src.rule_engine.config import RelationActionConfig, load_relation_action_config
from src.rule_engine.exceptions import (
    DescriptorError,
    EntityNotFoundError,
    MessageProcessingError,
    RelationActionError,
    ResolutionServiceError,
)
from src.rule_engine.models import (
    EntityContainer,
    EntityKey,
    ProcessingStage,
    RelationEndpoints,
)
from src.rule_engine.patterns import process_pattern
from src.rule_engine.resolution import StrategyRegistry, default_strategy_registry

if TYPE_CHECKING:
    from src.rule_engine.models import TbMsg
    from src.rule_engine.services import RuleEngineContext

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


@dataclass(frozen=True)
class RelationActionRequest:
    """Everything an action hook gets for one message."""

    msg: TbMsg
    container: EntityContainer
    endpoints: RelationEndpoints
    config: RelationActionConfig


RelationActionHook = Callable[["RuleEngineContext", RelationActionRequest], Awaitable[bool]]


class RelationActionNode:
    """
    Resolves a configured entity per message and runs an action against it.

    Example:
        async def create_relation(ctx, request) -> bool:
            return await relations.save(request.endpoints, request.config.relation_type)

        node = RelationActionNode(config, create_relation, create_if_missing=True)
        node.init(ctx)
        node.on_msg(ctx, msg)
        ...
        await node.destroy()
    """

    def __init__(
        self,
        config: RelationActionConfig,
        action: RelationActionHook,
        create_if_missing: bool = False,
        registry: StrategyRegistry | None = None,
        metrics: RelationActionMetrics | None = None,
        cache_max_size: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the node.

        Args:
            config: Validated node configuration
            action: Coroutine function performing the relation action
            create_if_missing: Create devices, assets and customers that do
                not exist yet
            registry: Resolution strategies (defaults to every built-in kind)
            metrics: Metrics sink (defaults to the shared instance)
            cache_max_size: Optional bound on cached entities
            clock: Monotonic time source for cache expiry
        """
        self._config = config
        self._action = action
        self._create_if_missing = create_if_missing
        self._registry = registry or default_strategy_registry()
        self._metrics = metrics or get_relation_action_metrics()
        self._cache_max_size = cache_max_size
        self._clock = clock
        self._ctx: RuleEngineContext | None = None
        self._cache: EntityCache | None = None
        self._pending: set[asyncio.Task[None]] = set()

    @classmethod
    def from_config_dict(
        cls,
        data: Mapping[str, Any],
        action: RelationActionHook,
        **kwargs: Any,
    ) -> RelationActionNode:
        """Build a node from raw node JSON. Raises ConfigurationError if invalid."""
        return cls(load_relation_action_config(data), action, **kwargs)

    @property
    def config(self) -> RelationActionConfig:
        return self._config

    @property
    def create_if_missing(self) -> bool:
        return self._create_if_missing

    @property
    def cache(self) -> EntityCache:
        if self._cache is None:
            raise RuntimeError("Node is not initialized; call init() first")
        return self._cache

    @property
    def pending(self) -> int:
        """Number of messages still being processed."""
        return len(self._pending)

    def init(self, ctx: RuleEngineContext) -> None:
        """Bind the node to a context and create its entity cache."""
        self._ctx = ctx
        self._cache = EntityCache(
            self._load_entity,
            expire_after_write_seconds=self._config.entity_cache_expiration,
            max_size=self._cache_max_size,
            clock=self._clock,
        )
        logger.info(
            f"Relation action node initialized: entity_type={self._config.entity_type.value}, "
            f"direction={self._config.direction.value}, "
            f"cache_expiration={self._config.entity_cache_expiration}s, "
            f"create_if_missing={self._create_if_missing}"
        )

    def on_msg(self, ctx: RuleEngineContext, msg: TbMsg) -> asyncio.Task[None]:
        """
        Accept a message and process it in the background.

        Must be called from the event loop. Returns the task that routes the
        message; callers do not need to await it.
        """
        task = asyncio.get_running_loop().create_task(self._handle(ctx, msg))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def destroy(self) -> None:
        """Wait for in-flight messages, then drop the cache."""
        if self._pending:
            results = await asyncio.gather(*self._pending, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Message routing failed during shutdown: {result}")
        if self._cache is not None:
            self._cache.clear()
        logger.info("Relation action node destroyed")

    def build_entity_key(self, msg: TbMsg) -> EntityKey:
        """Derive the EntityKey a message refers to."""
        entity_name = process_pattern(self._config.entity_name_pattern, msg.metadata)
        subtype = None
        if self._config.entity_type_pattern is not None:
            subtype = process_pattern(self._config.entity_type_pattern, msg.metadata)
        return EntityKey(
            entity_name=entity_name,
            type=subtype,
            entity_type=self._config.entity_type,
        )

    @trace_async("relation_action.get_entity")
    async def get_entity(self, msg: TbMsg) -> tuple[EntityKey, EntityContainer]:
        """
        Resolve the entity a message refers to.

        Raises:
            DescriptorError: The metadata could not be substituted into the
                configured patterns
            ResolutionServiceError: A backing service raised
            EntityNotFoundError: Nothing matched and nothing was created
        """
        direction = self._config.direction
        try:
            key = self.build_entity_key(msg)
        except Exception as e:
            template = EntityKey(
                entity_name=self._config.entity_name_pattern,
                type=self._config.entity_type_pattern,
                entity_type=self._config.entity_type,
            )
            raise DescriptorError(template, direction, str(e) or type(e).__name__) from e

        cache = self.cache

        hit = cache.get_if_present(key) is not None
        self._metrics.record_cache_lookup(hit, key.entity_type.value)
        add_span_attributes({"entity.type": key.entity_type.value, "cache.hit": hit})

        started = time.perf_counter()
        try:
            container = await cache.get(key)
        except Exception as e:
            raise ResolutionServiceError(key, direction, str(e) or type(e).__name__) from e

        duration_ms = (time.perf_counter() - started) * 1000
        self._metrics.record_resolution(duration_ms, key.entity_type.value, container.found)
        if not container.found:
            raise EntityNotFoundError(key, direction)
        return key, container

    async def process(self, ctx: RuleEngineContext, msg: TbMsg) -> bool:
        """
        Run resolution and the action for one message.

        Returns:
            The action's outcome

        Raises:
            MessageProcessingError: Resolution or the action failed
        """
        with tracer.start_as_current_span("relation_action.process") as span:
            span.set_attribute("msg.id", str(msg.id))
            span.set_attribute("relation.direction", self._config.direction.value)

            key, container = await self.get_entity(msg)
            span.set_attribute("entity.type", key.entity_type.value)
            span.set_attribute("entity.name", key.entity_name[:50])
            logger.debug(
                f"Message {msg.id}: {ProcessingStage.RESOLVED.value} "
                f"{key.entity_name} -> {container.entity_id}"
            )

            # Entity found, so entity_id is set
            endpoints = RelationEndpoints.for_direction(
                self._config.direction, container.entity_id, msg.originator
            )
            request = RelationActionRequest(
                msg=msg,
                container=container,
                endpoints=endpoints,
                config=self._config,
            )

            try:
                outcome = await self._action(ctx, request)
            except Exception as e:
                raise RelationActionError(
                    key, self._config.direction, str(e) or type(e).__name__
                ) from e

            span.set_attribute("relation_action.outcome", bool(outcome))
            return bool(outcome)

    async def _handle(self, ctx: RuleEngineContext, msg: TbMsg) -> None:
        entity_type = self._config.entity_type.value
        try:
            outcome = await self.process(ctx, msg)
        except MessageProcessingError as e:
            logger.warning(f"Message {msg.id} routed to failure: {e}")
            self._metrics.record_message("error", entity_type)
            ctx.router.route_failure(msg, e)
            return
        except Exception as e:
            logger.exception(f"Unexpected error processing message {msg.id}")
            record_exception(e)
            self._metrics.record_message("error", entity_type)
            ctx.router.route_failure(msg, e)
            return

        if outcome:
            self._metrics.record_message("success", entity_type)
            ctx.router.route_success(msg)
        else:
            logger.debug(f"Message {msg.id}: action returned False")
            self._metrics.record_message("failure", entity_type)
            ctx.router.route_failure(msg, None)

    async def _load_entity(self, key: EntityKey) -> EntityContainer:
        ctx = self._ctx
        if ctx is None:
            raise RuntimeError("Node is not initialized; call init() first")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            ctx.io_executor,
            self._registry.resolve,
            ctx,
            key,
            self._create_if_missing,
        )
