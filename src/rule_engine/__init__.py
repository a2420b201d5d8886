"""
Relation Action Core

Resolves entity names from message metadata to entity ids (creating entities
on demand), caches the results per node, and runs a relation action against
the resolved entity, routing each message to success or failure.

Usage:
    from src.rule_engine import RelationActionNode, RuleEngineContext

    node = RelationActionNode.from_config_dict(
        {"entityType": "DEVICE", "entityNamePattern": "${deviceName}"},
        action=create_relation,
        create_if_missing=True,
    )
    node.init(ctx)
    node.on_msg(ctx, msg)
"""

from src.rule_engine.cache import CacheStats, EntityCache
from src.rule_engine.config import (
    RelationActionConfig,
    RuleEngineSettings,
    create_io_executor,
    load_relation_action_config,
    load_settings,
)
from src.rule_engine.exceptions import (
    ConfigurationError,
    DescriptorError,
    EntityNotFoundError,
    InvalidConfigError,
    MessageProcessingError,
    MissingConfigError,
    RelationActionError,
    ResolutionServiceError,
    RuleEngineError,
)
from src.rule_engine.models import (
    EntityContainer,
    EntityId,
    EntityKey,
    EntitySearchDirection,
    EntityType,
    ProcessingStage,
    RelationEndpoints,
    TbMsg,
)
from src.rule_engine.patterns import process_pattern
from src.rule_engine.pipeline import RelationActionHook, RelationActionNode, RelationActionRequest
from src.rule_engine.resolution import ResolutionStrategy, StrategyRegistry, default_strategy_registry
from src.rule_engine.runtime import RuleEngineRuntime
from src.rule_engine.services import EntityServices, MessageRouter, RuleEngineContext

__all__ = [
    # Models
    "EntityContainer",
    "EntityId",
    "EntityKey",
    "EntitySearchDirection",
    "EntityType",
    "ProcessingStage",
    "RelationEndpoints",
    "TbMsg",
    # Configuration
    "RelationActionConfig",
    "RuleEngineSettings",
    "create_io_executor",
    "load_relation_action_config",
    "load_settings",
    # Resolution and caching
    "CacheStats",
    "EntityCache",
    "ResolutionStrategy",
    "StrategyRegistry",
    "default_strategy_registry",
    "process_pattern",
    # Pipeline
    "EntityServices",
    "MessageRouter",
    "RelationActionHook",
    "RelationActionNode",
    "RelationActionRequest",
    "RuleEngineContext",
    "RuleEngineRuntime",
    # Errors
    "RuleEngineError",
    "ConfigurationError",
    "InvalidConfigError",
    "MissingConfigError",
    "MessageProcessingError",
    "DescriptorError",
    "EntityNotFoundError",
    "ResolutionServiceError",
    "RelationActionError",
]
