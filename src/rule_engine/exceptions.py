"""
Rule Engine Exception Hierarchy

Provides structured exception types for relation action nodes.
All rule-engine-specific exceptions inherit from RuleEngineError.

Usage:
    from src.rule_engine.exceptions import EntityNotFoundError, MessageProcessingError

    try:
        await node.process(ctx, msg)
    except MessageProcessingError as e:
        logger.warning(f"Message failed at {e.stage}: {e}")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.rule_engine.models import ProcessingStage

if TYPE_CHECKING:
    from src.rule_engine.models import EntityKey, EntitySearchDirection


class RuleEngineError(Exception):
    """
    Base exception for all rule engine errors.

    Attributes:
        message: Human-readable error description
        code: Optional machine-readable error code for programmatic handling
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(RuleEngineError):
    """Base class for configuration-related errors."""

    pass


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid or malformed."""

    def __init__(self, field: str, value: str, reason: str) -> None:
        super().__init__(
            f"Invalid configuration for '{field}': {value}. {reason}",
            code="CONFIG_INVALID",
        )
        self.field = field
        self.value = value
        self.reason = reason


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""

    def __init__(self, field: str, hint: str | None = None) -> None:
        message = f"Missing required configuration: '{field}'"
        if hint:
            message += f". {hint}"
        super().__init__(message, code="CONFIG_MISSING")
        self.field = field


# =============================================================================
# Message Processing Errors
# =============================================================================


class MessageProcessingError(RuleEngineError):
    """
    A single message failed inside a relation action node.

    Carries enough context to diagnose the failure without replaying the
    message: the stage it failed at, the entity kind and name being
    resolved, and the configured direction.
    """

    def __init__(
        self,
        message: str,
        *,
        stage: ProcessingStage,
        key: EntityKey,
        direction: EntitySearchDirection,
        code: str | None = None,
    ) -> None:
        super().__init__(message, code=code)
        self.stage = stage
        self.key = key
        self.direction = direction

    @property
    def entity_type(self) -> str:
        return self.key.entity_type.value

    @property
    def entity_name(self) -> str:
        return self.key.entity_name

    def __str__(self) -> str:
        return (
            f"{super().__str__()} "
            f"(stage={self.stage.value}, direction={self.direction.value})"
        )


class DescriptorError(MessageProcessingError):
    """
    The entity descriptor could not be built from message metadata.

    ``key`` holds the configured patterns, unsubstituted.
    """

    def __init__(
        self,
        key: EntityKey,
        direction: EntitySearchDirection,
        reason: str,
    ) -> None:
        super().__init__(
            f"Failed to build {key.entity_type.value} descriptor from pattern "
            f"'{key.entity_name}': {reason}",
            stage=ProcessingStage.DESCRIPTOR_FAILED,
            key=key,
            direction=direction,
            code="DESCRIPTOR_FAILED",
        )
        self.reason = reason


class EntityNotFoundError(MessageProcessingError):
    """Resolution produced no entity and creation was not possible."""

    def __init__(self, key: EntityKey, direction: EntitySearchDirection) -> None:
        super().__init__(
            f"No entity found with type '{key.entity_type.value}' "
            f"and name '{key.entity_name}'.",
            stage=ProcessingStage.RESOLUTION_FAILED,
            key=key,
            direction=direction,
            code="ENTITY_NOT_FOUND",
        )


class ResolutionServiceError(MessageProcessingError):
    """A backing entity service raised while resolving or creating an entity."""

    def __init__(
        self,
        key: EntityKey,
        direction: EntitySearchDirection,
        reason: str,
    ) -> None:
        super().__init__(
            f"Failed to resolve {key.entity_type.value} '{key.entity_name}': {reason}",
            stage=ProcessingStage.RESOLUTION_FAILED,
            key=key,
            direction=direction,
            code="RESOLUTION_FAILED",
        )
        self.reason = reason


class RelationActionError(MessageProcessingError):
    """The relation action hook raised."""

    def __init__(
        self,
        key: EntityKey,
        direction: EntitySearchDirection,
        reason: str,
    ) -> None:
        super().__init__(
            f"Relation action failed for {key.entity_type.value} "
            f"'{key.entity_name}': {reason}",
            stage=ProcessingStage.ACTION_FAILED,
            key=key,
            direction=direction,
            code="ACTION_FAILED",
        )
        self.reason = reason
