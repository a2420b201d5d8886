"""
Rule Engine Configuration

Two layers:
- RelationActionConfig: per-node configuration, loaded from the node's JSON
  definition (camelCase keys)
- RuleEngineSettings: process-wide runtime settings read from environment
  variables with the RULE_ENGINE_ prefix
"""

from __future__ import annotations

from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.rule_engine.exceptions import InvalidConfigError, MissingConfigError
from src.rule_engine.models import EntitySearchDirection, EntityType


class RelationActionConfig(BaseModel):
    """Configuration for a relation action node."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    direction: EntitySearchDirection = Field(
        default=EntitySearchDirection.FROM,
        description="FROM: resolved entity is the relation source; TO: it is the target",
    )
    relation_type: str = Field(
        default="Contains",
        alias="relationType",
        min_length=1,
        description="Relation type the action hook creates or removes",
    )
    entity_type: EntityType = Field(
        ...,
        alias="entityType",
        description="Kind of entity to resolve",
    )
    entity_name_pattern: str = Field(
        ...,
        alias="entityNamePattern",
        min_length=1,
        description="Entity name, with ${metadataKey} placeholders",
    )
    entity_type_pattern: str | None = Field(
        default=None,
        alias="entityTypePattern",
        description="Optional entity subtype, with ${metadataKey} placeholders",
    )
    entity_cache_expiration: int = Field(
        default=300,
        alias="entityCacheExpiration",
        ge=0,
        description="Seconds a resolved entity stays cached after it is written; 0 = forever",
    )

    @field_validator("direction", "entity_type", mode="before")
    @classmethod
    def _upper_case_enum(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the node JSON shape."""
        return self.model_dump(mode="json", by_alias=True)


def load_relation_action_config(data: Mapping[str, Any]) -> RelationActionConfig:
    """
    Load and validate a node configuration.

    Args:
        data: Node configuration as parsed from JSON

    Returns:
        Validated RelationActionConfig

    Raises:
        MissingConfigError: A required field is absent
        InvalidConfigError: A field has an invalid value
    """
    try:
        return RelationActionConfig.model_validate(dict(data))
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "<root>"
        if error["type"] == "missing":
            raise MissingConfigError(field) from e
        raise InvalidConfigError(field, repr(error.get("input")), error["msg"]) from e


class RuleEngineSettings(BaseSettings):
    """
    Runtime settings for hosting relation action nodes.

    Reads from environment variables with RULE_ENGINE_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="RULE_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Executor for blocking entity service calls
    io_executor_workers: int = Field(
        default=8,
        ge=1,
        description="Worker threads for entity lookups and creation",
    )

    # Cache hardening
    cache_max_size: int | None = Field(
        default=None,
        ge=1,
        description="Optional bound on cached entities per node (unbounded if unset)",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    # Telemetry
    telemetry_enabled: bool = Field(
        default=True,
        description="Export traces and metrics over OTLP",
    )
    service_name: str = Field(
        default="rule-engine",
        description="Service name reported to telemetry",
    )
    otlp_endpoint: str = Field(
        default="http://localhost:4317",
        description="OTLP collector endpoint",
    )


def load_settings() -> RuleEngineSettings:
    """Load settings from environment."""
    return RuleEngineSettings()


def create_io_executor(settings: RuleEngineSettings) -> ThreadPoolExecutor:
    """Create the bounded executor entity service calls run on."""
    return ThreadPoolExecutor(
        max_workers=settings.io_executor_workers,
        thread_name_prefix="rule-engine-io",
    )
