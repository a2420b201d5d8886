"""
Rule Engine Models

Data classes for entity descriptors, resolved handles and messages.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


class EntityType(str, Enum):
    """Kinds of entities known to the rule engine."""

    TENANT = "TENANT"
    CUSTOMER = "CUSTOMER"
    USER = "USER"
    DASHBOARD = "DASHBOARD"
    ASSET = "ASSET"
    DEVICE = "DEVICE"
    ALARM = "ALARM"
    RULE_CHAIN = "RULE_CHAIN"
    RULE_NODE = "RULE_NODE"
    ENTITY_VIEW = "ENTITY_VIEW"
    WIDGETS_BUNDLE = "WIDGETS_BUNDLE"
    WIDGET_TYPE = "WIDGET_TYPE"


class EntitySearchDirection(str, Enum):
    """Which end of a relation the resolved entity occupies."""

    FROM = "FROM"  # Resolved entity is the source
    TO = "TO"  # Resolved entity is the target


class ProcessingStage(str, Enum):
    """Points in a relation action node where a message is reported on."""

    DESCRIPTOR_FAILED = "descriptor_failed"
    RESOLVED = "resolved"
    RESOLUTION_FAILED = "resolution_failed"
    ACTION_FAILED = "action_failed"


@dataclass(frozen=True)
class EntityId:
    """Typed identity of an entity."""

    entity_type: EntityType
    id: uuid.UUID

    @classmethod
    def create(cls, entity_type: EntityType) -> EntityId:
        """Allocate a fresh random identity for a new entity."""
        return cls(entity_type=entity_type, id=uuid.uuid4())

    @classmethod
    def from_string(cls, entity_type: str, entity_id: str) -> EntityId:
        """Build an id from its type name and UUID string."""
        return cls(entity_type=EntityType(entity_type), id=uuid.UUID(entity_id))

    def __str__(self) -> str:
        return f"{self.entity_type.value}:{self.id}"


@dataclass(frozen=True)
class EntityKey:
    """
    Descriptor of the entity a message refers to.

    Used as the cache key. ``type`` is the entity subtype (e.g. a device
    profile name); ``None`` and ``""`` are different keys.
    """

    entity_name: str
    type: str | None
    entity_type: EntityType


@dataclass(frozen=True)
class EntityContainer:
    """
    Result of resolving an EntityKey.

    ``entity_id`` is None when nothing matched and nothing was created.
    """

    entity_type: EntityType
    entity_id: EntityId | None = None

    @property
    def found(self) -> bool:
        return self.entity_id is not None


@dataclass(frozen=True)
class RelationEndpoints:
    """Source and target of the relation a message acts on."""

    from_id: EntityId
    to_id: EntityId

    @classmethod
    def for_direction(
        cls,
        direction: EntitySearchDirection,
        resolved: EntityId,
        originator: EntityId,
    ) -> RelationEndpoints:
        """
        Place the resolved entity relative to the message originator.

        FROM puts the resolved entity at the source and the originator at the
        target; TO does the reverse.
        """
        if direction is EntitySearchDirection.FROM:
            return cls(from_id=resolved, to_id=originator)
        return cls(from_id=originator, to_id=resolved)


def _freeze(metadata: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(metadata))


@dataclass(frozen=True)
class TbMsg:
    """A message flowing through the rule engine."""

    type: str
    originator: EntityId
    metadata: Mapping[str, str] = field(default_factory=dict, hash=False)
    data: str = "{}"
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", _freeze(self.metadata))

    def to_dict(self) -> dict:
        """Convert to dictionary for logging and JSON serialization."""
        return {
            "id": str(self.id),
            "type": self.type,
            "originator": str(self.originator),
            "metadata": dict(self.metadata),
            "data": self.data,
        }
