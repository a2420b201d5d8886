"""Test doubles and sample identities for rule engine tests."""

from __future__ import annotations

import uuid

from src.rule_engine.models import EntityId, EntityType, TbMsg

TENANT_ID = EntityId(EntityType.TENANT, uuid.UUID("11111111-1111-1111-1111-111111111111"))
ORIGINATOR_ID = EntityId(EntityType.DEVICE, uuid.UUID("22222222-2222-2222-2222-222222222222"))


class RecordingRouter:
    """MessageRouter that remembers where each message went."""

    def __init__(self) -> None:
        self.successes: list[TbMsg] = []
        self.failures: list[tuple[TbMsg, BaseException | None]] = []

    def route_success(self, msg: TbMsg) -> None:
        self.successes.append(msg)

    def route_failure(self, msg: TbMsg, error: BaseException | None) -> None:
        self.failures.append((msg, error))


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_msg(metadata: dict[str, str] | None = None) -> TbMsg:
    return TbMsg(type="POST_TELEMETRY_REQUEST", originator=ORIGINATOR_ID, metadata=metadata or {})
