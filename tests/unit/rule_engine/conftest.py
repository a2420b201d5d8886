"""Shared fixtures for rule engine tests."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from src.rule_engine.services import RuleEngineContext
from src.rule_engine.storage import create_in_memory_services
from tests.unit.rule_engine.helpers import TENANT_ID, FakeClock, RecordingRouter


@pytest.fixture
def services():
    return create_in_memory_services()


@pytest.fixture
def router() -> RecordingRouter:
    return RecordingRouter()


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=4)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def ctx(services, router, executor) -> RuleEngineContext:
    return RuleEngineContext(
        tenant_id=TENANT_ID,
        services=services,
        router=router,
        io_executor=executor,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
