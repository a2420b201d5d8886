"""
In-Memory Storage Backend

Dict-backed entity services for unit tests and local runs.
"""

from src.rule_engine.storage.memory import (
    InMemoryAssetService,
    InMemoryCustomerService,
    InMemoryDashboardService,
    InMemoryDeviceService,
    InMemoryEntityViewService,
    create_in_memory_services,
)

__all__ = [
    "InMemoryDeviceService",
    "InMemoryAssetService",
    "InMemoryCustomerService",
    "InMemoryEntityViewService",
    "InMemoryDashboardService",
    "create_in_memory_services",
]
