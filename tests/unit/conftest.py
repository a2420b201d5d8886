"""
Pytest configuration for unit tests.

Disables telemetry so tracers and meters are OpenTelemetry no-ops.
"""

import os


def pytest_configure(config):
    """Configure telemetry for unit tests."""
    # Must run before modules create their module-level tracers
    os.environ["RULE_ENGINE_TELEMETRY_ENABLED"] = "false"
