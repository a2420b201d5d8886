"""Shared logging and telemetry utilities."""

from src.common import logging, telemetry  # noqa: F401
