"""
Rule Engine CLI

Usage:
    python -m src.rule_engine validate node-config.json
    python -m src.rule_engine validate node-config.json -m deviceName=sensor-1
    python -m src.rule_engine version
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from src.common.logging import configure_sanitized_logging
from src.rule_engine.config import load_relation_action_config, load_settings
from src.rule_engine.exceptions import ConfigurationError
from src.rule_engine.models import EntityId, EntityType, TbMsg
from src.rule_engine.patterns import pattern_keys
from src.rule_engine.pipeline import RelationActionNode

logger = logging.getLogger(__name__)

console = Console()

app = typer.Typer(
    name="rule-engine",
    help="Relation action node tooling",
    no_args_is_help=True,
)


def _parse_metadata(pairs: list[str]) -> dict[str, str]:
    metadata: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got '{pair}'")
        metadata[key] = value
    return metadata


async def _noop_action(ctx, request) -> bool:
    return True


@app.command("validate")
def validate_command(
    config_path: Annotated[
        Path,
        typer.Argument(help="Path to the node configuration JSON file"),
    ],
    metadata: Annotated[
        list[str] | None,
        typer.Option("--metadata", "-m", help="Message metadata as key=value (repeatable)"),
    ] = None,
) -> None:
    """
    Validate a relation action node configuration.

    With --metadata, also show the entity the node would resolve for a
    message carrying that metadata.
    """
    configure_sanitized_logging(level=load_settings().log_level.upper())

    if not config_path.exists():
        console.print(f"[red]Error:[/red] Config file not found: {config_path}")
        raise typer.Exit(1)

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] {config_path} is not valid JSON: {e}")
        raise typer.Exit(1)

    try:
        config = load_relation_action_config(raw)
    except ConfigurationError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title="Relation Action Configuration")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for field, value in config.to_dict().items():
        table.add_row(field, "-" if value is None else str(value))
    console.print(table)

    if not metadata:
        return

    values = _parse_metadata(metadata)
    node = RelationActionNode(config, _noop_action)
    msg = TbMsg(
        type="POST_TELEMETRY_REQUEST",
        originator=EntityId.create(EntityType.DEVICE),
        metadata=values,
    )
    key = node.build_entity_key(msg)

    console.print("\n[bold]Resolved descriptor[/bold]")
    console.print(f"  Entity type: {key.entity_type.value}")
    console.print(f"  Name:        {key.entity_name}")
    console.print(f"  Subtype:     {key.type if key.type is not None else '-'}")

    patterns = [config.entity_name_pattern, config.entity_type_pattern or ""]
    unresolved = sorted({k for p in patterns for k in pattern_keys(p) if k not in values})
    if unresolved:
        console.print(
            f"[yellow]Warning:[/yellow] no metadata for placeholder(s): {', '.join(unresolved)}"
        )


@app.command()
def version() -> None:
    """Show version information."""
    from src import __version__

    typer.echo(f"rule-engine version {__version__}")


if __name__ == "__main__":
    app()
