"""Typer CLI for the Kafka source connector.

Protocol messages go to stdout; logs and error reports go to stderr.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

import structlog
import typer
from rich.console import Console

from kafka_source.config.loader import load_catalog, load_connector_config, load_state
from kafka_source.connector import KafkaConnector
from kafka_source.errors import ConnectorError
from kafka_source.observability.logging import configure_logging

logger = structlog.get_logger()
console = Console(stderr=True)
app = typer.Typer(name="source-kafka", help="Kafka source connector")

connector = KafkaConnector()


def _run(command: str, action: Callable[[], None]) -> None:
    try:
        action()
    except ConnectorError as exc:
        logger.error(f"{command}.failed", error=str(exc), error_type=type(exc).__name__)
        console.print(f"[red]{type(exc).__name__}:[/red] {exc}")
        cause = exc.__cause__
        while cause is not None:
            console.print(f"  [dim]caused by {type(cause).__name__}: {cause}[/dim]")
            cause = cause.__cause__
        raise typer.Exit(1) from exc


@app.callback()
def main(
    log_level: str = typer.Option("info", "--log-level", help="Log level for stderr"),
) -> None:
    """Kafka source connector speaking line-delimited JSON on stdout."""
    try:
        configure_logging(log_level)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(2) from exc


@app.command()
def spec() -> None:
    """Print the connector specification."""
    _run("spec", lambda: connector.spec(sys.stdout))


@app.command()
def check(
    config: Path = typer.Option(..., "--config", help="Connector config (YAML or JSON)"),
) -> None:
    """Verify the broker is reachable with the given config."""
    _run("check", lambda: connector.check(sys.stdout, load_connector_config(config)))


@app.command()
def discover(
    config: Path = typer.Option(..., "--config", help="Connector config (YAML or JSON)"),
) -> None:
    """List the topics available as streams."""
    _run("discover", lambda: connector.discover(sys.stdout, load_connector_config(config)))


@app.command()
def read(
    config: Path = typer.Option(..., "--config", help="Connector config (YAML or JSON)"),
    catalog: Path = typer.Option(..., "--catalog", help="Configured catalog"),
    state: Path | None = typer.Option(None, "--state", help="Persisted checkpoints"),
) -> None:
    """Read records from the selected topics, emitting state after each one."""

    def _read() -> None:
        connector_config = load_connector_config(config)
        configured = load_catalog(catalog)
        persisted = load_state(state)
        logger.info(
            "read.starting",
            streams=configured.stream_names,
            tail=configured.tail,
            resumed_partitions=len(persisted),
        )
        try:
            connector.read(sys.stdout, connector_config, configured, persisted)
        except KeyboardInterrupt:
            logger.info("read.interrupted")

    _run("read", _read)
