"""Command-line interface for dioprobe.

Commands:
- ``serve``: run the HTTP endpoint; every scrape of /metrics runs one probe
- ``probe``: run a single measurement and print the result
- ``config``: print the effective configuration
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from dioprobe import __version__
from dioprobe.config.config import ConfigManager
from dioprobe.models import LogLevel
from dioprobe.monitoring.collector import create_registry
from dioprobe.monitoring.http_server import MetricsServer
from dioprobe.storage.probe import DirectIOProbe
from dioprobe.utils.exceptions import ConfigurationError, DioprobeError, ServerBindError
from dioprobe.utils.logging_config import get_logger

logger = get_logger(__name__)

_path_option = click.option(
    "--path",
    type=str,
    default=None,
    help="Directory to probe (env: DIOPROBE_PATH, default: /var/run)",
)
_block_size_option = click.option(
    "--block-size",
    type=int,
    default=None,
    help="Probe block size in bytes (default: filesystem block size)",
)


def _load_config(ctx: click.Context, **overrides: Any) -> ConfigManager:
    """Build the configuration from the group options and command overrides."""
    opts = ctx.find_root().obj or {}
    paths = {
        "probe.path": overrides.get("path"),
        "probe.listen": overrides.get("listen"),
        "probe.block_size": overrides.get("block_size"),
        "observability.log_level": opts.get("log_level"),
        "observability.log_file": opts.get("log_file"),
    }
    try:
        manager = ConfigManager(opts.get("config_file"), paths)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    manager.setup_logging()
    return manager


@click.group()
@click.version_option(__version__, prog_name="dioprobe")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to dioprobe.toml",
)
@click.option(
    "--log-level",
    type=click.Choice([level.value for level in LogLevel], case_sensitive=False),
    default=None,
    help="Log level (env: DIOPROBE_LOG_LEVEL)",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write logs to this file",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: str | None,
    log_level: str | None,
    log_file: str | None,
) -> None:
    """Direct I/O disk latency probe."""
    ctx.obj = {
        "config_file": config_file,
        "log_level": log_level.upper() if log_level else None,
        "log_file": log_file,
    }


@cli.command("serve")
@_path_option
@click.option(
    "--listen",
    type=str,
    default=None,
    help="Address to listen on (env: DIOPROBE_LISTEN, default: :9172)",
)
@_block_size_option
@click.pass_context
def serve(
    ctx: click.Context,
    path: str | None,
    listen: str | None,
    block_size: int | None,
) -> None:
    """Serve /metrics and /healthz, probing on every scrape."""
    config = _load_config(ctx, path=path, listen=listen, block_size=block_size).config

    probe = DirectIOProbe(config.probe)
    server = MetricsServer(config.probe, create_registry(probe))
    logger.info("Probing %s", config.probe.path)

    try:
        asyncio.run(server.serve_forever())
    except ServerBindError as e:
        logger.critical("http: %s", e)
        ctx.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


@cli.command("probe")
@_path_option
@_block_size_option
@click.option("--json", "as_json", is_flag=True, help="Print the sample as JSON")
@click.pass_context
def probe_once(
    ctx: click.Context,
    path: str | None,
    block_size: int | None,
    as_json: bool,
) -> None:
    """Run one write/read round trip and print its durations."""
    config = _load_config(ctx, path=path, block_size=block_size).config
    console = Console()
    probe = DirectIOProbe(config.probe)

    try:
        sample = probe.measure()
    except DioprobeError as e:
        if as_json:
            click.echo(json.dumps({"path": config.probe.path, "error": str(e)}))
        else:
            console.print(f"[red]Probe of {config.probe.path} failed: {e}[/red]")
        ctx.exit(1)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "path": config.probe.path,
                    "block_size": probe.block_size(),
                    "read_seconds": sample.read_duration,
                    "write_seconds": sample.write_duration,
                }
            )
        )
        return

    table = Table(title=f"Direct I/O probe: {config.probe.path}")
    table.add_column("op", style="cyan")
    table.add_column("duration (s)", justify="right")
    table.add_row("write", f"{sample.write_duration:.6f}")
    table.add_row("read", f"{sample.read_duration:.6f}")
    console.print(table)


@cli.command("config")
@_path_option
@click.pass_context
def show_config(ctx: click.Context, path: str | None) -> None:
    """Print the effective configuration as TOML."""
    manager = _load_config(ctx, path=path)
    click.echo(manager.export())


def main() -> None:
    """Console script entry point."""
    cli(prog_name="dioprobe")
