"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import json
import logging
import time

import typer
from rich.console import Console
from rich.logging import RichHandler

from gvm_cli import __version__
from gvm_cli.core.version_manager import VersionManager
from gvm_cli.models.config import ManagerConfig
from gvm_cli.models.state import SYSTEM_VERSION
from gvm_cli.storage.config_manager import ConfigManager
from gvm_cli.utils.structured_logger import StructuredLogger, create_structured_logger

from .formatters import (
    print_available_table,
    print_config,
    print_install_summary,
    print_installed,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("gvm_cli")

app = typer.Typer(
    name="gvm",
    help=(
        "Install and switch between Go versions. Use 'gvm <command> --help' for"
        " more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    mirror: str | None = typer.Option(
        None, "--mirror", help="Override the download mirror base URL."
    ),
    log_json: bool = typer.Option(
        False, "--log-json", help="Also write JSON event logs to ~/.gvm/logs."
    ),
):
    """Go Version Manager"""
    if version:
        console.print(f"[bold]gvm[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("gvm_cli").setLevel(log_level)

    ctx.obj = {"cli_options": {"mirror": mirror}, "log_json": log_json}

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _load_config(ctx: typer.Context, **overrides) -> ManagerConfig:
    obj = ctx.obj or {}
    cli_options = dict(obj.get("cli_options", {}))
    cli_options.update({k: v for k, v in overrides.items() if v is not None})
    return ConfigManager.default().load_config(cli_options)


def _create_manager(
    ctx: typer.Context, config: ManagerConfig
) -> tuple[VersionManager, StructuredLogger]:
    log_json = bool((ctx.obj or {}).get("log_json"))
    base_logger, install_logger = create_structured_logger(
        config.logs_dir, enable_json=log_json
    )
    base_logger.set_session_context(
        command=ctx.info_name, gvm_version=__version__, mirror=config.mirror
    )
    if base_logger.json_log_path:
        log.debug(f"Writing JSON events to [dim]{base_logger.json_log_path}[/dim]")
    return VersionManager(config, events=install_logger), base_logger


@app.command()
def install(
    ctx: typer.Context,
    version_spec: str = typer.Argument(
        ..., metavar="VERSION", help="Version to install, e.g. 1.21.5 or latest."
    ),
    use: bool = typer.Option(
        False, "--use", help="Activate the version after installing it."
    ),
):
    """Download and install a Go version."""
    config = _load_config(ctx)

    async def _install_async():
        manager, base_logger = _create_manager(ctx, config)
        try:
            async with manager:
                version_id = await manager.resolve(version_spec)
                console.print(f"[cyan]Installing Go {version_id}...[/cyan]")
                start_time = time.monotonic()
                async with ProgressManager(
                    console, quiet=not console.is_terminal
                ) as progress:
                    result = await manager.install(
                        version_id, progress=progress.on_bytes, on_stage=progress.on_stage
                    )
                print_install_summary(result, time.monotonic() - start_time)
                if use:
                    manager.use(version_id)
                    console.print(f"[green]✓ Now using Go {version_id}[/green]")
        finally:
            base_logger.close()

    asyncio.run(_install_async())


@app.command(name="use")
def use_command(
    ctx: typer.Context,
    version_spec: str = typer.Argument(
        ..., metavar="VERSION", help="Installed version to activate."
    ),
):
    """Switch to an installed Go version."""
    config = _load_config(ctx)
    manager, base_logger = _create_manager(ctx, config)
    version_id = config.normalize_version(version_spec)
    try:
        console.print(f"Switching to Go {version_id}...")
        manager.use(version_id)
    finally:
        base_logger.close()
    console.print(f"[green]✓ Now using Go {version_id}[/green]")
    console.print(
        f"[dim]Open a new shell, or add {config.shims_dir} to PATH, if 'go' "
        "still resolves elsewhere.[/dim]"
    )


@app.command()
def uninstall(
    ctx: typer.Context,
    version_spec: str = typer.Argument(
        ..., metavar="VERSION", help="Installed version to remove."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Remove an installed Go version."""
    config = _load_config(ctx)
    version_id = config.normalize_version(version_spec)
    if not force and not typer.confirm(f"Uninstall Go {version_id}?", default=True):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    manager, base_logger = _create_manager(ctx, config)
    try:
        console.print(f"Uninstalling Go {version_id}...")
        manager.uninstall(version_id)
    finally:
        base_logger.close()
    console.print(f"[green]✓ Successfully uninstalled Go {version_id}[/green]")


@app.command(name="list")
def list_command(ctx: typer.Context):
    """List installed Go versions."""
    config = _load_config(ctx)
    manager, base_logger = _create_manager(ctx, config)
    try:
        records = manager.list_installed()
        current = manager.current()
        system_version = manager.system_version()
    finally:
        base_logger.close()
    print_installed(
        records,
        manager.target_arch,
        system_version=system_version,
        system_active=current == SYSTEM_VERSION,
    )


app.command(name="ls", help="Alias of 'list'.", hidden=True)(list_command)


@app.command()
def available(
    ctx: typer.Context,
    stable: bool = typer.Option(False, "--stable", help="Show only stable versions."),
    limit: int = typer.Option(
        0, "--limit", min=0, help="Limit the number of results (0 = no limit)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON."),
    mirror: str | None = typer.Option(
        None, "--mirror", help="Override the download mirror base URL."
    ),
):
    """List Go versions published in the catalog."""
    config = _load_config(ctx, mirror=mirror)

    async def _available_async():
        manager, base_logger = _create_manager(ctx, config)
        try:
            async with manager:
                return await manager.list_available(stable_only=stable, limit=limit)
        finally:
            base_logger.close()

    releases = asyncio.run(_available_async())

    if as_json:
        payload = [r.model_dump(mode="json", by_alias=True) for r in releases]
        typer.echo(json.dumps(payload, indent=2))
        return

    console.print("[bold]Available Go versions[/bold]")
    print_available_table(VersionManager.categorize(releases))


@app.command()
def current(ctx: typer.Context):
    """Show the active Go version."""
    config = _load_config(ctx)
    manager, base_logger = _create_manager(ctx, config)
    try:
        version_id = manager.current()
    finally:
        base_logger.close()

    if version_id == SYSTEM_VERSION:
        console.print("Using system Go installation")
    elif version_id:
        console.print(f"Current Go version: [bold green]{version_id}[/bold green]")
    else:
        console.print(
            "[yellow]No Go version is active. Use 'gvm use <version>'.[/yellow]"
        )
        raise typer.Exit(code=1)


@app.command()
def config(
    ctx: typer.Context,
    init: bool = typer.Option(
        False, "--init", help="Write a settings file populated with defaults."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing settings file."
    ),
):
    """Show or initialize the settings file."""
    config_manager = ConfigManager.default()
    settings_path = config_manager.settings_path

    if init:
        if settings_path.exists() and not force:
            if not typer.confirm("Settings file already exists. Overwrite it?"):
                raise typer.Abort()
        config_manager.save_settings({})
        console.print(
            f"[bold green]✓ Settings saved to '{settings_path}'[/bold green]"
        )
        return

    effective = _load_config(ctx)
    settings = {
        key: getattr(effective, key) for key in sorted(ManagerConfig.get_ini_keys())
    }
    print_config(settings_path, settings)
