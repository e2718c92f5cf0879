"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from gvm_cli.models.catalog import ReleaseEntry
from gvm_cli.models.state import InstallationRecord, InstallResult
from gvm_cli.utils.formatting import format_duration, format_size, format_timestamp

# Row caps for the `available` table: the current column shows fewer rows.
MAX_CURRENT_ROWS = 15
MAX_OTHER_ROWS = 20

_COLUMNS = (
    ("current", "CURRENT", "cyan"),
    ("lts", "LTS", "green"),
    ("old_stable", "OLD STABLE", "blue"),
    ("old_unstable", "OLD UNSTABLE", "yellow"),
)


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "NetworkError": [
            "• Check your internet connection.",
            "• Try another mirror with `--mirror` or the GVM_DL_MIRROR variable.",
            "• Increase `request_timeout` in settings.ini for slow links.",
        ],
        "CatalogParseError": [
            "• The mirror returned something that is not a release list.",
            "• Check that the mirror URL points at a compatible download site.",
        ],
        "UnknownVersionError": [
            "• Run `gvm available` to see published versions.",
            "• Version ids look like `go1.21.5`; `1.21.5` and `latest` also work.",
        ],
        "VersionNotFoundError": [
            "• The catalog did not list a stable release.",
            "• Run `gvm available` to inspect the catalog.",
        ],
        "NoSuitableArtifactError": [
            "• This version has no package for your operating system or CPU.",
            "• Pick a newer version from `gvm available`.",
        ],
        "AlreadyInstalledError": [
            "• Run `gvm use <version>` to activate it.",
            "• Run `gvm uninstall <version>` first to reinstall.",
        ],
        "NotInstalledError": [
            "• Run `gvm list` to see installed versions.",
            "• Run `gvm install <version>` to install it.",
        ],
        "ActiveVersionInUseError": [
            "• Switch to another version with `gvm use <version>` first.",
        ],
        "DigestMismatchError": [
            "• The download was corrupted or tampered with; nothing was installed.",
            "• Retry, or try another mirror with `--mirror`.",
        ],
        "ArchiveFormatError": [
            "• The package is damaged or in a format gvm cannot unpack.",
            "• Retry the install; a truncated download produces this error too.",
        ],
        "InstallValidationError": [
            "• The unpacked files do not match the requested version.",
            "• The mirror may serve the wrong package; try another one.",
        ],
        "FileSystemError": [
            "• Check free disk space and permissions of the gvm directory.",
            "• Set GVM_HOME to relocate gvm to a writable location.",
        ],
        "StateStoreError": [
            "• The state file may be corrupt. Inspect ~/.gvm/config.json.",
        ],
        "ConfigurationError": [
            "• Fix the reported value in ~/.gvm/settings.ini.",
            "• Run `gvm config --init` to write a fresh settings file.",
        ],
        "ShellIntegrationError": [
            "• Add the shims directory to PATH in your shell profile manually.",
            "• Set `shell_integration = false` in settings.ini to skip this step.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(settings_path: Path, settings: dict[str, Any]):
    """Displays the effective settings."""
    console = Console()
    content = ""
    for key, value in settings.items():
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip() or "[dim](defaults)[/dim]",
            title=f"Settings ([dim]{settings_path}[/dim])",
            border_style="cyan",
        )
    )


def print_installed(
    records: list[InstallationRecord],
    arch: str,
    system_version: str | None = None,
    system_active: bool = False,
):
    """Lists installed versions, marking the active one with '*'."""
    console = Console()
    if not records and not system_version:
        console.print(
            "[yellow]No versions installed. Use 'gvm install <version>' to "
            "install one.[/yellow]"
        )
        return

    entries: list[tuple[str, bool, str]] = [
        (r.version_id, r.is_active, format_timestamp(r.installed_at))
        for r in records
    ]
    if system_version:
        entry = (system_version, system_active, "system")
        if system_active:
            entries.insert(0, entry)
        else:
            entries.append(entry)

    for version_id, active, detail in entries:
        if active:
            console.print(
                f"[bold green]* {version_id}[/bold green] "
                f"[dim](currently using {arch} executable)[/dim]"
            )
        else:
            console.print(f"  {version_id} [dim]{detail}[/dim]")


def print_available_table(groups: dict[str, list[ReleaseEntry]]):
    """Prints releases in four side-by-side columns."""
    console = Console()
    table = Table(box=box.ASCII, show_lines=False)
    columns: list[list[str]] = []
    for key, header, color in _COLUMNS:
        table.add_column(header, style=color, header_style=f"bold {color}", min_width=16)
        cap = MAX_CURRENT_ROWS if key == "current" else MAX_OTHER_ROWS
        columns.append([r.version_id for r in groups.get(key, [])[:cap]])

    for i in range(max((len(c) for c in columns), default=0)):
        table.add_row(*(c[i] if i < len(c) else "" for c in columns))

    console.print(table)


def print_install_summary(result: InstallResult, duration_s: float):
    """Displays the outcome of an install."""
    console = Console()

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white", justify="left")

    table.add_row("Version:", f"[bold green]{result.record.version_id}[/bold green]")
    table.add_row("Location:", f"[dim]{result.record.install_path}[/dim]")
    table.add_row("Package:", result.artifact.filename)
    if result.artifact.size_bytes:
        table.add_row("Size:", f"[cyan]{format_size(result.artifact.size_bytes)}[/cyan]")
    table.add_row(
        "Checksum:",
        "[green]✓ SHA-256 verified[/green]"
        if result.verified
        else "[yellow]⚠ not published, unverified[/yellow]",
    )
    table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    console.print(
        Panel(
            table,
            title="[bold]Install Complete[/bold]",
            border_style="green" if result.verified else "yellow",
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print(
        f"Run [cyan]gvm use {result.record.version_id}[/cyan] to activate it."
    )
