"""
Entry point for the ``gvm`` console script.

Runs the Typer app and turns any ``GvmError`` that escapes a command into a
rendered error panel and a non-zero exit status.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from gvm_cli.cli.app import app
from gvm_cli.cli.formatters import format_error_with_suggestions
from gvm_cli.exceptions import GvmError


def main() -> None:
    if os.name == "nt":
        # Shim and profile paths may contain non-ASCII user names.
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    log = logging.getLogger("gvm_cli")
    err_console = Console(stderr=True)

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        err_console.print("\n[yellow]Interrupted. Partial downloads were cleaned up.[/yellow]")
        sys.exit(130)
    except GvmError as e:
        err_console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        err_console.print(
            f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}"
        )
        log.debug("Traceback of the unexpected error:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
