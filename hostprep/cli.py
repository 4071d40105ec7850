from __future__ import annotations

import logging
import os

import typer
from rich.console import Console

from .config import Config
from .hook import ConsoleHook
from .platform import detect_platform
from .provisioner import Provisioner
from .service import invoking_home

LOG_LEVEL_ENV_VAR = "HOSTPREP_LOG_LEVEL"

app = typer.Typer(
    name="hostprep",
    help="Install prerequisites, build the project and register it as a background service.",
    add_completion=False,
)

console = Console()


def _configure_logging() -> None:
    log_level = os.getenv(LOG_LEVEL_ENV_VAR, "WARNING")
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(name)s: %(message)s",
    )


def cmd_provision() -> int:
    _configure_logging()
    try:
        config = Config(home=invoking_home())
    except RuntimeError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    platform = detect_platform()
    console.print(f"Detected platform: [bold]{platform.value}[/bold]")
    provisioner = Provisioner(config, platform, hook=ConsoleHook(console))
    results = provisioner.execute()
    return Provisioner.exit_code(results)


@app.command()
def provision() -> None:
    """Provision this machine (no options; settings come from ~/.hostprep.yaml)."""
    code = cmd_provision()
    raise typer.Exit(code)


def main(argv: list[str] | None = None) -> int:
    try:
        rc = app(args=argv, prog_name="hostprep", standalone_mode=False)
        return int(rc or 0)
    except typer.Exit as e:
        return int(e.exit_code or 0)
    except SystemExit as e:
        return int(e.code or 0)
    except Exception as e:  # noqa: BLE001
        typer.echo(f"Unexpected error: {e}", err=True)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
