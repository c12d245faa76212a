"""Photobooth CLI - command-line interface for the capture queue."""

import typer

from photobooth import __version__
from photobooth.cli_commands import (
    capture_command,
    expiry_command,
    run_command,
    status_command,
    sync_command,
)

app = typer.Typer(
    name="photobooth",
    help="Photobooth - keep captures safe on the device and share them when online.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"photobooth {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Photobooth - offline-first photo capture and sync."""
    pass


app.command(name="status")(status_command)
app.command(name="sync")(sync_command)
app.command(name="capture")(capture_command)
app.command(name="run")(run_command)
app.command(name="expiry")(expiry_command)


if __name__ == "__main__":
    app()
