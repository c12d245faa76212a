"""Expiry CLI command."""

import json

import typer

from photobooth.config import get_settings
from photobooth.errors import ValidationError
from photobooth.expiry import ExpiryCalculator, Timestamp


def _coerce(value: str) -> Timestamp:
    # Bare digits are epoch milliseconds
    return int(value) if value.isdigit() else value


def expiry_command(
    created_at: str = typer.Argument(
        ...,
        help="Creation time as ISO-8601 or epoch milliseconds",
    ),
    output_json: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output in JSON format",
    ),
) -> None:
    """Show how long a shared photo has left before it expires."""
    settings = get_settings()
    calculator = ExpiryCalculator(window=settings.expiry_window)

    try:
        info = calculator.compute(_coerce(created_at))
    except ValidationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)

    if output_json:
        typer.echo(
            json.dumps(
                {
                    "is_expired": info.is_expired,
                    "remaining_ms": info.remaining_ms,
                    "remaining_formatted": info.remaining_formatted,
                    "expires_at": info.expires_at.isoformat(),
                }
            )
        )
    elif info.is_expired:
        typer.echo(f"Expired at {info.expires_at.isoformat()}")
    else:
        typer.echo(
            f"Expires in {info.remaining_formatted} (at {info.expires_at.isoformat()})"
        )
