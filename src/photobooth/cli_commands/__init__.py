"""CLI command modules for the photobooth device."""

from photobooth.cli_commands.expiry import expiry_command
from photobooth.cli_commands.queue import (
    capture_command,
    run_command,
    status_command,
    sync_command,
)

__all__ = [
    "capture_command",
    "expiry_command",
    "run_command",
    "status_command",
    "sync_command",
]
