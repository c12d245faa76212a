"""Photo queue CLI commands: status, sync, capture, run."""

import asyncio
import io
import json
import signal
from pathlib import Path

import typer
from PIL import Image, UnidentifiedImageError

from photobooth.booth import PhotoBooth
from photobooth.config import get_settings
from photobooth.errors import StorageError
from photobooth.logging import setup_logging


def _output(data: dict, as_json: bool, human_message: str) -> None:
    """Output data as JSON or human-readable format."""
    if as_json:
        typer.echo(json.dumps(data))
    else:
        typer.echo(human_message)


def _open_booth() -> PhotoBooth:
    settings = get_settings()
    try:
        return PhotoBooth(settings)
    except StorageError as e:
        typer.echo(f"Cannot open photo store: {e}", err=True)
        raise typer.Exit(1)


def _load_png(path: Path) -> tuple[bytes, int, int]:
    """Read an image file and return PNG bytes with its dimensions."""
    with Image.open(path) as img:
        width, height = img.size
        if img.format == "PNG":
            return path.read_bytes(), width, height
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue(), width, height


def status_command(
    output_json: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output in JSON format",
    ),
) -> None:
    """Show local queue status and photos stuck after too many retries."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    async def _status() -> tuple[dict, list]:
        async with _open_booth() as booth:
            return await booth.get_status(), await booth.list_stuck()

    try:
        status, stuck = asyncio.run(_status())
    except StorageError as e:
        typer.echo(f"Photo store error: {e}", err=True)
        raise typer.Exit(1)

    queue = status["queue"]
    if output_json:
        status["stuck"] = [
            {"photo_id": s.photo_id, "retry_count": s.retry_count} for s in stuck
        ]
        typer.echo(json.dumps(status))
        return

    typer.echo("")
    typer.echo("Photobooth Queue Status")
    typer.echo("-----------------------")
    typer.echo(f"Pending: {queue['pending']}")
    typer.echo(f"Synced: {queue['synced']}")
    typer.echo(f"Total: {queue['total']}")
    if stuck:
        typer.echo(f"Stuck: {len(stuck)} (retry limit {status['max_retry_count']})")
        for item in stuck:
            typer.echo(f"  {item}")
    typer.echo("")


def sync_command(
    output_json: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output in JSON format",
    ),
) -> None:
    """Run one sync pass over pending photos."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    async def _sync():
        async with _open_booth() as booth:
            return await booth.run_sync()

    try:
        report = asyncio.run(_sync())
    except StorageError as e:
        typer.echo(f"Photo store error: {e}", err=True)
        raise typer.Exit(1)

    _output(
        {
            "attempted": report.attempted,
            "synced": report.synced,
            "failed": report.failed,
            "exhausted": report.exhausted,
            "deferred": report.deferred,
        },
        output_json,
        f"Synced {report.synced} of {report.attempted} attempted "
        f"({report.failed} failed, {report.exhausted} stuck, {report.deferred} deferred).",
    )


def capture_command(
    path: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="Image file to enqueue",
    ),
    layout: str = typer.Option(
        "default",
        "--layout",
        "-l",
        help="Layout template name recorded with the photo",
    ),
    output_json: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output in JSON format",
    ),
) -> None:
    """Save an image locally and try to share it immediately."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    try:
        image_data, width, height = _load_png(path)
    except (UnidentifiedImageError, OSError) as e:
        typer.echo(f"Cannot read image {path}: {e}", err=True)
        raise typer.Exit(1)

    async def _capture():
        async with _open_booth() as booth:
            receipt = await booth.enqueue_capture(image_data, width, height, layout)
            return receipt, booth.client.get_public_url(f"{receipt.photo_id}.png")

    try:
        receipt, url = asyncio.run(_capture())
    except StorageError as e:
        _output(
            {"status": "error", "message": str(e)},
            output_json,
            f"Photo could NOT be saved: {e}",
        )
        raise typer.Exit(1)

    if receipt.synced:
        _output(
            {"status": "synced", "photo_id": receipt.photo_id, "url": url},
            output_json,
            f"Photo {receipt.photo_id} shared: {url}",
        )
    else:
        _output(
            {"status": "queued", "photo_id": receipt.photo_id, "error": str(receipt.error)},
            output_json,
            f"Photo {receipt.photo_id} saved to device, will sync later ({receipt.error}).",
        )


def run_command() -> None:
    """Run the background sync worker until interrupted."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    async def _run() -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        async with _open_booth() as booth:
            await booth.start()
            typer.echo(
                f"Sync worker running every {settings.sync_interval:g}s. Press Ctrl+C to stop."
            )
            await stop.wait()
            typer.echo("\nStopping sync worker...")

    asyncio.run(_run())
