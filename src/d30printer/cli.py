"""
Command-Line Interface for D30 Printer.

Usage:
    d30 scan                 - Scan for printers
    d30 print IMAGE          - Print an image
    d30 test                 - Print test pattern
"""

import asyncio
import re
import sys
from typing import Optional

import click

from .commands import FooterVariant, MediaType, ProtocolRevision
from .errors import (
    ConnectionError,
    ImageError,
    PrintError,
    PrinterError,
    UnsupportedPlatformError,
)
from .printer import D30Printer, PrinterDebugInfo


# Bluetooth MAC address format: XX:XX:XX:XX:XX:XX (hex pairs separated by colons)
BLUETOOTH_MAC_PATTERN = re.compile(r"^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$")

# macOS CoreBluetooth UUID format: XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX
MACOS_UUID_PATTERN = re.compile(
    r"^[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}$"
)


def validate_bluetooth_address(ctx, param, value):
    """Validate Bluetooth address format.

    Accepts:
        - MAC address format: XX:XX:XX:XX:XX:XX (Linux/Windows)
        - UUID format: XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX (macOS)

    Returns:
        The validated address (uppercased for consistency)

    Raises:
        click.BadParameter: If the address format is invalid
    """
    if value is None:
        return None
    if BLUETOOTH_MAC_PATTERN.match(value) or MACOS_UUID_PATTERN.match(value):
        return value.upper()
    raise click.BadParameter(
        f"Invalid Bluetooth address format: '{value}'. "
        "Expected MAC format XX:XX:XX:XX:XX:XX or "
        "macOS UUID format XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX"
    )


async def scan_and_select(timeout: float = 10.0) -> Optional[str]:
    """Scan for printers and let user select one interactively.

    Returns:
        Selected printer address, or None if nothing was selected
    """
    click.echo(f"Scanning for printers ({timeout}s)...")
    printers = await D30Printer.scan(timeout=timeout)

    if not printers:
        click.echo("No printers found.", err=True)
        return None

    if len(printers) == 1:
        printer = printers[0]
        click.echo(f"Found 1 printer: {printer.name} - using automatically")
        return printer.address

    click.echo(f"\nFound {len(printers)} printer(s):\n")
    for i, p in enumerate(printers, 1):
        click.echo(f"  [{i}] {p}")

    click.echo()
    while True:
        try:
            choice = click.prompt(f"Select printer (1-{len(printers)})", type=int)
        except click.Abort:
            return None
        if 1 <= choice <= len(printers):
            return printers[choice - 1].address
        click.echo(f"Please enter a number between 1 and {len(printers)}", err=True)


def format_debug_info(info: PrinterDebugInfo) -> str:
    """Render debug info as aligned key/value lines."""
    return "\n".join([
        f"  Canvas:        {info.canvas_width}x{info.canvas_height} px",
        f"  Bytes per row: {info.bytes_per_row}",
        f"  Total bytes:   {info.total_bytes} ({info.block_count} block(s))",
        f"  Label:         {info.width_mm}x{info.height_mm} mm @ {info.pixels_per_mm} px/mm",
        f"  Header:        {info.header_bytes}",
        f"  Footer:        {info.footer_bytes or '(none)'}",
    ])


def job_options(func):
    """Options shared by commands that print a label."""
    options = [
        click.option(
            "--address",
            "-a",
            callback=validate_bluetooth_address,
            help="Printer Bluetooth address (if omitted, scans and prompts)",
        ),
        click.option("--width-mm", default=12.0, show_default=True,
                     type=click.FloatRange(min=0.0, min_open=True),
                     help="Label width across the print head"),
        click.option("--height-mm", default=40.0, show_default=True,
                     type=click.FloatRange(min=0.0, min_open=True),
                     help="Label length along the feed direction"),
        click.option("--ppm", default=8.0, show_default=True,
                     type=click.FloatRange(min=1.0, max=16.0),
                     help="Pixels per mm calibration"),
        click.option("--footer", default=FooterVariant.STANDARD.value, show_default=True,
                     type=click.Choice([v.value for v in FooterVariant]),
                     help="Footer sequence ending the job"),
        click.option("--media", default="gaps", show_default=True,
                     type=click.Choice([m.name.lower() for m in MediaType]),
                     help="Loaded label stock"),
        click.option("--extra-feed", default=0.0, show_default=True,
                     type=click.FloatRange(min=0.0),
                     help="Extra feed in mm after the label (standard footer)"),
        click.option("--revision", default=ProtocolRevision.M110.value, show_default=True,
                     type=click.Choice([r.value for r in ProtocolRevision]),
                     help="Header/footer protocol generation"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _require_ble_support():
    if not D30Printer.is_supported():
        click.echo("Unsupported platform: Bluetooth LE is not available here", err=True)
        sys.exit(1)


async def _run_job(ctx, address, job):
    """Connect, run job(printer), report errors and always disconnect."""
    _require_ble_support()

    if address is None:
        address = await scan_and_select()
        if address is None:
            sys.exit(1)

    printer = D30Printer()
    printer.set_debug(ctx.obj["debug"])

    click.echo(f"Connecting to {address}...")

    try:
        await printer.connect(address)
        info = await job(printer)
        click.echo("Print complete!")
        click.echo(format_debug_info(info))
    except UnsupportedPlatformError as e:
        click.echo(f"Unsupported platform: {e}", err=True)
        sys.exit(1)
    except ConnectionError as e:
        click.echo(f"Connection error: {e}", err=True)
        sys.exit(1)
    except ImageError as e:
        click.echo(f"Image error: {e}", err=True)
        sys.exit(1)
    except PrintError as e:
        click.echo(f"Print error: {e} (after {e.lines_sent} lines)", err=True)
        sys.exit(1)
    except PrinterError as e:
        click.echo(f"Printer error: {e}", err=True)
        sys.exit(1)
    finally:
        await printer.disconnect()


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug output")
@click.pass_context
def main(ctx, debug):
    """Phomemo D30 Label Printer CLI."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option("--timeout", default=10.0, help="Scan timeout in seconds")
def scan(timeout):
    """Scan for D30 printers."""
    _require_ble_support()

    async def _scan():
        click.echo(f"Scanning for printers ({timeout}s)...")
        printers = await D30Printer.scan(timeout=timeout)

        if not printers:
            click.echo("No printers found.")
            return

        click.echo(f"\nFound {len(printers)} printer(s):\n")
        for p in printers:
            click.echo(f"  {p}")

    asyncio.run(_scan())


@main.command("print")
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@job_options
@click.option(
    "--rotate/--no-rotate",
    default=True,
    help="Rotate the image 90 degrees into feed orientation (default on)",
)
@click.pass_context
def print_image(ctx, image, address, width_mm, height_mm, ppm, footer, media,
                extra_feed, revision, rotate):
    """Print an image file.

    The image is expected in preview orientation (long side horizontal)
    unless --no-rotate is given.
    """

    async def _job(printer: D30Printer):
        img = printer.load_image(image)
        if rotate:
            img = printer.processor.to_feed_orientation(img)
        click.echo(f"Printing {image}...")
        return await printer.print_image(
            img,
            width_mm,
            height_mm,
            footer=FooterVariant(footer),
            media_type=MediaType[media.upper()],
            extra_feed_mm=extra_feed,
            pixels_per_mm=ppm,
            revision=ProtocolRevision(revision),
        )

    asyncio.run(_run_job(ctx, address, _job))


@main.command()
@job_options
@click.pass_context
def test(ctx, address, width_mm, height_mm, ppm, footer, media, extra_feed, revision):
    """Print a test pattern sized for the label."""

    async def _job(printer: D30Printer):
        click.echo("Printing test pattern...")
        return await printer.print_test_pattern(
            width_mm,
            height_mm,
            footer=FooterVariant(footer),
            media_type=MediaType[media.upper()],
            extra_feed_mm=extra_feed,
            pixels_per_mm=ppm,
            revision=ProtocolRevision(revision),
        )

    asyncio.run(_run_job(ctx, address, _job))


if __name__ == "__main__":
    main()
