"""
High-Level D30 Printer Interface.

Provides a simple API for printing labels on the Phomemo D30 printer.

A print job is a strictly ordered sequence of acknowledged BLE writes:

    header -> settle -> (marker -> settle -> packets...) * n -> settle -> footer

The printer has no flow control besides the write acknowledgement, so
every write is awaited before the next one starts. One job at a time per
instance: concurrent print calls on the same printer interleave their
writes and are a caller error.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from PIL import Image

from .chunker import DEFAULT_PACKET_SIZE, Block, chunk_bitmap
from .commands import (
    D30Commands,
    FooterVariant,
    MediaType,
    ProtocolRevision,
)
from .connection import BLEConnection, PrinterInfo
from .errors import (
    ConnectionError,
    DeviceNotFoundError,
    ImageError,
    NotConnectedError,
    PrintError,
    UnsupportedPlatformError,
)
from .image import ImageProcessor, PackedBitmap, create_test_pattern, feed_size
from .status import PrinterStatus, StatusCallback, StatusTracker

ImageSource = Union[str, Path, bytes, Image.Image]


@dataclass
class PrintJobParameters:
    """Geometry and protocol options for one print job.

    Attributes:
        width_mm: Label width across the print head
        height_mm: Label length along the feed direction
        pixels_per_mm: Calibration factor (8 = ~203 DPI)
        footer: Footer sequence terminating the job
        media_type: Label stock, encoded in the M110 header
        extra_feed_mm: Blank feed after the label (STANDARD footer only)
        revision: Header/footer protocol generation
    """
    width_mm: float
    height_mm: float
    pixels_per_mm: float = 8.0
    footer: FooterVariant = FooterVariant.STANDARD
    media_type: MediaType = MediaType.GAPS
    extra_feed_mm: float = 0.0
    revision: ProtocolRevision = ProtocolRevision.M110

    def __post_init__(self):
        if self.width_mm <= 0 or self.height_mm <= 0:
            raise ValueError(
                f"Label dimensions must be positive, got {self.width_mm}x{self.height_mm} mm"
            )
        if self.pixels_per_mm <= 0:
            raise ValueError(f"pixels_per_mm must be positive, got {self.pixels_per_mm}")
        if self.extra_feed_mm < 0:
            raise ValueError(f"extra_feed_mm must not be negative, got {self.extra_feed_mm}")
        self.footer = FooterVariant(self.footer)
        self.media_type = MediaType(self.media_type)
        self.revision = ProtocolRevision(self.revision)

    def raster_size(self) -> tuple[int, int]:
        """Feed-orientation raster size in pixels for this label."""
        return feed_size(self.width_mm, self.height_mm, self.pixels_per_mm)

    def header(self) -> bytes:
        return D30Commands.header(self.media_type, self.revision)

    def footer_bytes(self) -> bytes:
        return D30Commands.footer(
            self.footer, self.extra_feed_mm, self.pixels_per_mm, self.revision
        )


@dataclass(frozen=True)
class PrinterDebugInfo:
    """Snapshot of what was sent for the last job. Diagnostic only."""
    canvas_width: int
    canvas_height: int
    bytes_per_row: int
    total_bytes: int
    block_count: int
    width_mm: float
    height_mm: float
    pixels_per_mm: float
    header_bytes: str
    footer_bytes: str


class D30Printer:
    """
    High-level interface to the Phomemo D30 label printer.

    Status changes are published to every subscribed callback.
    """

    DEFAULT_PIXELS_PER_MM = 8.0

    # Empirical settle times; the firmware drops data without them
    HEADER_SETTLE_MS = 50
    MARKER_SETTLE_MS = 30
    FOOTER_SETTLE_MS = 50

    def __init__(
        self,
        pixels_per_mm: float = DEFAULT_PIXELS_PER_MM,
        packet_size: int = DEFAULT_PACKET_SIZE,
        header_settle_ms: float = HEADER_SETTLE_MS,
        marker_settle_ms: float = MARKER_SETTLE_MS,
        footer_settle_ms: float = FOOTER_SETTLE_MS,
        threshold: int = 128,
    ):
        """
        Initialize printer interface.

        Args:
            pixels_per_mm: Default calibration for jobs that don't set one
            packet_size: Maximum bytes per BLE write (at most 128)
            header_settle_ms: Pause after the header
            marker_settle_ms: Pause after each block marker
            footer_settle_ms: Pause before the footer
            threshold: Luminance threshold for dark pixels
        """
        if not 1 <= packet_size <= DEFAULT_PACKET_SIZE:
            raise ValueError(f"packet_size must be 1-{DEFAULT_PACKET_SIZE}, got {packet_size}")

        self.connection = BLEConnection()
        self.processor = ImageProcessor(threshold)
        self.pixels_per_mm = pixels_per_mm
        self.packet_size = packet_size
        self.header_settle_ms = header_settle_ms
        self.marker_settle_ms = marker_settle_ms
        self.footer_settle_ms = footer_settle_ms
        self.last_debug_info: Optional[PrinterDebugInfo] = None
        self.lines_sent = 0
        self._status = StatusTracker()
        self._debug = False

    def set_debug(self, enabled: bool):
        """Enable/disable debug output."""
        self._debug = enabled

    def _log(self, message: str):
        """Print debug message if enabled."""
        if self._debug:
            print(f"[D30] {message}")

    # --- Status ---

    @property
    def status(self) -> PrinterStatus:
        return self._status.status

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """Register a status observer; returns an unsubscribe callable."""
        return self._status.subscribe(callback)

    def _set_status(self, status: PrinterStatus):
        self._log(f"Status: {status.value}")
        self._status.set(status)

    @property
    def is_connected(self) -> bool:
        """Check if currently connected to a printer."""
        return self.status in (PrinterStatus.CONNECTED, PrinterStatus.PRINTING)

    @staticmethod
    def is_supported() -> bool:
        """Check whether BLE is available in this runtime."""
        return BLEConnection.is_supported()

    # --- Connection ---

    @classmethod
    async def scan(cls, timeout: float = 10.0) -> list[PrinterInfo]:
        """Scan for available D30 printers."""
        return await BLEConnection.scan(timeout)

    async def connect(self, address: Optional[str] = None, timeout: float = 10.0):
        """
        Connect to a printer.

        Args:
            address: Bluetooth address; if omitted, scans and picks the
                strongest matching printer
            timeout: Scan timeout in seconds

        Raises:
            UnsupportedPlatformError: If BLE is unavailable
            DeviceNotFoundError: If no address was given and no printer found
            HandshakeError: If the printer lacks the vendor characteristic
            ConnectionError: If a connect or print is already in progress
                (the current link is left untouched), or for any other
                connection failure
        """
        if not self.is_supported():
            raise UnsupportedPlatformError("Bluetooth LE is not supported on this platform")
        if self.status in (PrinterStatus.CONNECTING, PrinterStatus.PRINTING):
            raise ConnectionError(f"Cannot connect while {self.status.value}")
        if self.status is PrinterStatus.CONNECTED:
            self._log("Already connected, closing the current link first")
            await self.disconnect()

        self._set_status(PrinterStatus.CONNECTING)

        try:
            if address is None:
                self._log(f"Scanning for printers ({timeout}s)...")
                printers = await self.scan(timeout)
                if not printers:
                    raise DeviceNotFoundError("No printer found")
                address = printers[0].address
                self._log(f"Selected {printers[0]}")

            self._log(f"Connecting to {address}...")
            await self.connection.connect(address)
        except ConnectionError:
            self._set_status(PrinterStatus.DISCONNECTED)
            raise
        except Exception as e:
            self._set_status(PrinterStatus.DISCONNECTED)
            raise ConnectionError(f"Failed to connect: {e}") from e

        self._set_status(PrinterStatus.CONNECTED)

    async def disconnect(self):
        """Disconnect from the printer. Always leaves the printer DISCONNECTED."""
        try:
            await self.connection.disconnect()
        finally:
            self._set_status(PrinterStatus.DISCONNECTED)
        self._log("Disconnected")

    # --- Printing ---

    def load_image(self, image: ImageSource) -> Image.Image:
        """
        Load and validate an image for printing.

        Raises:
            ImageError: If image cannot be loaded or is invalid
        """
        if isinstance(image, (str, Path)) and not Path(image).exists():
            raise ImageError(f"Image file not found: {image}")
        try:
            return self.processor.load(image)
        except ValueError as e:
            raise ImageError(str(e)) from e
        except OSError as e:
            raise ImageError(f"Failed to load image: {e}") from e

    def _encode(self, bitmap: PackedBitmap, params: PrintJobParameters):
        header = params.header()
        footer = params.footer_bytes()
        blocks = list(chunk_bitmap(
            bitmap.data,
            bitmap.bytes_per_row,
            bitmap.height,
            max_packet_bytes=self.packet_size,
        ))
        return header, blocks, footer

    def build_frame(self, image: ImageSource, params: PrintJobParameters) -> list[bytes]:
        """
        Encode a job without sending it.

        Returns:
            The writes print_job would perform, in order
        """
        bitmap = self.processor.pack(self.load_image(image))
        header, blocks, footer = self._encode(bitmap, params)

        writes = [header]
        for block in blocks:
            writes.append(block.marker)
            writes.extend(block.packets)
        if footer:
            writes.append(footer)
        return writes

    async def _settle(self, delay_ms: float):
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000.0)

    async def _send_block(self, block: Block):
        await self.connection.write(block.marker)
        await self._settle(self.marker_settle_ms)
        for packet in block.packets:
            await self.connection.write(packet)
        self.lines_sent += block.lines

    async def print_job(self, image: ImageSource, params: PrintJobParameters) -> PrinterDebugInfo:
        """
        Print a raster that is already in feed orientation.

        Args:
            image: Image source (path, bytes, or PIL Image)
            params: Job geometry and protocol options

        Returns:
            Debug info describing what was sent

        Raises:
            NotConnectedError: If not connected; nothing is written
            ImageError: If image cannot be loaded
            PrintError: If any write fails; lines_sent tells how far it got
        """
        if self.status is PrinterStatus.PRINTING:
            raise PrintError("A print job is already in progress")
        if self.status is not PrinterStatus.CONNECTED:
            raise NotConnectedError("Not connected to printer")

        img = self.load_image(image)
        self._log(f"Image size: {img.width}x{img.height} pixels")

        bitmap = self.processor.pack(img)
        header, blocks, footer = self._encode(bitmap, params)

        debug_info = PrinterDebugInfo(
            canvas_width=bitmap.width,
            canvas_height=bitmap.height,
            bytes_per_row=bitmap.bytes_per_row,
            total_bytes=len(bitmap),
            block_count=len(blocks),
            width_mm=params.width_mm,
            height_mm=params.height_mm,
            pixels_per_mm=params.pixels_per_mm,
            header_bytes=D30Commands.hex_dump(header),
            footer_bytes=D30Commands.hex_dump(footer),
        )
        self._log(f"Print debug info: {debug_info}")

        self.lines_sent = 0
        self._set_status(PrinterStatus.PRINTING)

        try:
            await self.connection.write(header)
            await self._settle(self.header_settle_ms)

            for index, block in enumerate(blocks, 1):
                self._log(
                    f"Block {index}/{len(blocks)}: {block.lines} lines, "
                    f"{len(block.packets)} packets"
                )
                await self._send_block(block)

            await self._settle(self.footer_settle_ms)
            if footer:
                await self.connection.write(footer)
        except Exception as e:
            self._log(f"Print failed after {self.lines_sent} lines: {e}")
            raise PrintError(f"Print failed: {e}", lines_sent=self.lines_sent) from e
        finally:
            self._set_status(PrinterStatus.CONNECTED)

        self._log("Print complete")
        self.last_debug_info = debug_info
        return debug_info

    async def print_image(
        self,
        image: ImageSource,
        width_mm: float,
        height_mm: float,
        footer: FooterVariant = FooterVariant.STANDARD,
        media_type: MediaType = MediaType.GAPS,
        extra_feed_mm: float = 0.0,
        pixels_per_mm: Optional[float] = None,
        revision: ProtocolRevision = ProtocolRevision.M110,
    ) -> PrinterDebugInfo:
        """
        Print a raster that is already in feed orientation.

        pixels_per_mm defaults to this printer's calibration. See print_job
        for errors.
        """
        params = PrintJobParameters(
            width_mm=width_mm,
            height_mm=height_mm,
            pixels_per_mm=pixels_per_mm if pixels_per_mm is not None else self.pixels_per_mm,
            footer=footer,
            media_type=media_type,
            extra_feed_mm=extra_feed_mm,
            revision=revision,
        )
        return await self.print_job(image, params)

    async def print_test_pattern(
        self,
        width_mm: float = 12.0,
        height_mm: float = 40.0,
        **kwargs,
    ) -> PrinterDebugInfo:
        """Print a border and diagonals pattern sized for the label."""
        self._log("Creating test pattern...")
        pixels_per_mm = kwargs.pop("pixels_per_mm", None) or self.pixels_per_mm
        params = PrintJobParameters(width_mm, height_mm, pixels_per_mm=pixels_per_mm, **kwargs)
        img = create_test_pattern(*params.raster_size())
        return await self.print_job(img, params)

