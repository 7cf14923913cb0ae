"""Phomemo D30 Label Printer Driver for Linux/macOS/Windows."""

__version__ = "0.1.0"

from .printer import D30Printer, PrintJobParameters, PrinterDebugInfo
from .errors import (
    PrinterError,
    UnsupportedPlatformError,
    ConnectionError,
    DeviceNotFoundError,
    HandshakeError,
    NotConnectedError,
    PrintError,
    ImageError,
)
from .image import ImageProcessor, ImageSizeError, PackedBitmap, pack_bitmap
from .connection import BLEConnection, PrinterInfo
from .commands import D30Commands, FooterVariant, MediaType, ProtocolRevision
from .chunker import Block, chunk_bitmap
from .status import PrinterStatus, StatusTracker

__all__ = [
    "D30Printer",
    "PrintJobParameters",
    "PrinterDebugInfo",
    "PrinterError",
    "UnsupportedPlatformError",
    "ConnectionError",
    "DeviceNotFoundError",
    "HandshakeError",
    "NotConnectedError",
    "PrintError",
    "ImageError",
    "ImageProcessor",
    "ImageSizeError",
    "PackedBitmap",
    "pack_bitmap",
    "BLEConnection",
    "PrinterInfo",
    "D30Commands",
    "FooterVariant",
    "MediaType",
    "ProtocolRevision",
    "Block",
    "chunk_bitmap",
    "PrinterStatus",
    "StatusTracker",
]
