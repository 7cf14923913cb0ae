"""
ESC/POS-derived Commands for the Phomemo D30 Printer.

The D30 accepts a small, reverse-engineered subset of ESC/POS plus a few
Phomemo vendor codes (0x1F prefix). Every byte below is literal: the firmware
silently ignores or misprints anything that differs.

Command Sources:
- Header/footer (M110/M120/M220 family): phomemo-tools
- Header/footer (M02 family): phomemo-tools M02 filter
- Raster marker: ESC/POS "GS v 0" print raster bit image

Frame layout:
    HEADER
    (GS v 0 marker + raw packed rows) * n   (max 255 rows per marker)
    FOOTER
"""

import math
from enum import Enum, IntEnum


class MediaType(IntEnum):
    """Label stock loaded in the printer (header media code)."""

    GAPS = 0x0A  # Labels separated by gaps
    CONTINUOUS = 0x0B  # Continuous roll
    MARKS = 0x26  # Labels with black marks


class ProtocolRevision(Enum):
    """Header/footer generation understood by the printer firmware."""

    M110 = "m110"  # M110/M120/M220 style: speed + density + media type
    M02 = "m02"  # Older M02 style: initialize + center + vendor init


class FooterVariant(Enum):
    """Trailing command sequence that terminates a print job."""

    STANDARD = "standard"
    NONE = "none"
    RESET = "reset"
    MULTI = "multi"
    SIMPLE = "simple"
    NOFEED = "nofeed"
    FORMFEED = "formfeed"
    CUT = "cut"


# --- Literal command bytes ---

ESC_INIT = b"\x1b\x40"  # ESC @ - initialize / reset
ESC_FEED_0 = b"\x1b\x64\x00"  # ESC d 0 - feed zero lines
FORM_FEED = b"\x0c"  # FF - page eject
GS_CUT = b"\x1d\x56\x00"  # GS V 0 - full cut
GS_RASTER = b"\x1d\x76\x30"  # GS v 0 - print raster bit image
RASTER_MODE_NORMAL = 0x00

SET_SPEED_FAST = b"\x1b\x4e\x0d\x05"
SET_DENSITY_MAX = b"\x1b\x4e\x04\x0f"
SET_MEDIA = b"\x1f\x11"

# Phomemo vendor end codes shared by several footers
END_CODES = b"\x1f\x11\x08\x1f\x11\x0e\x1f\x11\x07\x1f\x11\x09"

# End sequences for the standard footer
M110_END = b"\x1f\xf0\x05\x00\x1f\xf0\x03\x00"
M02_END = b"\x1b\x64\x02\x1b\x64\x02" + END_CODES

M02_HEADER = b"\x1b\x40\x1b\x61\x01\x1f\x11\x02\x04"

MAX_BLOCK_LINES = 255
MAX_BYTES_PER_ROW = 0xFFFF
MAX_FEED_LINES = 255

# Fixed footers; STANDARD is computed per job
FOOTERS = {
    FooterVariant.NONE: b"",
    FooterVariant.RESET: ESC_INIT,
    FooterVariant.MULTI: ESC_FEED_0 + ESC_INIT + FORM_FEED,
    FooterVariant.SIMPLE: ESC_FEED_0,
    FooterVariant.NOFEED: ESC_FEED_0 + END_CODES,
    FooterVariant.FORMFEED: FORM_FEED + END_CODES,
    FooterVariant.CUT: GS_CUT + END_CODES,
}

STANDARD_END = {
    ProtocolRevision.M110: M110_END,
    ProtocolRevision.M02: M02_END,
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (12.5 -> 13)."""
    return math.floor(value + 0.5)


def mm_to_lines(mm: float, pixels_per_mm: float) -> int:
    """Convert a feed distance to raster lines, clamped to a single byte."""
    lines = round_half_up(mm * pixels_per_mm)
    return max(0, min(lines, MAX_FEED_LINES))


class D30Commands:
    """
    Binary command builders for the D30 printer.

    All methods are pure; none of them look at device state.
    """

    @staticmethod
    def header(
        media_type: MediaType = MediaType.GAPS,
        revision: ProtocolRevision = ProtocolRevision.M110,
    ) -> bytes:
        """
        Build the job header.

        M110 sets speed and density to their maximum and appends the
        3-byte media type command. M02 ignores media_type.
        """
        if revision is ProtocolRevision.M02:
            return M02_HEADER
        return SET_SPEED_FAST + SET_DENSITY_MAX + SET_MEDIA + bytes([MediaType(media_type)])

    @staticmethod
    def block_marker(bytes_per_row: int, lines: int) -> bytes:
        """
        GS v 0 raster marker for one block.

        Args:
            bytes_per_row: Row width in bytes (16-bit)
            lines: Number of rows that follow, clamped to 255

        Raises:
            ValueError: If bytes_per_row does not fit the 16-bit field
        """
        if not 0 < bytes_per_row <= MAX_BYTES_PER_ROW:
            raise ValueError(f"bytes_per_row out of range: {bytes_per_row}")
        block_lines = max(0, min(lines, MAX_BLOCK_LINES))
        return (
            GS_RASTER
            + bytes([RASTER_MODE_NORMAL])
            + bytes_per_row.to_bytes(2, "little")
            + block_lines.to_bytes(2, "little")
        )

    @staticmethod
    def feed(lines: int) -> bytes:
        """ESC d n - feed n lines (n clamped to 0-255)."""
        return b"\x1b\x64" + bytes([max(0, min(lines, MAX_FEED_LINES))])

    @staticmethod
    def footer(
        variant: FooterVariant = FooterVariant.STANDARD,
        extra_feed_mm: float = 0.0,
        pixels_per_mm: float = 8.0,
        revision: ProtocolRevision = ProtocolRevision.M110,
    ) -> bytes:
        """
        Build the job footer.

        extra_feed_mm only applies to the STANDARD variant, where it adds
        an ESC d command after the end sequence.
        """
        variant = FooterVariant(variant)
        if variant is not FooterVariant.STANDARD:
            return FOOTERS[variant]

        footer = STANDARD_END[revision]
        if extra_feed_mm > 0:
            footer += D30Commands.feed(mm_to_lines(extra_feed_mm, pixels_per_mm))
        return footer

    @staticmethod
    def hex_dump(data: bytes) -> str:
        """Format bytes as "0x1b 0x4e ..." for debug output."""
        return " ".join(f"0x{b:02x}" for b in data)
