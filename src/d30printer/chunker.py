"""
Block Chunker for D30 Printer.

The firmware addresses at most 255 rows per raster marker and the BLE
characteristic accepts at most 128 bytes per write. Oversized units are
not rejected by the printer; they corrupt or truncate the label, so the
limits are enforced here.
"""

from dataclasses import dataclass
from typing import Iterator

from .commands import D30Commands, MAX_BLOCK_LINES

DEFAULT_PACKET_SIZE = 128


@dataclass(frozen=True)
class Block:
    """One raster marker and the packets carrying its rows."""

    marker: bytes
    start_line: int
    lines: int
    packets: tuple[bytes, ...]

    @property
    def payload(self) -> bytes:
        return b"".join(self.packets)


def iter_packets(data: bytes, packet_size: int = DEFAULT_PACKET_SIZE) -> Iterator[bytes]:
    """Split data into packets of packet_size bytes (the last may be shorter)."""
    if packet_size < 1:
        raise ValueError(f"packet_size must be positive, got {packet_size}")
    for i in range(0, len(data), packet_size):
        yield data[i:i + packet_size]


def chunk_bitmap(
    data: bytes,
    bytes_per_row: int,
    total_lines: int,
    max_lines_per_block: int = MAX_BLOCK_LINES,
    max_packet_bytes: int = DEFAULT_PACKET_SIZE,
) -> Iterator[Block]:
    """
    Split a packed bitmap into blocks of at most max_lines_per_block rows.

    Args:
        data: Packed bitmap, row-major
        bytes_per_row: Bytes in one row
        total_lines: Number of rows in data
        max_lines_per_block: Row limit per marker (1-255)
        max_packet_bytes: Byte limit per transport write

    Yields:
        Block objects in transmission order

    Raises:
        ValueError: If a limit is out of range or data is too short
    """
    if not 1 <= max_lines_per_block <= MAX_BLOCK_LINES:
        raise ValueError(
            f"max_lines_per_block must be 1-{MAX_BLOCK_LINES}, got {max_lines_per_block}"
        )
    if max_packet_bytes < 1:
        raise ValueError(f"max_packet_bytes must be positive, got {max_packet_bytes}")
    if len(data) < bytes_per_row * total_lines:
        raise ValueError(
            f"Bitmap has {len(data)} bytes, expected {bytes_per_row * total_lines}"
        )

    line = 0
    while line < total_lines:
        lines = min(total_lines - line, max_lines_per_block)
        start = line * bytes_per_row
        block_data = data[start:start + lines * bytes_per_row]

        yield Block(
            marker=D30Commands.block_marker(bytes_per_row, lines),
            start_line=line,
            lines=lines,
            packets=tuple(iter_packets(block_data, max_packet_bytes)),
        )
        line += lines
