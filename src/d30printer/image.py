"""
Image Processing for D30 Printer.

Converts rasters to the 1-bit, MSB-first, row-major bitmap the printer
expects. The raster must already be in feed orientation: the print head
runs across the label's short side, so an on-screen label preview is
rotated 90 degrees before packing.
"""

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Union

from PIL import Image

from .commands import round_half_up

# Image size limits to prevent memory exhaustion from malicious/malformed images
MAX_IMAGE_DIMENSION = 10000  # Maximum width or height in pixels
MAX_IMAGE_PIXELS = 10_000_000  # Maximum total pixels (10 megapixels)

DEFAULT_THRESHOLD = 128


class ImageSizeError(ValueError):
    """Image dimensions exceed safety limits."""

    pass


@dataclass(frozen=True)
class PackedBitmap:
    """1 bit per pixel raster, MSB is the leftmost pixel, 1 = dark."""

    data: bytes
    width: int
    height: int
    bytes_per_row: int

    def __len__(self) -> int:
        return len(self.data)


def pack_bitmap(image: Image.Image, threshold: int = DEFAULT_THRESHOLD) -> PackedBitmap:
    """
    Pack an image into a 1-bit bitmap.

    A pixel is dark when the mean of its R, G and B channels is below
    threshold. Alpha is ignored. Widths that are not a multiple of 8 are
    padded with white (0) bits.
    """
    if image.mode != "RGB":
        image = image.convert("RGB")

    width, height = image.size
    bytes_per_row = (width + 7) // 8
    raw = image.tobytes()
    limit = threshold * 3

    data = bytearray(bytes_per_row * height)
    for y in range(height):
        src = y * width * 3
        dst = y * bytes_per_row
        for x in range(width):
            i = src + x * 3
            if raw[i] + raw[i + 1] + raw[i + 2] < limit:
                data[dst + (x >> 3)] |= 0x80 >> (x & 7)

    return PackedBitmap(bytes(data), width, height, bytes_per_row)


def feed_size(width_mm: float, height_mm: float, pixels_per_mm: float) -> tuple[int, int]:
    """
    Raster size in feed orientation for a label of the given dimensions.

    The width (print head direction) is rounded up to a whole byte.
    """
    width = round_half_up(width_mm * pixels_per_mm)
    height = round_half_up(height_mm * pixels_per_mm)
    return (width + 7) // 8 * 8, height


class ImageProcessor:
    """Load rasters and turn them into printer bitmaps."""

    def __init__(self, threshold: int = DEFAULT_THRESHOLD):
        """
        Initialize processor.

        Args:
            threshold: Luminance threshold for black/white conversion (0-255)
        """
        if not 0 <= threshold <= 255:
            raise ValueError(f"threshold must be 0-255, got {threshold}")
        self.threshold = threshold

    def load(self, source: Union[str, Path, bytes, Image.Image]) -> Image.Image:
        """
        Load an image from various sources.

        Args:
            source: File path, bytes, or PIL Image

        Returns:
            PIL Image object

        Raises:
            ImageSizeError: If image dimensions exceed safety limits
            ValueError: If source type is unsupported
        """
        if isinstance(source, Image.Image):
            img = source
        elif isinstance(source, (str, Path)):
            img = Image.open(source)
        elif isinstance(source, bytes):
            img = Image.open(BytesIO(source))
        else:
            raise ValueError(f"Unsupported source type: {type(source)}")

        if img.width > MAX_IMAGE_DIMENSION or img.height > MAX_IMAGE_DIMENSION:
            raise ImageSizeError(
                f"Image dimensions ({img.width}x{img.height}) exceed maximum "
                f"({MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION})"
            )
        if img.width * img.height > MAX_IMAGE_PIXELS:
            raise ImageSizeError(
                f"Image pixel count ({img.width * img.height:,}) exceeds "
                f"maximum ({MAX_IMAGE_PIXELS:,})"
            )

        return img

    def to_feed_orientation(self, image: Image.Image) -> Image.Image:
        """
        Rotate a preview-oriented label 90 degrees clockwise and pad its
        width with white up to a multiple of 8.
        """
        if image.mode != "RGB":
            image = image.convert("RGB")

        # PIL rotates counter-clockwise for positive angles
        rotated = image.rotate(-90, expand=True)

        padded_width = (rotated.width + 7) // 8 * 8
        if padded_width != rotated.width:
            canvas = Image.new("RGB", (padded_width, rotated.height), (255, 255, 255))
            canvas.paste(rotated, (0, 0))
            rotated = canvas

        return rotated

    def pack(self, image: Image.Image) -> PackedBitmap:
        """Pack an image using this processor's threshold."""
        return pack_bitmap(image, self.threshold)


def create_test_pattern(width: int = 96, height: int = 320) -> Image.Image:
    """Create a border and diagonals test pattern in feed orientation."""
    img = Image.new("1", (width, height), color=1)  # White background

    for x in range(width):
        img.putpixel((x, 0), 0)
        img.putpixel((x, height - 1), 0)
    for y in range(height):
        img.putpixel((0, y), 0)
        img.putpixel((width - 1, y), 0)

    for i in range(min(width, height)):
        img.putpixel((i, i), 0)
        img.putpixel((width - 1 - i, i), 0)

    return img
