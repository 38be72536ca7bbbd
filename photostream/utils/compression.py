"""Progressive JPEG compression for size-limited uploads."""

import logging
from io import BytesIO
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

START_QUALITY = 85
START_DIMENSION = 1920
QUALITY_STEP = 15
FINE_QUALITY_STEP = 5
COARSE_QUALITY_FLOOR = 40
RESIZE_QUALITY = 30
MIN_QUALITY = 20
MIN_DIMENSION = 800
RESIZE_FACTOR = 0.8


class CompressionError(Exception):
    """Raised when an image cannot be decoded or encoded."""
    pass


class CompressionBudgetExceeded(CompressionError):
    """Raised when the smallest allowed encoding is still over budget.

    Attributes:
        budget: Target size in bytes
        size: Size of the smallest encoding produced
    """

    def __init__(self, budget: int, size: int) -> None:
        super().__init__(
            f"Unable to compress image below {budget} bytes "
            f"(smallest attempt: {size} bytes)"
        )
        self.budget = budget
        self.size = size


def upload_budget(max_upload_bytes: int, encoding_overhead: float = 0.75) -> int:
    """Return the raw byte budget for an upload limit.

    Base64 transport grows the payload by roughly a third, so the raw
    bytes must stay under about 75% of the nominal limit.

    Args:
        max_upload_bytes: Nominal upload limit
        encoding_overhead: Fraction of the limit available to raw bytes

    Returns:
        Byte budget for the compressed image
    """
    return int(max_upload_bytes * encoding_overhead)


class ImageCompressor:
    """Re-encodes images as JPEG until they fit a byte budget.

    Quality is reduced first, then the image is downscaled, then quality is
    trimmed in small steps. Framing is preserved for as long as possible.

    Attributes:
        budget: Maximum size in bytes of the returned image
    """

    def __init__(self, budget: int) -> None:
        if budget <= 0:
            raise ValueError(f"Compression budget must be positive: {budget}")
        self.budget = budget

    @staticmethod
    def next_step(quality: int, dimension: int) -> Tuple[int, int]:
        """Return the next (quality, dimension) pair to try."""
        if quality > COARSE_QUALITY_FLOOR:
            return quality - QUALITY_STEP, dimension
        if dimension > MIN_DIMENSION:
            return max(quality, RESIZE_QUALITY), int(dimension * RESIZE_FACTOR)
        return quality - FINE_QUALITY_STEP, dimension

    @staticmethod
    def at_floor(quality: int, dimension: int) -> bool:
        """Whether no further reduction is allowed."""
        return quality <= MIN_QUALITY and dimension <= MIN_DIMENSION

    @staticmethod
    def _load(data: bytes) -> Image.Image:
        """Decode image bytes into an RGB image with orientation applied."""
        try:
            with Image.open(BytesIO(data)) as img:
                img.load()
                img = ImageOps.exif_transpose(img)
                if img.mode != 'RGB':
                    if img.mode in ('RGBA', 'LA') or 'transparency' in img.info:
                        rgba = img.convert('RGBA')
                        background = Image.new('RGB', rgba.size, (255, 255, 255))
                        background.paste(rgba, mask=rgba.split()[3])
                        img = background
                    else:
                        img = img.convert('RGB')
                return img
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
            raise CompressionError(f"Cannot decode image: {e}") from e

    @staticmethod
    def _encode(img: Image.Image, quality: int, dimension: int) -> bytes:
        """Encode a copy of img fitted inside dimension x dimension."""
        resized = img.copy()
        # thumbnail() keeps the aspect ratio and never enlarges
        resized.thumbnail((dimension, dimension), Image.Resampling.LANCZOS)
        output = BytesIO()
        resized.save(output, format='JPEG', quality=quality, optimize=True)
        return output.getvalue()

    def compress(self, data: bytes) -> bytes:
        """Compress image bytes to fit within the budget.

        Args:
            data: Raw image file bytes

        Returns:
            JPEG bytes no larger than the budget

        Raises:
            CompressionError: If the image cannot be decoded
            CompressionBudgetExceeded: If the floor is reached while still over budget
        """
        img = self._load(data)
        quality, dimension = START_QUALITY, START_DIMENSION

        compressed = self._encode(img, quality, dimension)

        while len(compressed) > self.budget and not self.at_floor(quality, dimension):
            quality, dimension = self.next_step(quality, dimension)
            logger.debug(
                f"Compressed size {len(compressed)} over budget {self.budget}, "
                f"retrying at quality={quality}, max_dimension={dimension}"
            )
            compressed = self._encode(img, quality, dimension)

        if len(compressed) > self.budget:
            raise CompressionBudgetExceeded(self.budget, len(compressed))

        logger.debug(
            f"Compressed image to {len(compressed)} bytes "
            f"(quality={quality}, max_dimension={dimension})"
        )
        return compressed

    def compress_file(self, image_path: str) -> bytes:
        """Read and compress an image file.

        Args:
            image_path: Path to the image

        Returns:
            JPEG bytes no larger than the budget
        """
        with open(image_path, 'rb') as f:
            return self.compress(f.read())
