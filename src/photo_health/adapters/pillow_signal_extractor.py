"""Pillow-based extraction of image quality signals."""

import asyncio
import io
import math
from dataclasses import dataclass

from PIL import Image, ImageChops, ImageFilter, ImageOps, ImageStat

from photo_health.domain.quality import ImageSignals
from photo_health.services.quality import SignalExtractor, UnreadableImageError

ANALYSIS_SIZE = (512, 512)
SHARPNESS_VARIANCE_SCALE = 1000.0
CONTRAST_STDDEV_SCALE = 64.0
TARGET_BRIGHTNESS = 0.55
NOISE_SCALE = 20.0
EDGE_THRESHOLD = 40

_SOBEL_X = ImageFilter.Kernel(
    (3, 3), [-1, 0, 1, -2, 0, 2, -1, 0, 1], scale=1, offset=128
)
_SOBEL_Y = ImageFilter.Kernel(
    (3, 3), [-1, -2, -1, 0, 0, 0, 1, 2, 1], scale=1, offset=128
)


@dataclass
class PillowSignalExtractor(SignalExtractor):
    """Derives normalized quality signals from pixel statistics.

    Decoding and filtering run in a worker thread. Scale references are not
    detected here; callers supply them through capture metadata.
    """

    analysis_size: tuple[int, int] = ANALYSIS_SIZE

    async def extract(self, image_bytes: bytes) -> ImageSignals:
        """Return quality signals for the given image bytes."""
        return await asyncio.to_thread(self.extract_sync, image_bytes)

    def extract_sync(self, image_bytes: bytes) -> ImageSignals:
        """Blocking variant of ``extract``."""
        image = _open_image(image_bytes)
        width, height = image.size
        sample = image.copy()
        sample.thumbnail(self.analysis_size)
        gray = sample.convert("L")
        edges = _interior(gray.filter(ImageFilter.FIND_EDGES))

        brightness = ImageStat.Stat(gray).mean[0] / 255
        roi_box = _subject_box(edges)
        return ImageSignals(
            sharpness=_clamp(ImageStat.Stat(edges).var[0] / SHARPNESS_VARIANCE_SCALE),
            lighting=_lighting(gray, brightness),
            brightness=_clamp(brightness),
            color_accuracy=_color_accuracy(sample),
            roi_coverage=_box_coverage(roi_box, edges.size),
            noise=_noise(gray),
            stability=_stability(gray),
            composition=_composition(roi_box, edges.size),
            width=width,
            height=height,
        )


def _open_image(image_bytes: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
        return ImageOps.exif_transpose(image).convert("RGB")
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise UnreadableImageError(f"Cannot decode image: {exc}") from exc


def _interior(image: Image.Image) -> Image.Image:
    """Drop the one-pixel border that 3x3 kernels leave unfiltered."""
    width, height = image.size
    if width <= 2 or height <= 2:
        return image
    return image.crop((1, 1, width - 1, height - 1))


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _lighting(gray: Image.Image, brightness: float) -> float:
    """Combine exposure balance with global contrast."""
    exposure = 1 - abs(brightness - TARGET_BRIGHTNESS) / TARGET_BRIGHTNESS
    contrast = ImageStat.Stat(gray).stddev[0] / CONTRAST_STDDEV_SCALE
    return _clamp(0.6 * _clamp(exposure) + 0.4 * _clamp(contrast))


def _color_accuracy(image: Image.Image) -> float:
    """Gray-world estimate of color cast."""
    means = ImageStat.Stat(image).mean
    average = sum(means) / len(means)
    if average == 0:
        return 0.0
    return _clamp(1 - (max(means) - min(means)) / average)


def _noise(gray: Image.Image) -> float:
    """Mean residual left after median filtering."""
    residual = ImageChops.difference(gray, gray.filter(ImageFilter.MedianFilter(3)))
    return _clamp(ImageStat.Stat(residual).mean[0] / NOISE_SCALE)


def _stability(gray: Image.Image) -> float:
    """Balance of horizontal and vertical gradients; shake smears one axis."""
    horizontal = ImageStat.Stat(_interior(gray.filter(_SOBEL_X))).stddev[0]
    vertical = ImageStat.Stat(_interior(gray.filter(_SOBEL_Y))).stddev[0]
    strongest = max(horizontal, vertical)
    if strongest == 0:
        return 0.0
    return _clamp(min(horizontal, vertical) / strongest)


def _subject_box(edges: Image.Image) -> tuple[int, int, int, int] | None:
    mask = edges.point(lambda value: 255 if value > EDGE_THRESHOLD else 0)
    return mask.getbbox()


def _box_coverage(
    box: tuple[int, int, int, int] | None, size: tuple[int, int]
) -> float:
    if box is None:
        return 0.0
    left, top, right, bottom = box
    return _clamp((right - left) * (bottom - top) / (size[0] * size[1]))


def _composition(box: tuple[int, int, int, int] | None, size: tuple[int, int]) -> float:
    """Score how close the subject sits to the frame center."""
    if box is None:
        return 0.0
    left, top, right, bottom = box
    offset_x = (left + right) / 2 / size[0] - 0.5
    offset_y = (top + bottom) / 2 / size[1] - 0.5
    return _clamp(1 - math.hypot(offset_x, offset_y) / math.hypot(0.5, 0.5))
