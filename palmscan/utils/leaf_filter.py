"""
Color heuristic that rejects images which obviously are not plant leaves
before they reach the classifier.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Optional

import torch
from PIL import Image

from palmscan.config.settings import (
    FILTER_EPSILON,
    GREEN_RATIO_MIN,
    GREEN_RATIO_FALLBACK,
    RED_GREEN_MAX_GAP,
    YELLOW_CHANNEL_MIN,
    SATURATION_MIN,
    BRIGHTNESS_MIN,
    BRIGHTNESS_MAX,
)
from .image_processing import ImageProcessor, ImageInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColorStatistics:
    red_mean: float
    green_mean: float
    blue_mean: float

    @property
    def brightness(self) -> float:
        return (self.red_mean + self.green_mean + self.blue_mean) / 3

    @property
    def greenness_ratio(self) -> float:
        total = self.red_mean + self.green_mean + self.blue_mean
        return self.green_mean / (total + FILTER_EPSILON)

    @property
    def saturation(self) -> float:
        channels = (self.red_mean, self.green_mean, self.blue_mean)
        return max(channels) - min(channels)

    def as_dict(self) -> dict:
        data = asdict(self)
        data.update(
            brightness=self.brightness,
            greenness_ratio=self.greenness_ratio,
            saturation=self.saturation,
        )
        return data


def compute_color_statistics(img: Image.Image, processor: Optional[ImageProcessor] = None) -> ColorStatistics:
    """Per-channel mean intensity of a downsampled copy of the image"""
    processor = processor or ImageProcessor()
    pixels = processor.sample_pixels(img.convert('RGB'))
    red, green, blue = pixels.to(torch.float32).mean(dim=(1, 2)).tolist()
    return ColorStatistics(red, green, blue)


def is_plant_colored(stats: ColorStatistics) -> bool:
    red, green, blue = stats.red_mean, stats.green_mean, stats.blue_mean
    return (
        # healthy green leaves
        (stats.greenness_ratio > GREEN_RATIO_MIN and green > red and green > blue)
        # brown or dry leaves
        or (red > blue and abs(red - green) < RED_GREEN_MAX_GAP)
        # yellowing from nutrient deficiency
        or (red > YELLOW_CHANNEL_MIN and green > YELLOW_CHANNEL_MIN and blue < YELLOW_CHANNEL_MIN)
    )


def evaluate_statistics(stats: ColorStatistics) -> bool:
    """
    Decide whether color statistics look like a plant leaf

    Accepts when the image is plant colored (or green enough), is not close
    to grayscale, and is neither too dark nor too bright.
    """
    plant_color = is_plant_colored(stats)
    has_color = stats.saturation > SATURATION_MIN
    not_extreme = BRIGHTNESS_MIN < stats.brightness < BRIGHTNESS_MAX

    verdict = (plant_color or stats.greenness_ratio > GREEN_RATIO_FALLBACK) and has_color and not_extreme

    logger.debug(
        "Color analysis: R=%.1f G=%.1f B=%.1f brightness=%.1f greenness=%.3f "
        "saturation=%.1f plant_color=%s has_color=%s not_extreme=%s -> %s",
        stats.red_mean, stats.green_mean, stats.blue_mean, stats.brightness,
        stats.greenness_ratio, stats.saturation, plant_color, has_color,
        not_extreme, "accepted" if verdict else "rejected",
    )
    return verdict


def is_likely_plant(image: ImageInput, processor: Optional[ImageProcessor] = None) -> bool:
    """
    Check whether an image plausibly shows a plant leaf

    Args:
        image: decoded PIL image or any input accepted by ImageProcessor
        processor: image processor to reuse

    Returns:
        True if the image passes the color heuristic

    Raises:
        ImageProcessingError: if the input cannot be decoded
    """
    processor = processor or ImageProcessor()
    img = image if isinstance(image, Image.Image) else processor.load_image(image)
    return evaluate_statistics(compute_color_statistics(img, processor))
