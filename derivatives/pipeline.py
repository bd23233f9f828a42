"""
Transform pipeline - Turns a package into an ordered list of image operations.

Operations are plain immutable values. Engines (ImageMagick ``convert`` or
Pillow) interpret them; the builder never touches pixels.
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Union

from .errors import ConfigurationError
from .package_config import PackageConfig, WatermarkImage, WatermarkText
from .source_image import SourceImage


@dataclass(frozen=True)
class ResizeToFit:
    """Resize to fit in the box. `options` holds ImageMagick geometry flags."""
    width: int
    height: int
    options: Optional[str] = None


@dataclass(frozen=True)
class ResizeAndCrop:
    """Resize to cover the box, then crop it exactly at gravity/offset."""
    width: int
    height: int
    gravity: str = 'Center'
    x: int = 0
    y: int = 0


@dataclass(frozen=True)
class ResizeAndPad:
    """Resize to fit in the box, then pad it exactly with `color`."""
    width: int
    height: int
    gravity: str = 'Center'
    color: str = 'white'


@dataclass(frozen=True)
class SetQuality:
    quality: int


@dataclass(frozen=True)
class OutputHints:
    """Encoder hints: progressive interlacing, chroma sampling, metadata strip."""
    interlace: bool = True
    sampling_factor: Optional[str] = '4:2:0'
    strip: bool = True


@dataclass(frozen=True)
class ColorAdjust:
    """Gamma correction and modulation (percentages, 100 = unchanged)."""
    gamma: float = 1.0
    brightness: int = 100
    saturation: int = 100
    hue: int = 100


@dataclass(frozen=True)
class DrawText:
    text: str
    color: str = 'white'
    size: int = 24
    gravity: str = 'SouthEast'
    font: Optional[str] = None
    x: int = 10
    y: int = 10


@dataclass(frozen=True)
class CompositeImage:
    src: str
    gravity: str = 'SouthEast'
    geometry: str = '+0+0'


Operation = Union[
    ResizeToFit, ResizeAndCrop, ResizeAndPad, SetQuality,
    OutputHints, ColorAdjust, DrawText, CompositeImage,
]

OPTIMIZE_PRESETS = {
    1: ColorAdjust(gamma=1.0, brightness=100, saturation=105, hue=100),
    2: ColorAdjust(gamma=1.1, brightness=102, saturation=110, hue=100),
}


class PipelineBuilder:
    """
    Builds the operation list for a (package, source) pair.
    """

    def __init__(self, source_root: str = '', logger: Optional[logging.Logger] = None):
        """
        Initialize builder.

        Args:
            source_root: Directory relative watermark image paths resolve against
            logger: Optional logger instance
        """
        self.source_root = source_root
        self.logger = logger or logging.getLogger(__name__)

    def build(self, package: PackageConfig, source: Optional[SourceImage] = None) -> List[Operation]:
        """
        Build the ordered operations for a package.

        Args:
            package: Package configuration
            source: Source record, consulted for the watermark text

        Returns:
            List of operations, geometry first, watermarks last

        Raises:
            ConfigurationError: If the package cannot be turned into a pipeline
        """
        operations: List[Operation] = []

        if package.is_sized:
            width, height = self._dimensions(package)
            if package.type == 'recrop':
                operations.append(ResizeAndCrop(width, height, package.gravity, package.x, package.y))
            elif package.type == 'fill':
                operations.append(ResizeAndPad(width, height, package.gravity, package.color))
            else:
                operations.append(ResizeToFit(width, height, package.options))
        elif package.type != 'original':
            raise ConfigurationError(f"Package {package.name}: unknown type {package.type!r}")

        operations.append(SetQuality(package.quality))

        preset = OPTIMIZE_PRESETS.get(package.optimize)
        if preset is not None:
            operations.append(OutputHints())
            operations.append(preset)
        elif package.optimize:
            self.logger.debug(f"Package {package.name}: ignoring unknown optimize preset {package.optimize}")

        watermark = self._watermark(package, source)
        if watermark is not None:
            operations.append(watermark)

        return operations

    def _dimensions(self, package: PackageConfig):
        width, height = package.width, package.height
        if not width or not height or width <= 0 or height <= 0:
            raise ConfigurationError(
                f"Package {package.name}: width and height must be positive (got {width}x{height})"
            )
        return width, height

    def _watermark(self, package: PackageConfig, source: Optional[SourceImage]) -> Optional[Operation]:
        watermark = package.watermark
        if isinstance(watermark, WatermarkImage):
            src = watermark.src
            if not os.path.isabs(src) and self.source_root:
                src = os.path.join(self.source_root, src)
            return CompositeImage(src, watermark.gravity, watermark.geometry)

        if isinstance(watermark, WatermarkText):
            text = source.watermark_text if source is not None else None
            if not text:
                return None
            x, y = watermark.position
            return DrawText(
                text=text,
                color=watermark.text_color,
                size=watermark.text_size,
                gravity=watermark.gravity,
                font=watermark.font,
                x=x,
                y=y,
            )

        return None
