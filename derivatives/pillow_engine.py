"""
PillowEngine - Renders a pipeline in-process with Pillow.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageEnhance, ImageFont, ImageOps

from .package_config import parse_geometry
from .pipeline import (
    ColorAdjust, CompositeImage, DrawText, Operation, OutputHints,
    ResizeAndCrop, ResizeAndPad, ResizeToFit, SetQuality,
)


GRAVITY_ANCHORS = {
    'NorthWest': (0.0, 0.0), 'North': (0.5, 0.0), 'NorthEast': (1.0, 0.0),
    'West': (0.0, 0.5), 'Center': (0.5, 0.5), 'East': (1.0, 0.5),
    'SouthWest': (0.0, 1.0), 'South': (0.5, 1.0), 'SouthEast': (1.0, 1.0),
}

SUBSAMPLING = {'4:4:4': 0, '4:2:2': 1, '4:2:0': 2}

# formats that keep an alpha channel
ALPHA_FORMATS = ('PNG', 'GIF', 'TIFF', 'WEBP')


def anchor_position(
    outer: Tuple[int, int],
    inner: Tuple[int, int],
    gravity: str,
    x: int = 0,
    y: int = 0
) -> Tuple[int, int]:
    """
    Top-left position of `inner` placed in `outer` at gravity.

    Offsets move away from the anchored edge, like ImageMagick.
    """
    fx, fy = GRAVITY_ANCHORS.get(gravity, (0.5, 0.5))
    left = int((outer[0] - inner[0]) * fx) + (-x if fx == 1.0 else x)
    top = int((outer[1] - inner[1]) * fy) + (-y if fy == 1.0 else y)
    return left, top


@dataclass
class _OutputOptions:
    quality: Optional[int] = None
    progressive: bool = False
    subsampling: Optional[str] = None
    strip: bool = False


class PillowEngine:
    """
    Pixel-transform engine using Pillow.

    Output is deterministic: identical input and operations give identical bytes.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def render(self, operations: Sequence[Operation], source_path: str, target_path: str) -> None:
        """
        Apply operations to source_path and write target_path.

        The output format follows target_path's extension.
        """
        output = _OutputOptions()
        with Image.open(source_path) as original:
            original.load()
            info = dict(original.info)
            img = self._normalize_mode(original)

            for op in operations:
                img = self._apply(img, op, output)

            self._save(img, target_path, output, info)

    def _apply(self, img: Image.Image, op: Operation, output: _OutputOptions) -> Image.Image:
        if isinstance(op, ResizeToFit):
            return self._resize_to_fit(img, op)
        if isinstance(op, ResizeAndCrop):
            return self._resize_and_crop(img, op)
        if isinstance(op, ResizeAndPad):
            return self._resize_and_pad(img, op)
        if isinstance(op, SetQuality):
            output.quality = op.quality
            return img
        if isinstance(op, OutputHints):
            output.progressive = op.interlace
            output.subsampling = op.sampling_factor
            output.strip = op.strip
            return img
        if isinstance(op, ColorAdjust):
            return self._color_adjust(img, op)
        if isinstance(op, DrawText):
            return self._draw_text(img, op)
        if isinstance(op, CompositeImage):
            return self._composite(img, op)
        raise TypeError(f"Unsupported operation: {op!r}")

    def _normalize_mode(self, img: Image.Image) -> Image.Image:
        """Work in RGB, or RGBA when the source carries transparency."""
        if img.mode in ('RGB', 'RGBA'):
            return img.copy()
        if img.mode in ('LA', 'PA') or (img.mode == 'P' and 'transparency' in img.info):
            return img.convert('RGBA')
        return img.convert('RGB')

    def _resize_to_fit(self, img: Image.Image, op: ResizeToFit) -> Image.Image:
        width, height = img.size
        flags = op.options or ''

        if '%' in flags:
            size = (max(1, round(width * op.width / 100)), max(1, round(height * op.height / 100)))
        elif '!' in flags:
            size = (op.width, op.height)
        else:
            if '^' in flags:
                scale = max(op.width / width, op.height / height)
            else:
                scale = min(op.width / width, op.height / height)
            if '>' in flags and scale >= 1:
                return img
            if '<' in flags and scale <= 1:
                return img
            size = (max(1, round(width * scale)), max(1, round(height * scale)))

        if size == img.size:
            return img
        return img.resize(size, Image.Resampling.LANCZOS)

    def _resize_and_crop(self, img: Image.Image, op: ResizeAndCrop) -> Image.Image:
        width, height = img.size
        scale = max(op.width / width, op.height / height)
        covered = (max(op.width, round(width * scale)), max(op.height, round(height * scale)))
        if covered != img.size:
            img = img.resize(covered, Image.Resampling.LANCZOS)

        left, top = anchor_position(covered, (op.width, op.height), op.gravity, op.x, op.y)
        left = min(max(left, 0), covered[0] - op.width)
        top = min(max(top, 0), covered[1] - op.height)
        return img.crop((left, top, left + op.width, top + op.height))

    def _resize_and_pad(self, img: Image.Image, op: ResizeAndPad) -> Image.Image:
        fitted = ImageOps.contain(img, (op.width, op.height), Image.Resampling.LANCZOS)
        canvas = Image.new(img.mode, (op.width, op.height), ImageColor.getcolor(op.color, img.mode))
        position = anchor_position(canvas.size, fitted.size, op.gravity)
        if fitted.mode == 'RGBA':
            canvas.paste(fitted, position, fitted)
        else:
            canvas.paste(fitted, position)
        return canvas

    def _color_adjust(self, img: Image.Image, op: ColorAdjust) -> Image.Image:
        alpha = img.getchannel('A') if img.mode == 'RGBA' else None
        rgb = img.convert('RGB')

        if op.gamma and op.gamma != 1.0:
            exponent = 1.0 / op.gamma
            lut = [round(255 * ((i / 255) ** exponent)) for i in range(256)]
            rgb = rgb.point(lut * 3)
        if op.brightness != 100:
            rgb = ImageEnhance.Brightness(rgb).enhance(op.brightness / 100)
        if op.saturation != 100:
            rgb = ImageEnhance.Color(rgb).enhance(op.saturation / 100)
        if op.hue != 100:
            # 0..200 maps to -180..+180 degrees
            shift = round((op.hue - 100) * 255 / 200)
            h, s, v = rgb.convert('HSV').split()
            h = h.point(lambda value: (value + shift) % 256)
            rgb = Image.merge('HSV', (h, s, v)).convert('RGB')

        if alpha is not None:
            rgb.putalpha(alpha)
        return rgb

    def _font(self, font: Optional[str], size: int):
        if font:
            try:
                return ImageFont.truetype(font, size)
            except OSError:
                self.logger.warning(f"Font {font} not available, using default")
        return ImageFont.load_default(size=size)

    def _draw_text(self, img: Image.Image, op: DrawText) -> Image.Image:
        draw = ImageDraw.Draw(img)
        font = self._font(op.font, op.size)
        bbox = draw.textbbox((0, 0), op.text, font=font)
        text_size = (bbox[2] - bbox[0], bbox[3] - bbox[1])
        left, top = anchor_position(img.size, text_size, op.gravity, op.x, op.y)
        draw.text((left - bbox[0], top - bbox[1]), op.text, fill=op.color, font=font)
        return img

    def _composite(self, img: Image.Image, op: CompositeImage) -> Image.Image:
        width, height, x, y = parse_geometry(op.geometry)
        with Image.open(op.src) as overlay_file:
            overlay = overlay_file.convert('RGBA')
        if width and height:
            overlay = ImageOps.contain(overlay, (width, height), Image.Resampling.LANCZOS)
        position = anchor_position(img.size, overlay.size, op.gravity, x, y)
        img.paste(overlay, position, overlay)
        return img

    def _output_format(self, target_path: str) -> str:
        ext = os.path.splitext(target_path)[1].lower()
        output_format = Image.registered_extensions().get(ext)
        if not output_format:
            raise ValueError(f"No output format for extension {ext!r}")
        return output_format

    def _flatten(self, img: Image.Image) -> Image.Image:
        """Drop alpha onto a white background for formats without transparency."""
        if img.mode == 'RGBA':
            background = Image.new('RGB', img.size, (255, 255, 255))
            background.paste(img, mask=img.getchannel('A'))
            return background
        if img.mode != 'RGB':
            return img.convert('RGB')
        return img

    def _save(self, img: Image.Image, target_path: str, output: _OutputOptions, info: dict) -> None:
        output_format = self._output_format(target_path)
        params = {}

        if output_format not in ALPHA_FORMATS:
            img = self._flatten(img)

        if output_format == 'JPEG':
            params['quality'] = output.quality if output.quality is not None else 80
            params['optimize'] = True
            if output.progressive:
                params['progressive'] = True
            if output.subsampling in SUBSAMPLING:
                params['subsampling'] = SUBSAMPLING[output.subsampling]
        elif output_format == 'PNG':
            if output.quality is not None:
                params['compress_level'] = min(9, output.quality // 10)
        elif output_format == 'WEBP' and output.quality is not None:
            params['quality'] = output.quality

        if not output.strip:
            if info.get('icc_profile') and output_format in ('JPEG', 'PNG', 'TIFF', 'WEBP'):
                params['icc_profile'] = info['icc_profile']
            if info.get('exif') and output_format in ('JPEG', 'PNG', 'WEBP'):
                params['exif'] = info['exif']

        self.logger.debug(f"Saving {target_path} as {output_format} {params.get('quality', '')}")
        img.save(target_path, format=output_format, **params)
