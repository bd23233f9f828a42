"""
ConvertEngine - Renders a pipeline with ImageMagick's ``convert``.
"""

import logging
from typing import List, Optional, Sequence

import sh

from .package_config import parse_geometry
from .pipeline import (
    ColorAdjust, CompositeImage, DrawText, Operation, OutputHints,
    ResizeAndCrop, ResizeAndPad, ResizeToFit, SetQuality,
)


class ConvertEngine:
    """
    Pixel-transform engine backed by the ``convert`` command line tool.
    """

    def __init__(self, command: str = 'convert', logger: Optional[logging.Logger] = None):
        """
        Initialize engine.

        Args:
            command: Name or path of the ImageMagick binary
            logger: Optional logger instance
        """
        self.command = command
        self.logger = logger or logging.getLogger(__name__)

    def render(self, operations: Sequence[Operation], source_path: str, target_path: str) -> None:
        """
        Apply operations to source_path and write target_path.

        The output format follows target_path's extension.

        Raises:
            RuntimeError: If convert is missing or exits non-zero
        """
        args = self.build_args(operations)
        self.logger.debug(f"convert {source_path} {' '.join(args)} {target_path}")
        try:
            convert = sh.Command(self.command)
            convert(source_path, *args, target_path)
        except sh.CommandNotFound as e:
            raise RuntimeError(f"ImageMagick command not found: {self.command}") from e
        except sh.ErrorReturnCode as e:
            message = e.stderr.decode('utf-8', errors='replace').strip() if e.stderr else ''
            raise RuntimeError(message or str(e)) from e

    def build_args(self, operations: Sequence[Operation]) -> List[str]:
        """Translate operations into convert arguments, in order."""
        args: List[str] = []
        for op in operations:
            args.extend(self._args_for(op))
        return args

    def _args_for(self, op: Operation) -> List[str]:
        if isinstance(op, ResizeToFit):
            return ['-resize', f"{op.width}x{op.height}{op.options or ''}"]

        if isinstance(op, ResizeAndCrop):
            return [
                '-resize', f"{op.width}x{op.height}^",
                '-gravity', op.gravity,
                '-crop', f"{op.width}x{op.height}{op.x:+d}{op.y:+d}",
                '+repage',
            ]

        if isinstance(op, ResizeAndPad):
            return [
                '-resize', f"{op.width}x{op.height}",
                '-background', op.color,
                '-gravity', op.gravity,
                '-extent', f"{op.width}x{op.height}",
            ]

        if isinstance(op, SetQuality):
            return ['-quality', str(op.quality)]

        if isinstance(op, OutputHints):
            args = []
            if op.interlace:
                args.extend(['-interlace', 'Plane'])
            if op.sampling_factor:
                args.extend(['-sampling-factor', op.sampling_factor])
            if op.strip:
                args.append('-strip')
            return args

        if isinstance(op, ColorAdjust):
            return [
                '-gamma', f"{op.gamma:g}",
                '-modulate', f"{op.brightness},{op.saturation},{op.hue}",
            ]

        if isinstance(op, DrawText):
            args = ['-gravity', op.gravity, '-fill', op.color, '-pointsize', str(op.size)]
            if op.font:
                args.extend(['-font', op.font])
            args.extend(['-annotate', f"{op.x:+d}{op.y:+d}", op.text])
            return args

        if isinstance(op, CompositeImage):
            width, height, x, y = parse_geometry(op.geometry)
            geometry = f"{width}x{height}{x:+d}{y:+d}" if width and height else f"{x:+d}{y:+d}"
            return [op.src, '-gravity', op.gravity, '-geometry', geometry, '-composite']

        raise TypeError(f"Unsupported operation: {op!r}")
