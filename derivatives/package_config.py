"""
PackageConfig - A named transform configuration ("package").
"""

import re
from dataclasses import dataclass, asdict
from typing import Optional, Tuple, Union

from .errors import ConfigurationError


PACKAGE_TYPES = ('resize', 'recrop', 'fill', 'original')
SIZED_TYPES = ('resize', 'recrop', 'fill')

GRAVITIES = (
    'NorthWest', 'North', 'NorthEast',
    'West', 'Center', 'East',
    'SouthWest', 'South', 'SouthEast',
)

DEFAULT_QUALITY = 80
DEFAULT_GRAVITY = 'Center'
DEFAULT_COLOR = 'white'

# '-' separates id and package in cache filenames, '.' separates the extension
RESERVED_NAME_CHARS = re.compile(r'[-./\\\x00]')

GEOMETRY_RE = re.compile(r'^(?:(\d+)x(\d+))?([+-]\d+)?([+-]\d+)?$')

# JSON definitions use the camelCase keys of the original config format
KEY_ALIASES = {
    'forceType': 'force_type',
    'textColor': 'text_color',
    'textSize': 'text_size',
}


def normalize_gravity(value: Optional[str], default: str = DEFAULT_GRAVITY) -> str:
    """Return the canonical gravity name, matching case-insensitively."""
    if value is None:
        return default
    for gravity in GRAVITIES:
        if gravity.lower() == str(value).lower():
            return gravity
    raise ConfigurationError(f"Unknown gravity: {value!r}")


def parse_geometry(value: Union[str, list, tuple, None]) -> Tuple[Optional[int], Optional[int], int, int]:
    """
    Parse an ImageMagick style geometry like '+10+10' or '64x64-5+0'.

    Returns:
        Tuple of (width, height, x, y); width/height are None when omitted
    """
    if value is None or value == '':
        return None, None, 0, 0
    if isinstance(value, (list, tuple)):
        if len(value) != 2:
            raise ConfigurationError(f"Invalid position: {value!r}")
        return None, None, int(value[0]), int(value[1])
    match = GEOMETRY_RE.match(str(value).strip())
    if not match:
        raise ConfigurationError(f"Invalid geometry: {value!r}")
    width, height, x, y = match.groups()
    return (
        int(width) if width else None,
        int(height) if height else None,
        int(x) if x else 0,
        int(y) if y else 0,
    )


def _normalize_keys(data: dict) -> dict:
    return {KEY_ALIASES.get(key, key): value for key, value in data.items()}


@dataclass(frozen=True)
class WatermarkText:
    """
    Text watermark styling. The text itself comes from the source record.

    Attributes:
        text_color: Fill color of the text
        text_size: Point size
        gravity: Anchor of the text on the image
        font: Optional font name or path, engine default when None
        position: Offset (x, y) from the anchor
    """
    text_color: str = 'white'
    text_size: int = 24
    gravity: str = 'SouthEast'
    font: Optional[str] = None
    position: Tuple[int, int] = (10, 10)

    @classmethod
    def from_dict(cls, data: dict) -> 'WatermarkText':
        data = _normalize_keys(data)
        _, _, x, y = parse_geometry(data.get('position', (10, 10)))
        return cls(
            text_color=data.get('text_color', 'white'),
            text_size=int(data.get('text_size', 24)),
            gravity=normalize_gravity(data.get('gravity'), 'SouthEast'),
            font=data.get('font'),
            position=(x, y),
        )


@dataclass(frozen=True)
class WatermarkImage:
    """
    Image overlay watermark.

    Attributes:
        src: Path of the overlay image
        gravity: Anchor of the overlay
        geometry: ImageMagick geometry, optionally with a size ('64x64+10+10')
    """
    src: str
    gravity: str = 'SouthEast'
    geometry: str = '+0+0'

    @classmethod
    def from_dict(cls, data: dict) -> 'WatermarkImage':
        geometry = data.get('geometry') or '+0+0'
        parse_geometry(geometry)
        return cls(
            src=data['src'],
            gravity=normalize_gravity(data.get('gravity'), 'SouthEast'),
            geometry=geometry,
        )


@dataclass(frozen=True)
class PackageConfig:
    """
    Immutable transform configuration, loaded once at startup.

    Attributes:
        name: Unique package name, used verbatim in cache filenames
        type: One of resize, recrop, fill, original
        width: Target width (required for sized types)
        height: Target height (required for sized types)
        quality: Output quality 0-100
        gravity: Anchor for crops and padding
        x: Crop x offset
        y: Crop y offset
        color: Background color used when padding
        force_type: Extension override for produced files
        optimize: 0 off, 1 or 2 for the optimization presets
        options: Free-form resize flags ('>', '<', '!', '^', '%')
        watermark: Optional text or image watermark
    """
    name: str
    type: str
    width: Optional[int] = None
    height: Optional[int] = None
    quality: int = DEFAULT_QUALITY
    gravity: str = DEFAULT_GRAVITY
    x: int = 0
    y: int = 0
    color: str = DEFAULT_COLOR
    force_type: Optional[str] = None
    optimize: int = 0
    options: Optional[str] = None
    watermark: Optional[Union[WatermarkText, WatermarkImage]] = None

    @property
    def is_sized(self) -> bool:
        return self.type in SIZED_TYPES

    def output_extension(self, requested: str) -> str:
        """Extension actually produced for a request with `requested`."""
        return self.force_type or requested

    @classmethod
    def from_dict(cls, name: str, data) -> 'PackageConfig':
        """
        Build and validate a package from its definition.

        Args:
            name: Package name
            data: Definition dict (snake_case or camelCase keys)

        Raises:
            ConfigurationError: If the definition is invalid
        """
        if not name or RESERVED_NAME_CHARS.search(name):
            raise ConfigurationError(
                f"Invalid package name {name!r}: must be non-empty without '-', '.' or path separators"
            )
        if isinstance(data, (list, tuple)):
            raise ConfigurationError(f"Package {name}: chained commands are not supported")
        if not isinstance(data, dict):
            raise ConfigurationError(f"Package {name}: definition must be a mapping")

        data = _normalize_keys(data)
        pkg_type = data.get('type')
        if not pkg_type:
            raise ConfigurationError(f"Package {name}: missing type")
        if pkg_type not in PACKAGE_TYPES:
            raise ConfigurationError(f"Package {name}: unknown type {pkg_type!r}")

        width = data.get('width')
        height = data.get('height')
        if pkg_type in SIZED_TYPES and (width is None or height is None):
            raise ConfigurationError(f"Package {name}: {pkg_type} requires width and height")

        quality = data.get('quality')
        quality = DEFAULT_QUALITY if quality is None else int(quality)
        if not 0 <= quality <= 100:
            raise ConfigurationError(f"Package {name}: quality must be between 0 and 100")

        force_type = data.get('force_type')
        if force_type is not None:
            force_type = str(force_type).lower().lstrip('.')

        watermark = None
        wm_data = data.get('watermark')
        if wm_data:
            if not isinstance(wm_data, dict):
                raise ConfigurationError(f"Package {name}: watermark must be a mapping")
            if wm_data.get('src'):
                watermark = WatermarkImage.from_dict(wm_data)
            else:
                watermark = WatermarkText.from_dict(wm_data)

        try:
            optimize = int(data.get('optimize') or 0)
            return cls(
                name=name,
                type=pkg_type,
                width=int(width) if width is not None else None,
                height=int(height) if height is not None else None,
                quality=quality,
                gravity=normalize_gravity(data.get('gravity')),
                x=int(data.get('x') or 0),
                y=int(data.get('y') or 0),
                color=data.get('color') or DEFAULT_COLOR,
                force_type=force_type,
                optimize=optimize,
                options=data.get('options'),
                watermark=watermark,
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Package {name}: {e}") from e

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)
