"""
SourceImage - Read-only view of an externally owned source image record.
"""

from dataclasses import dataclass, asdict
from typing import Optional


@dataclass(frozen=True)
class SourceImage:
    """
    Reference to a stored original image.

    Attributes:
        id: Opaque identifier, immutable
        filepath: Location of the original, relative to the source root
        extension: Original format (e.g. 'jpg')
        watermark_text: Optional text used by text-watermark packages
    """
    id: str
    filepath: str
    extension: str
    watermark_text: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'SourceImage':
        """Create from a record dict as returned by the document layer."""
        return cls(
            id=str(data['id']),
            filepath=data['filepath'],
            extension=(data.get('extension') or '').lower().lstrip('.'),
            watermark_text=data.get('watermark_text'),
        )
