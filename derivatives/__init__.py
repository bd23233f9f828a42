"""
Derivative image cache.

Serves resized / cropped / watermarked versions of source images:
    1. Resolve: map (source id, package, extension) to a cache file
    2. Generate: on a miss, render the package pipeline once per key
    3. Invalidate: drop derivatives when the source changes, or purge a package

Rendering uses ImageMagick ``convert`` or Pillow.
"""

__version__ = "1.0.0"

from .errors import (
    DerivativeError, UnknownPackage, UnsupportedExtension, InvalidDerivativeKey,
    SourceNotFound, SourceUnavailable, ConfigurationError, TransformFailed,
    DistributionFailed,
)
from .config import CacheConfig, S3Config
from .package_config import PackageConfig, WatermarkText, WatermarkImage
from .package_registry import PackageRegistry
from .source_image import SourceImage
from .path_resolver import DerivativeKey, DerivativePathResolver, parse_filename
from .pipeline import PipelineBuilder
from .convert_engine import ConvertEngine
from .pillow_engine import PillowEngine
from .single_flight import SingleFlight
from .cache_resolver import CacheResolver
from .invalidation import InvalidationManager
from .distributor import S3Distributor
from .service import DerivativeService

__all__ = [
    "DerivativeError",
    "UnknownPackage",
    "UnsupportedExtension",
    "InvalidDerivativeKey",
    "SourceNotFound",
    "SourceUnavailable",
    "ConfigurationError",
    "TransformFailed",
    "DistributionFailed",
    "CacheConfig",
    "S3Config",
    "PackageConfig",
    "WatermarkText",
    "WatermarkImage",
    "PackageRegistry",
    "SourceImage",
    "DerivativeKey",
    "DerivativePathResolver",
    "parse_filename",
    "PipelineBuilder",
    "ConvertEngine",
    "PillowEngine",
    "SingleFlight",
    "CacheResolver",
    "InvalidationManager",
    "S3Distributor",
    "DerivativeService",
]
