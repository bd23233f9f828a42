"""
Configuration for the derivative cache and its S3 distribution target.

Values come from environment variables; CLI arguments may override them.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .cache_resolver import DEFAULT_EXTENSIONS


ENGINES = ('convert', 'pillow')


def _split_list(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip().lower().lstrip('.') for item in value.split(',') if item.strip())


def _float_or_none(value: Optional[str]) -> Optional[float]:
    if value is None or value == '':
        return None
    return float(value)


@dataclass
class CacheConfig:
    """
    Derivative cache configuration.

    Attributes:
        images_dir: Root directory of cached derivatives
        source_root: Directory source filepaths are relative to
        domain: Public domain prefix of derivative URLs
        image_route: Route derivatives are served under
        extensions: Extensions accepted from requests
        engine: 'convert' (ImageMagick) or 'pillow'
        convert_command: ImageMagick binary used by the convert engine
        workers: Size of the generation/distribution/purge pool
        generation_timeout: Seconds a request waits for a generation (None = no limit)
        packages_file: Optional JSON file of package definitions
    """
    images_dir: str = '/data/images/'
    source_root: str = ''
    domain: str = '//localhost:13337'
    image_route: str = '/image/'
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    engine: str = 'convert'
    convert_command: str = 'convert'
    workers: int = 4
    generation_timeout: Optional[float] = None
    packages_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'CacheConfig':
        """Create configuration from environment variables."""
        image_route = os.getenv('IMAGE_ROUTE', '/image/')
        if not image_route.startswith('/'):
            image_route = '/' + image_route
        if not image_route.endswith('/'):
            image_route += '/'

        extensions = _split_list(os.getenv('EXTENSIONS')) or DEFAULT_EXTENSIONS
        extra = _split_list(os.getenv('EXTRA_EXTENSIONS'))

        return cls(
            images_dir=os.getenv('IMAGES_DIR', '/data/images/'),
            source_root=os.getenv('SOURCE_ROOT', ''),
            domain=os.getenv('DOMAIN', '//localhost:13337'),
            image_route=image_route,
            extensions=tuple(dict.fromkeys(extensions + extra)),
            engine=os.getenv('TRANSFORM_ENGINE', 'convert').lower(),
            convert_command=os.getenv('CONVERT_COMMAND', 'convert'),
            workers=int(os.getenv('GENERATION_WORKERS', '4')),
            generation_timeout=_float_or_none(os.getenv('GENERATION_TIMEOUT')),
            packages_file=os.getenv('PACKAGES_FILE') or None,
        )

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []
        if not self.images_dir:
            errors.append("IMAGES_DIR is required")
        if not self.extensions:
            errors.append("At least one supported extension is required")
        if self.engine not in ENGINES:
            errors.append(f"TRANSFORM_ENGINE must be one of {', '.join(ENGINES)}")
        if self.workers < 1:
            errors.append("GENERATION_WORKERS must be at least 1")
        if self.generation_timeout is not None and self.generation_timeout <= 0:
            errors.append("GENERATION_TIMEOUT must be positive")
        if self.packages_file and not os.path.isfile(self.packages_file):
            errors.append(f"PACKAGES_FILE not found: {self.packages_file}")
        return errors


@dataclass
class S3Config:
    """
    S3/MinIO target for derivative distribution.

    Attributes:
        endpoint: S3 endpoint URL
        bucket: Bucket name
        prefix: Key prefix for distributed derivatives
        access_key: Access key id
        secret_key: Secret access key
        region: Region name
        verify_ssl: Verify TLS certificates
    """
    endpoint: Optional[str] = None
    bucket: Optional[str] = None
    prefix: str = ''
    access_key: Optional[str] = field(default=None, repr=False)
    secret_key: Optional[str] = field(default=None, repr=False)
    region: Optional[str] = None
    verify_ssl: bool = True

    @classmethod
    def from_env(cls) -> 'S3Config':
        return cls(
            endpoint=os.getenv('S3_ENDPOINT') or None,
            bucket=os.getenv('S3_BUCKET') or None,
            prefix=os.getenv('S3_PREFIX', ''),
            access_key=os.getenv('S3_ACCESS_KEY'),
            secret_key=os.getenv('S3_SECRET_KEY'),
            region=os.getenv('S3_REGION'),
            verify_ssl=os.getenv('S3_VERIFY_SSL', 'true').lower() not in ('0', 'false', 'no'),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.endpoint)

    def validate(self) -> List[str]:
        errors = []
        if not self.endpoint:
            errors.append("S3_ENDPOINT is required")
        if not self.bucket:
            errors.append("S3_BUCKET is required")
        if not self.access_key:
            errors.append("S3_ACCESS_KEY is required")
        if not self.secret_key:
            errors.append("S3_SECRET_KEY is required")
        return errors
