"""
DerivativePathResolver - Deterministic naming of cached derivatives.

A derivative lives at ``{images_dir}/{source_id}-{package}.{extension}`` and is
published at ``{domain}{image_route}{source_id}-{package}.{extension}``. Package
names never contain '-' or '.', so a filename splits back into its key on the
last '-' and the last '.'.
"""

import os
from dataclasses import dataclass
from typing import Dict, Tuple

from .errors import InvalidDerivativeKey
from .package_registry import PackageRegistry
from .source_image import SourceImage


@dataclass(frozen=True)
class DerivativeKey:
    """Cache key of a derivative, with the produced extension."""
    source_id: str
    package_name: str
    extension: str

    @property
    def filename(self) -> str:
        return f"{self.source_id}-{self.package_name}.{self.extension}"


def validate_source_id(source_id) -> str:
    """Reject ids that cannot be embedded verbatim in a filename."""
    source_id = '' if source_id is None else str(source_id)
    if (not source_id or source_id in ('.', '..')
            or '/' in source_id or '\\' in source_id or '\x00' in source_id):
        raise InvalidDerivativeKey(f"Invalid source id: {source_id!r}")
    return source_id


def normalize_extension(extension) -> str:
    extension = ('' if extension is None else str(extension)).lower()
    if (not extension or '.' in extension or '/' in extension
            or '\\' in extension or '\x00' in extension):
        raise InvalidDerivativeKey(f"Invalid extension: {extension!r}")
    return extension


def parse_filename(filename: str) -> Tuple[str, str, str]:
    """
    Split a derivative filename into (source_id, package_name, extension).

    Raises:
        InvalidDerivativeKey: If any of the three parts is missing
    """
    stem, dot, extension = filename.rpartition('.')
    source_id, dash, package_name = stem.rpartition('-')
    if not dot or not dash or not source_id or not package_name or not extension:
        raise InvalidDerivativeKey(f"Invalid derivative filename: {filename!r}")
    return source_id, package_name, extension


class DerivativePathResolver:
    """
    Maps (source id, package, extension) to cache paths and public URLs.

    Pure: no filesystem access.
    """

    def __init__(
        self,
        registry: PackageRegistry,
        images_dir: str,
        domain: str = '',
        image_route: str = '/image/'
    ):
        """
        Initialize resolver.

        Args:
            registry: Package registry
            images_dir: Root directory of cached derivatives
            domain: Public domain prefix of derivative URLs (e.g. '//localhost:13337')
            image_route: Route under which derivatives are served
        """
        self.registry = registry
        self.images_dir = os.path.abspath(images_dir)
        self.domain = domain.rstrip('/')
        self.image_route = image_route

    def key_for(self, source_id, package_name: str, extension: str) -> DerivativeKey:
        """Build the key, applying the package's force_type override."""
        source_id = validate_source_id(source_id)
        package = self.registry.resolve(package_name)
        extension = normalize_extension(package.output_extension(normalize_extension(extension)))
        return DerivativeKey(source_id, package.name, extension)

    def path_for(self, source_id, package_name: str, extension: str) -> str:
        return self.path_for_key(self.key_for(source_id, package_name, extension))

    def path_for_key(self, key: DerivativeKey) -> str:
        return os.path.join(self.images_dir, key.filename)

    def url_for(self, source_id, package_name: str, extension: str) -> str:
        key = self.key_for(source_id, package_name, extension)
        return f"{self.domain}{self.image_route}{key.filename}"

    def paths_for_source(self, source: SourceImage) -> Dict[str, str]:
        """Cache path of every package for a source, using its own extension."""
        return {
            name: self.path_for(source.id, name, source.extension)
            for name in self.registry.names()
        }

    def urls_for_source(self, source: SourceImage) -> Dict[str, str]:
        """Public URL of every package for a source, using its own extension."""
        return {
            name: self.url_for(source.id, name, source.extension)
            for name in self.registry.names()
        }
