"""
DerivativeService - Wires the registry, resolvers and invalidation together.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Mapping, Optional

from .cache_resolver import CacheResolver
from .config import CacheConfig
from .convert_engine import ConvertEngine
from .errors import ConfigurationError
from .invalidation import InvalidationManager
from .package_registry import PackageRegistry
from .path_resolver import DerivativePathResolver
from .pillow_engine import PillowEngine


def create_engine(config: CacheConfig, logger: Optional[logging.Logger] = None):
    """Return the pixel-transform engine selected by config."""
    if config.engine == 'pillow':
        return PillowEngine(logger=logger)
    if config.engine == 'convert':
        return ConvertEngine(config.convert_command, logger=logger)
    raise ConfigurationError(f"Unknown transform engine: {config.engine}")


class DerivativeService:
    """
    One configured derivative cache: registry, paths, resolver and invalidation
    sharing a single worker pool.
    """

    def __init__(
        self,
        config: CacheConfig,
        registry: PackageRegistry,
        source_store,
        engine=None,
        distributor=None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize service.

        Args:
            config: Cache configuration
            registry: Package registry
            source_store: Lookup of source records by id
            engine: Pixel-transform engine, defaults to the configured one
            distributor: Optional replication target
            logger: Optional logger instance
        """
        self.config = config
        self.registry = registry
        self.source_store = source_store
        self.logger = logger or logging.getLogger(__name__)

        os.makedirs(config.images_dir, exist_ok=True)

        self.executor = ThreadPoolExecutor(
            max_workers=config.workers,
            thread_name_prefix='derivatives'
        )
        self.paths = DerivativePathResolver(
            registry,
            config.images_dir,
            domain=config.domain,
            image_route=config.image_route,
        )
        self.resolver = CacheResolver(
            registry,
            self.paths,
            source_store,
            engine or create_engine(config, logger=self.logger),
            self.executor,
            source_root=config.source_root,
            supported_extensions=config.extensions,
            distributor=distributor,
            generation_timeout=config.generation_timeout,
            logger=self.logger,
        )
        self.invalidation = InvalidationManager(
            self.paths,
            self.executor,
            supported_extensions=config.extensions,
            logger=self.logger,
        )

    @classmethod
    def from_config(
        cls,
        config: CacheConfig,
        source_store,
        packages: Optional[Mapping[str, dict]] = None,
        engine=None,
        distributor=None,
        logger: Optional[logging.Logger] = None
    ) -> 'DerivativeService':
        """
        Validate config, load packages and build the service.

        Packages come from config.packages_file when set, else from `packages`.

        Raises:
            ConfigurationError: If config or package definitions are invalid
        """
        errors = config.validate()
        if errors:
            raise ConfigurationError('; '.join(errors))

        if config.packages_file:
            registry = PackageRegistry.load(config.packages_file, logger=logger)
        else:
            registry = PackageRegistry.from_definitions(packages or {}, logger=logger)

        return cls(config, registry, source_store, engine=engine, distributor=distributor, logger=logger)

    def resolve(self, source_id, package_name: str, extension: str, force_regenerate: bool = False) -> str:
        return self.resolver.resolve(source_id, package_name, extension, force_regenerate)

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
