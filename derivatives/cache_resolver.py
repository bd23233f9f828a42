"""
CacheResolver - Serves derivatives from the cache, generating them on a miss.
"""

import logging
import os
import tempfile
from concurrent.futures import Executor, TimeoutError as FutureTimeoutError
from typing import Iterable, Optional

from .errors import (
    DistributionFailed, SourceNotFound, SourceUnavailable,
    TransformFailed, UnsupportedExtension,
)
from .package_config import PackageConfig
from .package_registry import PackageRegistry
from .path_resolver import DerivativeKey, DerivativePathResolver, validate_source_id
from .pipeline import PipelineBuilder
from .single_flight import SingleFlight
from .source_image import SourceImage


DEFAULT_EXTENSIONS = ('png', 'jpg', 'jpeg', 'bmp', 'gif')


class CacheResolver:
    """
    Resolves a derivative request to a cache file path.

    Collaborators:
        source_store: object with ``get_source(source_id) -> Optional[SourceImage]``
        engine: object with ``render(operations, source_path, target_path)``
        distributor: optional object with ``distribute_file(source, target)``

    Existence of the cache file is the only freshness signal. Generation of a
    given cache path happens at most once at a time; concurrent requesters
    wait for the in-flight result.
    """

    def __init__(
        self,
        registry: PackageRegistry,
        paths: DerivativePathResolver,
        source_store,
        engine,
        executor: Executor,
        source_root: str = '',
        supported_extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        pipeline_builder: Optional[PipelineBuilder] = None,
        distributor=None,
        generation_timeout: Optional[float] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize resolver.

        Args:
            registry: Package registry
            paths: Path resolver sharing the registry
            source_store: Lookup of source records by id
            engine: Pixel-transform engine
            executor: Pool running generations and distribution
            source_root: Directory source filepaths are relative to
            supported_extensions: Extensions accepted from requests
            pipeline_builder: Builder, defaults to one rooted at source_root
            distributor: Optional replication target for new derivatives
            generation_timeout: Seconds a caller waits for a generation, None for no limit
            logger: Optional logger instance
        """
        self.registry = registry
        self.paths = paths
        self.source_store = source_store
        self.engine = engine
        self.executor = executor
        self.source_root = source_root
        self.supported_extensions = frozenset(ext.lower().lstrip('.') for ext in supported_extensions)
        self.logger = logger or logging.getLogger(__name__)
        self.builder = pipeline_builder or PipelineBuilder(source_root, logger=self.logger)
        self.distributor = distributor
        self.generation_timeout = generation_timeout
        self._flight = SingleFlight(executor, logger=self.logger)

    def resolve(
        self,
        source_id,
        package_name: str,
        extension: str,
        force_regenerate: bool = False
    ) -> str:
        """
        Return the path of the derivative, generating it if needed.

        Args:
            source_id: Source record id
            package_name: Registered package name
            extension: Requested extension
            force_regenerate: Regenerate even if a cached file exists

        Raises:
            UnknownPackage, UnsupportedExtension, InvalidDerivativeKey,
            SourceNotFound, SourceUnavailable, ConfigurationError, TransformFailed
        """
        package = self.registry.resolve(package_name)
        requested = '' if extension is None else str(extension).lower()
        if requested not in self.supported_extensions:
            raise UnsupportedExtension(extension)
        source_id = validate_source_id(source_id)

        source = self.source_store.get_source(source_id)
        if source is None:
            raise SourceNotFound(source_id)
        source_path = self.source_path(source)
        if not os.path.isfile(source_path) or not os.access(source_path, os.R_OK):
            self.logger.error(f"Original missing for {source_id}: {source_path}")
            raise SourceUnavailable(source_path)

        key = self.paths.key_for(source_id, package.name, requested)
        target = self.paths.path_for_key(key)

        if not force_regenerate and self.is_cached(target):
            self.logger.debug(f"Serving cached derivative {target}")
            return target

        future, started = self._flight.submit(
            target,
            lambda: self._generate(package, source, source_path, key, target, force_regenerate)
        )
        if not started:
            self.logger.debug(f"Waiting for in-flight generation of {target}")
        try:
            return future.result(timeout=self.generation_timeout)
        except FutureTimeoutError as e:
            raise TransformFailed(
                TimeoutError(f"Timed out after {self.generation_timeout}s waiting for {key.filename}"),
                target
            ) from e

    def source_path(self, source: SourceImage) -> str:
        return os.path.join(self.source_root, source.filepath)

    @staticmethod
    def is_cached(path: str) -> bool:
        return os.path.isfile(path) and os.access(path, os.R_OK)

    def _generate(
        self,
        package: PackageConfig,
        source: SourceImage,
        source_path: str,
        key: DerivativeKey,
        target: str,
        force_regenerate: bool
    ) -> str:
        # a generation that finished just before this one was scheduled
        if not force_regenerate and self.is_cached(target):
            return target

        operations = self.builder.build(package, source)

        target_dir = os.path.dirname(target)
        os.makedirs(target_dir, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=target_dir, prefix='.tmp-', suffix=f".{key.extension}")
        os.close(fd)

        self.logger.debug(f"Generating {key.filename} with {len(operations)} operations")
        try:
            self.engine.render(operations, source_path, tmp_path)
            os.replace(tmp_path, target)
        except Exception as e:
            self._remove_tempfile(tmp_path)
            self.logger.error(f"Transform of {source_path} into {key.filename} failed: {e}")
            raise TransformFailed(e, target) from e

        self.logger.info(f"Generated derivative {target}")
        self._schedule_distribution(target)
        return target

    def _remove_tempfile(self, tmp_path: str) -> None:
        try:
            os.remove(tmp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Could not delete {tmp_path}: {e}")

    def _schedule_distribution(self, path: str) -> None:
        if self.distributor is None:
            return
        try:
            self.executor.submit(self._distribute, path)
        except RuntimeError as e:
            self.logger.error(str(DistributionFailed(path, e)))

    def _distribute(self, path: str) -> None:
        try:
            self.distributor.distribute_file(path, path)
            self.logger.debug(f"Distributed image {path}")
        except Exception as e:
            self.logger.error(str(DistributionFailed(path, e)))
