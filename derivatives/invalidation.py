"""
InvalidationManager - Deletes cached derivatives on source changes and purges.
"""

import logging
import os
from concurrent.futures import Executor, Future
from typing import Iterable, List, Optional

from .cache_resolver import DEFAULT_EXTENSIONS
from .errors import InvalidDerivativeKey
from .path_resolver import DerivativeKey, DerivativePathResolver, parse_filename, validate_source_id


LIFECYCLE_EVENTS = ('pre_save', 'post_save', 'pre_remove')


class InvalidationManager:
    """
    Removes derivatives when their source record changes.

    Derivatives of a source are located by name only, for every package and
    every supported extension, so a request made with an extension other than
    the source's own is cleaned up too.
    """

    def __init__(
        self,
        paths: DerivativePathResolver,
        executor: Executor,
        supported_extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize manager.

        Args:
            paths: Path resolver, the single source of truth for filenames
            executor: Pool running asynchronous purges
            supported_extensions: Extensions derivatives may have been requested with
            logger: Optional logger instance
        """
        self.paths = paths
        self.executor = executor
        self.supported_extensions = tuple(dict.fromkeys(
            ext.lower().lstrip('.') for ext in supported_extensions
        ))
        self.logger = logger or logging.getLogger(__name__)

    def candidate_paths(self, source_id) -> List[str]:
        """All cache paths a derivative of source_id could occupy."""
        source_id = validate_source_id(source_id)
        paths = []
        for package in self.paths.registry:
            extensions = self.supported_extensions
            if package.force_type:
                extensions = (package.force_type,)
            for ext in extensions:
                path = self.paths.path_for_key(DerivativeKey(source_id, package.name, ext))
                if path not in paths:
                    paths.append(path)
        return paths

    def on_source_changed(self, source_id) -> List[str]:
        """
        Delete every cached derivative of source_id.

        Missing files are not errors.

        Returns:
            Paths that were removed
        """
        removed = []
        for path in self.candidate_paths(source_id):
            try:
                os.remove(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                self.logger.warning(f"Could not delete derivative {path}: {e}")
                continue
            removed.append(path)

        if removed:
            self.logger.info(f"Invalidated {len(removed)} derivatives of {source_id}")
        return removed

    def on_source_removed(self, source_id) -> List[str]:
        return self.on_source_changed(source_id)

    def lifecycle_hook(self, event: str, source_id) -> None:
        """Entry point for the document layer's save/remove hooks."""
        if event not in LIFECYCLE_EVENTS:
            self.logger.warning(f"Ignoring unknown lifecycle event {event!r} for {source_id}")
            return
        self.logger.debug(f"Lifecycle event {event} for {source_id}")
        try:
            if event == 'pre_remove':
                self.on_source_removed(source_id)
            else:
                self.on_source_changed(source_id)
        except InvalidDerivativeKey as e:
            # such an id never had a cache file
            self.logger.warning(f"Skipping invalidation on {event}: {e}")

    def purge_package(self, package_name: str) -> Future:
        """
        Delete all derivatives of a package in the background.

        Returns:
            Future resolving to the number of deleted files
        """
        self.logger.info(f"Purging derivatives of package {package_name}")
        return self.executor.submit(self.sweep_package, package_name)

    def sweep_package(self, package_name: str) -> int:
        """
        Recursively delete derivatives of package_name under the images dir.

        Filenames are split the way the path resolver builds them, so a source
        id containing "-{package_name}." is not mistaken for the package.
        Matching is case-insensitive. A file that cannot be deleted is logged
        and the sweep continues.
        """
        wanted = package_name.lower()
        deleted = 0
        failed = 0

        def on_walk_error(error: OSError) -> None:
            self.logger.warning(f"Purge could not list {error.filename}: {error}")

        for dirpath, _, filenames in os.walk(self.paths.images_dir, onerror=on_walk_error):
            for filename in filenames:
                if not self._belongs_to(filename, wanted):
                    continue
                path = os.path.join(dirpath, filename)
                try:
                    os.remove(path)
                    deleted += 1
                except FileNotFoundError:
                    continue
                except OSError as e:
                    failed += 1
                    self.logger.warning(f"Purge could not delete {path}: {e}")

        self.logger.info(
            f"Purge of package {package_name} complete: {deleted} deleted, {failed} failed"
        )
        return deleted

    @staticmethod
    def _belongs_to(filename: str, package_name: str) -> bool:
        try:
            _, package, _ = parse_filename(filename)
        except InvalidDerivativeKey:
            return False
        return package.lower() == package_name
