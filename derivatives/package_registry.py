"""
PackageRegistry - Read-only collection of validated packages.
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional

from .errors import ConfigurationError, UnknownPackage
from .package_config import PackageConfig


class PackageRegistry:
    """
    Holds the named transform configurations.

    Built once from definitions and never mutated afterwards.
    """

    def __init__(self, packages: Mapping[str, PackageConfig]):
        self._packages = MappingProxyType(dict(packages))

    @classmethod
    def from_definitions(
        cls,
        definitions: Mapping[str, dict],
        logger: Optional[logging.Logger] = None
    ) -> 'PackageRegistry':
        """
        Validate definitions and build a registry.

        Args:
            definitions: Mapping of package name to definition dict
            logger: Optional logger instance

        Raises:
            ConfigurationError: If any definition is invalid
        """
        logger = logger or logging.getLogger(__name__)
        if not isinstance(definitions, Mapping):
            raise ConfigurationError("Package definitions must be a mapping of name to definition")

        packages: Dict[str, PackageConfig] = {}
        for name, data in definitions.items():
            packages[name] = PackageConfig.from_dict(name, data)
            logger.debug(f"Loaded package {name}: {packages[name].type}")

        logger.info(f"Loaded {len(packages)} package definitions")
        return cls(packages)

    @classmethod
    def load(cls, filepath: str, logger: Optional[logging.Logger] = None) -> 'PackageRegistry':
        """Load package definitions from a JSON file."""
        path = Path(filepath)
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read package definitions {filepath}: {e}") from e

        # accept both a bare mapping and {"packages": {...}}
        if isinstance(data, dict) and isinstance(data.get('packages'), dict):
            data = data['packages']
        return cls.from_definitions(data, logger=logger)

    def resolve(self, name: str) -> PackageConfig:
        """
        Return the package registered under `name`.

        Raises:
            UnknownPackage: If no such package exists
        """
        try:
            return self._packages[name]
        except KeyError:
            raise UnknownPackage(name)

    def get(self, name: str) -> Optional[PackageConfig]:
        return self._packages.get(name)

    def names(self) -> List[str]:
        return list(self._packages.keys())

    def __contains__(self, name) -> bool:
        return name in self._packages

    def __iter__(self) -> Iterator[PackageConfig]:
        return iter(self._packages.values())

    def __len__(self) -> int:
        return len(self._packages)
