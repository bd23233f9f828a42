"""
Pytest fixtures for derivatives tests.
"""

import os
import tempfile
import threading
import time

import pytest

# server.py configures file logging at import time
os.environ.setdefault('LOG_FILE', os.path.join(tempfile.gettempdir(), 'derivatives-test.log'))


PACKAGE_DEFINITIONS = {
    'thumb': {
        'type': 'recrop',
        'width': 200,
        'height': 200,
        'gravity': 'Center',
        'quality': 80,
    },
    'full': {
        'type': 'resize',
        'width': 800,
        'height': 800,
        'options': '>',
    },
    'square': {
        'type': 'fill',
        'width': 100,
        'height': 100,
        'color': 'black',
    },
    'forced': {
        'type': 'original',
        'forceType': 'jpg',
    },
}


class CountingEngine:
    """Engine stub that writes fixed bytes and counts renders."""

    def __init__(self, delay: float = 0.0, payload: bytes = b'derivative', error=None):
        self.delay = delay
        self.payload = payload
        self.error = error
        self.calls = []
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def render(self, operations, source_path, target_path):
        with self._lock:
            self.calls.append((list(operations), source_path, target_path))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        with open(target_path, 'wb') as f:
            f.write(self.payload)


@pytest.fixture
def package_definitions():
    """Fixture providing raw package definitions."""
    return dict(PACKAGE_DEFINITIONS)


@pytest.fixture
def registry(package_definitions):
    """Fixture providing a package registry."""
    from derivatives.package_registry import PackageRegistry
    return PackageRegistry.from_definitions(package_definitions)


@pytest.fixture
def images_dir(tmp_path):
    path = tmp_path / 'images'
    path.mkdir()
    return str(path)


@pytest.fixture
def source_root(tmp_path):
    path = tmp_path / 'sources'
    path.mkdir()
    return str(path)


@pytest.fixture
def paths(registry, images_dir):
    """Fixture providing a path resolver."""
    from derivatives.path_resolver import DerivativePathResolver
    return DerivativePathResolver(registry, images_dir, domain='//localhost:13337', image_route='/image/')


@pytest.fixture
def sample_source_file(source_root):
    """Fixture writing a 400x300 JPEG original with a horizontal gradient."""
    from PIL import Image

    img = Image.new('RGB', (400, 300))
    img.putdata([(x * 255 // 399, y * 255 // 299, 128) for y in range(300) for x in range(400)])
    path = os.path.join(source_root, 'originals', 'abc.jpg')
    os.makedirs(os.path.dirname(path), exist_ok=True)
    img.save(path, format='JPEG', quality=95)
    return path


@pytest.fixture
def sample_source(sample_source_file):
    """Fixture providing the source record for the sample original."""
    from derivatives.source_image import SourceImage
    return SourceImage(id='abc', filepath='originals/abc.jpg', extension='jpg')


@pytest.fixture
def source_store(sample_source):
    """Fixture providing a mocked source store knowing only 'abc'."""
    from unittest.mock import MagicMock

    store = MagicMock()
    records = {sample_source.id: sample_source}
    store.get_source.side_effect = lambda source_id: records.get(source_id)
    store.records = records
    return store


@pytest.fixture
def executor():
    from concurrent.futures import ThreadPoolExecutor
    pool = ThreadPoolExecutor(max_workers=8)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def counting_engine():
    return CountingEngine()


@pytest.fixture
def make_resolver(registry, paths, source_store, executor, source_root, logger):
    """Fixture providing a factory of cache resolvers."""
    from derivatives.cache_resolver import CacheResolver

    def factory(engine, **kwargs):
        return CacheResolver(
            registry,
            paths,
            source_store,
            engine,
            executor,
            source_root=source_root,
            logger=logger,
            **kwargs
        )
    return factory


@pytest.fixture
def cache_config(images_dir, source_root):
    """Fixture providing a cache configuration using the Pillow engine."""
    from derivatives.config import CacheConfig
    return CacheConfig(
        images_dir=images_dir,
        source_root=source_root,
        domain='//localhost:13337',
        engine='pillow',
        workers=4,
    )


@pytest.fixture
def service(cache_config, source_store, package_definitions):
    """Fixture providing a Pillow-backed derivative service."""
    from derivatives.service import DerivativeService
    svc = DerivativeService.from_config(cache_config, source_store, packages=package_definitions)
    yield svc
    svc.shutdown()


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    import logging
    return logging.getLogger('test')
