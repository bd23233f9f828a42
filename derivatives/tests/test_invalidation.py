"""Tests for InvalidationManager."""

import os

import pytest

from derivatives.errors import InvalidDerivativeKey
from derivatives.invalidation import InvalidationManager


def touch(*parts):
    path = os.path.join(*parts)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'wb') as f:
        f.write(b'x')
    return path


@pytest.fixture
def manager(paths, executor, logger):
    return InvalidationManager(paths, executor, logger=logger)


class TestSourceInvalidation:
    """Tests for per-source invalidation."""

    def test_candidate_paths(self, manager, images_dir):
        candidates = manager.candidate_paths('abc')

        assert os.path.join(images_dir, 'abc-thumb.gif') in candidates
        assert os.path.join(images_dir, 'abc-forced.jpg') in candidates
        assert os.path.join(images_dir, 'abc-forced.png') not in candidates
        assert len(candidates) == len(set(candidates))

    def test_removes_all_derivatives_of_source(self, manager, images_dir):
        removed = [
            touch(images_dir, 'abc-thumb.jpg'),
            touch(images_dir, 'abc-thumb.png'),
            touch(images_dir, 'abc-full.jpg'),
            touch(images_dir, 'abc-forced.jpg'),
        ]
        kept = [touch(images_dir, 'abd-thumb.jpg'), touch(images_dir, 'x-abc-thumb.jpg')]

        result = manager.on_source_changed('abc')

        assert sorted(result) == sorted(removed)
        for path in removed:
            assert not os.path.exists(path)
        for path in kept:
            assert os.path.exists(path)

    def test_nothing_cached(self, manager):
        assert manager.on_source_changed('abc') == []

    def test_invalid_id(self, manager):
        with pytest.raises(InvalidDerivativeKey):
            manager.on_source_changed('../abc')

    def test_regenerates_after_invalidation(self, manager, make_resolver, counting_engine):
        resolver = make_resolver(counting_engine)
        path = resolver.resolve('abc', 'thumb', 'jpg')

        manager.on_source_changed('abc')
        assert not os.path.exists(path)

        assert resolver.resolve('abc', 'thumb', 'jpg') == path
        assert counting_engine.call_count == 2

    @pytest.mark.parametrize('event', ['pre_save', 'post_save', 'pre_remove'])
    def test_lifecycle_events(self, manager, images_dir, event):
        path = touch(images_dir, 'abc-thumb.jpg')

        manager.lifecycle_hook(event, 'abc')

        assert not os.path.exists(path)

    def test_unknown_lifecycle_event(self, manager, images_dir):
        path = touch(images_dir, 'abc-thumb.jpg')

        manager.lifecycle_hook('post_load', 'abc')

        assert os.path.exists(path)

    @pytest.mark.parametrize('event', ['pre_save', 'post_save', 'pre_remove'])
    def test_lifecycle_hook_tolerates_unusable_id(self, manager, event):
        manager.lifecycle_hook(event, 'scans/abc')


class TestPurge:
    """Tests for package purges."""

    def test_purge_scope(self, manager, images_dir):
        touch(images_dir, 'A-thumb.jpg')
        touch(images_dir, 'A-full.jpg')
        touch(images_dir, 'B-thumb.png')

        deleted = manager.purge_package('thumb').result(timeout=5)

        assert deleted == 2
        assert sorted(os.listdir(images_dir)) == ['A-full.jpg']

    def test_purge_is_recursive(self, manager, images_dir):
        nested = touch(images_dir, 'old', 'deep', 'C-thumb.gif')
        other = touch(images_dir, 'old', 'C-thumbnail.gif')

        manager.sweep_package('thumb')

        assert not os.path.exists(nested)
        assert os.path.exists(other)

    def test_purge_is_case_insensitive(self, manager, images_dir):
        path = touch(images_dir, 'D-THUMB.JPG')

        assert manager.sweep_package('thumb') == 1
        assert not os.path.exists(path)

    def test_purge_escapes_name(self, manager, images_dir):
        path = touch(images_dir, 'E-thumbXjpg')

        assert manager.sweep_package('thumb') == 0
        assert os.path.exists(path)

    def test_purge_ignores_package_name_inside_source_id(self, manager, paths, images_dir):
        other = touch(paths.path_for('scan-thumb.v2', 'full', 'jpg'))
        own = touch(paths.path_for('scan-thumb.v2', 'thumb', 'jpg'))

        assert manager.sweep_package('thumb') == 1
        assert os.path.exists(other)
        assert not os.path.exists(own)

    def test_purge_continues_after_failure(self, manager, images_dir, mocker):
        first = touch(images_dir, 'A-thumb.jpg')
        second = touch(images_dir, 'B-thumb.jpg')
        real_remove = os.remove

        def flaky_remove(path):
            if path == first:
                raise PermissionError(13, 'Permission denied', path)
            real_remove(path)

        mocker.patch('derivatives.invalidation.os.remove', side_effect=flaky_remove)

        assert manager.sweep_package('thumb') == 1
        assert os.path.exists(first)
        assert not os.path.exists(second)

    def test_purge_missing_images_dir(self, paths, executor, images_dir):
        os.rmdir(images_dir)
        manager = InvalidationManager(paths, executor)

        assert manager.sweep_package('thumb') == 0
